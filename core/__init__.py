"""
Core processing modules for ledger CSV imports.

This package contains:
- config: Application configuration and settings
- db: Store contract and SQLite store
- exceptions: Custom exception classes
- logger: Logging configuration
- normalize: Field-level normalization utilities
- parsing: CSV tokenizing and transaction parsing
- schema: Pydantic models for parse results and the import contract
"""

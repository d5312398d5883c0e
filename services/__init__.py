"""
Service layer for business logic.

This package contains:
- csv_service: upload validation, parsing and import payload construction
- import_service: category reconciliation and bulk transaction insert
"""

"""
Custom exceptions for the ledger import pipeline.
"""
from typing import Any, Dict, Optional


class LedgerImportException(Exception):
    """Base exception for all ledger import errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CsvStructureError(LedgerImportException):
    """Raised when a CSV file lacks required columns."""
    pass


class FileProcessingError(LedgerImportException):
    """Raised when an uploaded file cannot be read."""
    pass


class ValidationError(LedgerImportException):
    """Raised when an import batch fails validation."""
    pass


class AuthorizationError(LedgerImportException):
    """Raised when the caller credential is missing."""
    pass


class StoreError(LedgerImportException):
    """Raised when the backing store rejects a read or write."""
    pass


class CategoryConflictError(StoreError):
    """Raised when a category insert collides with an existing category."""
    pass


class ConfigurationError(LedgerImportException):
    """Raised when configuration is invalid."""
    pass

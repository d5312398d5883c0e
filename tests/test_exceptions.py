"""
Unit tests for custom exceptions and log masking.
"""
from core.exceptions import (
    AuthorizationError,
    CategoryConflictError,
    ConfigurationError,
    CsvStructureError,
    FileProcessingError,
    LedgerImportException,
    StoreError,
    ValidationError,
)
from core.logger import mask_secret, setup_logger


def test_base_exception():
    """Test base exception class."""
    exc = LedgerImportException("Test error", details={"key": "value"})
    assert str(exc) == "Test error"
    assert exc.message == "Test error"
    assert exc.details == {"key": "value"}


def test_exception_hierarchy():
    """Test exception inheritance."""
    for exc_type in (
        CsvStructureError,
        FileProcessingError,
        ValidationError,
        AuthorizationError,
        StoreError,
        ConfigurationError,
    ):
        assert issubclass(exc_type, LedgerImportException)
    assert issubclass(CategoryConflictError, StoreError)


def test_exception_with_details():
    """Test exception with details dictionary."""
    exc = CsvStructureError("Missing columns", details={"missing": ["date"]})
    assert exc.message == "Missing columns"
    assert exc.details["missing"] == ["date"]


def test_exception_without_details():
    """Test exception without details."""
    exc = StoreError("insert failed")
    assert exc.message == "insert failed"
    assert exc.details == {}


def test_mask_secret_keeps_scheme_and_tail():
    assert mask_secret("Bearer abcdef123456") == "Bearer ****3456"
    assert mask_secret("short") == "****"
    assert mask_secret(None) == "<none>"


def test_setup_logger_does_not_duplicate_handlers():
    logger = setup_logger("tests.duplicate_handlers")
    again = setup_logger("tests.duplicate_handlers")
    assert logger is again
    assert len(logger.handlers) == 1


def test_setup_logger_falls_back_on_unknown_level():
    logger = setup_logger("tests.unknown_level", level="chatty")
    assert logger.level == 20

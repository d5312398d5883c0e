"""
CSV upload handling.
Validates uploaded files, runs the parser and turns a parse result into
the import request body.
"""
from typing import Any, Dict, List, Optional

from core.exceptions import FileProcessingError
from core.logger import setup_logger
from core.parsing import parse_transaction_csv_text
from core.schema import CsvParseOptions, CsvParseResult

logger = setup_logger(__name__)

CSV_CONTENT_TYPES = ("text/csv", "application/vnd.ms-excel")


def validate_upload(
    filename: Optional[str],
    content_type: Optional[str],
    content: bytes,
    max_bytes: int,
) -> str:
    """
    Check an uploaded file and decode it as UTF-8.

    Args:
        filename: Client-supplied file name
        content_type: Client-supplied MIME type
        content: Raw file bytes
        max_bytes: Largest accepted size

    Returns:
        Decoded text without a byte-order mark

    Raises:
        FileProcessingError: If the file is not a CSV, too large, empty or not UTF-8
    """
    is_csv = (filename or "").lower().endswith(".csv") or (content_type or "").split(";")[0].strip() in CSV_CONTENT_TYPES
    if not is_csv:
        raise FileProcessingError(
            "Please choose a CSV file (.csv).",
            details={"filename": filename, "content_type": content_type}
        )

    if len(content) > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise FileProcessingError(
            f"CSV file is too large. Please upload a file under {limit_mb:g} MB.",
            details={"size": len(content), "max_bytes": max_bytes}
        )

    if not content:
        raise FileProcessingError("File is empty", details={"filename": filename})

    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FileProcessingError(
            "File encoding error. Please ensure the file is UTF-8 encoded",
            details={"filename": filename, "error": str(e)}
        )


def parse_upload(
    filename: Optional[str],
    content_type: Optional[str],
    content: bytes,
    max_bytes: int,
    options: Optional[CsvParseOptions] = None,
) -> CsvParseResult:
    """Validate an upload and parse it; the file name labels the result by default."""
    text = validate_upload(filename, content_type, content, max_bytes)
    options = options or CsvParseOptions()
    if options.source_name is None and filename:
        options = options.model_copy(update={"source_name": filename})
    return parse_transaction_csv_text(text, options)


def build_import_payload(result: CsvParseResult, source: str = "csv") -> Dict[str, List[Dict[str, Any]]]:
    """
    Build the import request body from a parse result.

    Rows tagged as duplicates of an earlier row are left out.
    """
    transactions = [
        {
            "occurredOn": txn.occurred_on,
            "description": txn.description,
            "amount": txn.amount,
            "type": txn.type,
            "category": txn.category,
            "notes": txn.notes,
            "source": source,
        }
        for txn in result.transactions
        if txn.duplicate_of_row is None
    ]

    skipped = len(result.transactions) - len(transactions)
    if skipped:
        logger.info(f"Excluded {skipped} duplicate rows from import payload")

    return {"transactions": transactions}

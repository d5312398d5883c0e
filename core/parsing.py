"""
Bank-export CSV parsing.
Turns delimited text into normalized transaction candidates, flags
repeated rows within the file and reports per-row validation errors.
"""
from pathlib import Path
from typing import IO, Dict, Iterable, List, Optional, Union

from core.exceptions import CsvStructureError
from core.logger import setup_logger
from core.normalize import (
    AMOUNT,
    CATEGORY,
    DATE,
    DESCRIPTION,
    HEADER_ALIAS_MAP,
    NOTES,
    REQUIRED_FIELDS,
    TYPE,
    build_alias_map,
    duplicate_key,
    normalize_transaction_type,
    normalize_whitespace,
    parse_amount,
    parse_date,
    resolve_header,
    round_amount,
)
from core.schema import (
    CsvDuplicate,
    CsvParseMetadata,
    CsvParseOptions,
    CsvParseResult,
    CsvRowError,
    CsvTransactionRecord,
)

logger = setup_logger(__name__)

EMPTY_FILE_MESSAGE = "CSV file does not contain any rows."
INVALID_DATE_MESSAGE = "Missing or invalid date value."
MISSING_DESCRIPTION_MESSAGE = "Missing transaction description."
INVALID_AMOUNT_MESSAGE = "Missing or invalid amount value."


def tokenize_csv(content: str, delimiter: str = ",") -> List[List[str]]:
    """
    Split CSV text into rows of raw field strings.

    Quoted fields may contain the delimiter, line breaks and doubled quotes.
    Both \\n and \\r\\n end a row. Blank lines produce no row.

    Args:
        content: CSV text
        delimiter: Single-character field separator

    Returns:
        List of rows, each a list of field strings
    """
    rows: List[List[str]] = []
    current_row: List[str] = []
    field_chars: List[str] = []
    inside_quotes = False

    def push_row() -> None:
        if current_row or field_chars:
            current_row.append("".join(field_chars))
            field_chars.clear()
        if current_row:
            rows.append(current_row.copy())
        current_row.clear()

    index = 0
    length = len(content)
    while index < length:
        char = content[index]

        if char == '"':
            if inside_quotes and index + 1 < length and content[index + 1] == '"':
                field_chars.append('"')
                index += 1
            else:
                inside_quotes = not inside_quotes
        elif not inside_quotes and char == delimiter:
            current_row.append("".join(field_chars))
            field_chars.clear()
        elif not inside_quotes and char in ("\n", "\r"):
            if char == "\r" and index + 1 < length and content[index + 1] == "\n":
                index += 1
            push_row()
        else:
            field_chars.append(char)

        index += 1

    push_row()
    return rows


def build_header_map(headers: List[str], alias_map: Optional[Dict[str, str]] = None) -> List[Optional[str]]:
    """Resolve each header to its canonical field (None for ignored columns)."""
    return [resolve_header(header, alias_map) for header in headers]


def ensure_required_headers(header_map: List[Optional[str]], headers: List[str]) -> None:
    """
    Fail fast when date, description or amount has no column.

    Raises:
        CsvStructureError: If any required field is absent
    """
    present = {field for field in header_map if field}
    missing = [field for field in REQUIRED_FIELDS if field not in present]

    if missing:
        missing_list = ", ".join(f'"{field}"' for field in missing)
        raise CsvStructureError(
            f"CSV is missing required columns: {missing_list} (detected headers: {', '.join(headers)})",
            details={"missing": missing, "headers": headers}
        )


def to_raw_record(headers: List[str], values: List[str]) -> Dict[str, str]:
    """Pair original header names with trimmed cell values."""
    return {
        header: (values[index] if index < len(values) else "").strip()
        for index, header in enumerate(headers)
    }


def map_row(header_map: List[Optional[str]], values: List[str]) -> Dict[str, str]:
    """
    Collect cell values by canonical field.

    When several columns share a field, the rightmost column wins, even when
    its cell is empty or missing.
    """
    mapped: Dict[str, str] = {}
    for index, field in enumerate(header_map):
        if not field:
            continue
        mapped[field] = values[index] if index < len(values) else ""
    return mapped


def _empty_result(source: Optional[str]) -> CsvParseResult:
    return CsvParseResult(
        errors=[CsvRowError(row_number=0, message=EMPTY_FILE_MESSAGE, raw={})],
        metadata=CsvParseMetadata(source=source),
    )


def parse_transaction_csv_text(
    content: str,
    options: Optional[CsvParseOptions] = None,
    extra_aliases: Optional[Iterable] = None,
) -> CsvParseResult:
    """
    Parse CSV text into a CsvParseResult.

    Args:
        content: CSV text with a mandatory header row
        options: Delimiter, decimal separator and source label
        extra_aliases: Additional (canonical field, [spellings]) pairs

    Returns:
        Parse result with transactions, duplicates, errors and metadata

    Raises:
        CsvStructureError: If required columns are missing from the header
    """
    options = options or CsvParseOptions()
    alias_map = HEADER_ALIAS_MAP
    if extra_aliases:
        alias_map = {**HEADER_ALIAS_MAP, **build_alias_map(extra_aliases)}

    if content.startswith("\ufeff"):
        content = content[1:]

    logger.info(
        f"Parsing CSV (source={options.source_name}, delimiter={options.delimiter!r}, "
        f"decimal_separator={options.decimal_separator!r})"
    )

    rows = tokenize_csv(content, options.delimiter)
    if not rows:
        logger.warning("CSV contains no rows")
        return _empty_result(options.source_name)

    header_row, value_rows = rows[0], rows[1:]
    header_map = build_header_map(header_row, alias_map)

    try:
        ensure_required_headers(header_map, header_row)
    except CsvStructureError as e:
        logger.warning(e.message)
        raise

    transactions: List[CsvTransactionRecord] = []
    duplicates: List[CsvDuplicate] = []
    errors: List[CsvRowError] = []
    seen_keys: Dict[str, int] = {}

    for index, values in enumerate(value_rows):
        row_number = index + 2  # header is row 1
        raw = to_raw_record(header_row, values)
        mapped = map_row(header_map, values)

        occurred_on = parse_date(mapped.get(DATE))
        if not occurred_on:
            errors.append(CsvRowError(row_number=row_number, message=INVALID_DATE_MESSAGE, raw=raw))
            logger.debug(f"Row {row_number}: {INVALID_DATE_MESSAGE}")
            continue

        description = normalize_whitespace(mapped.get(DESCRIPTION))
        if not description:
            errors.append(CsvRowError(row_number=row_number, message=MISSING_DESCRIPTION_MESSAGE, raw=raw))
            logger.debug(f"Row {row_number}: {MISSING_DESCRIPTION_MESSAGE}")
            continue

        amount_value = parse_amount(mapped.get(AMOUNT), options.decimal_separator)
        if amount_value is None:
            errors.append(CsvRowError(row_number=row_number, message=INVALID_AMOUNT_MESSAGE, raw=raw))
            logger.debug(f"Row {row_number}: {INVALID_AMOUNT_MESSAGE}")
            continue

        kind = normalize_transaction_type(mapped.get(TYPE))
        if kind is None:
            kind = "expense" if amount_value < 0 else "income"

        transaction = CsvTransactionRecord(
            row_number=row_number,
            occurred_on=occurred_on,
            description=description,
            amount=round_amount(amount_value),
            type=kind,
            category=normalize_whitespace(mapped.get(CATEGORY)),
            notes=normalize_whitespace(mapped.get(NOTES)),
            raw=raw,
        )

        key = duplicate_key(transaction.occurred_on, transaction.description, transaction.amount)
        first_row = seen_keys.get(key)
        if first_row is not None:
            transaction.duplicate_of_row = first_row
            duplicates.append(CsvDuplicate(key=key, first_row=first_row, duplicate_row=row_number))
        else:
            seen_keys[key] = row_number

        transactions.append(transaction)

    metadata = CsvParseMetadata(
        total_rows=len(value_rows),
        processed_rows=len(transactions),
        skipped_rows=len(errors),
        duplicate_count=len(duplicates),
        headers=header_row,
        source=options.source_name,
    )

    logger.info(
        f"Parsed {metadata.total_rows} rows: {metadata.processed_rows} processed, "
        f"{metadata.skipped_rows} skipped, {metadata.duplicate_count} duplicates"
    )

    return CsvParseResult(
        transactions=transactions,
        duplicates=duplicates,
        errors=errors,
        metadata=metadata,
    )


def parse_transaction_csv(
    file: Union[IO, str, Path],
    options: Optional[CsvParseOptions] = None,
    extra_aliases: Optional[Iterable] = None,
) -> CsvParseResult:
    """
    Read a CSV file (path or open handle) as UTF-8 and parse it.

    The source name defaults to the file's name when options leave it unset.
    """
    options = options or CsvParseOptions()

    if isinstance(file, (str, Path)):
        path = Path(file)
        content = path.read_text(encoding="utf-8-sig")
        name = path.name
    else:
        data = file.read()
        content = data.decode("utf-8-sig") if isinstance(data, bytes) else data
        file_name = getattr(file, "name", None)
        name = Path(file_name).name if isinstance(file_name, str) and file_name else None

    if options.source_name is None and name:
        options = options.model_copy(update={"source_name": name})

    return parse_transaction_csv_text(content, options, extra_aliases)

"""
Field-level normalization for bank-export CSV values.
Handles header aliasing, date disambiguation, locale-aware amounts and
transaction type synonyms.
"""
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from core.logger import setup_logger

logger = setup_logger(__name__)

# Canonical fields a CSV column can map to
DATE = "date"
DESCRIPTION = "description"
AMOUNT = "amount"
TYPE = "type"
CATEGORY = "category"
NOTES = "notes"
EXTERNAL_ID = "externalId"

REQUIRED_FIELDS: List[str] = [DATE, DESCRIPTION, AMOUNT]

# (canonical field, sanitized header spellings)
HEADER_ALIASES = [
    (DATE, ["date", "transaction_date", "posted_date", "booking_date", "occurred_on"]),
    (DESCRIPTION, ["description", "details", "memo"]),
    (AMOUNT, ["amount", "value", "eur", "debit", "credit"]),
    (TYPE, ["type", "transaction_type"]),
    (CATEGORY, ["category", "category_name", "tag"]),
    (NOTES, ["notes", "note", "memo_note"]),
    (EXTERNAL_ID, ["reference", "external_id", "id"]),
]

INCOME_SYNONYMS = frozenset({"income", "credit", "inflow", "deposit"})
EXPENSE_SYNONYMS = frozenset({"expense", "debit", "outflow", "withdrawal", "payment"})


def build_alias_map(aliases: Iterable = HEADER_ALIASES) -> Dict[str, str]:
    """
    Flatten an alias list into a lookup of sanitized header -> canonical field.

    Args:
        aliases: Iterable of (canonical field, [spellings]) pairs

    Returns:
        Dictionary keyed by sanitized header spelling
    """
    alias_map: Dict[str, str] = {}
    for field, spellings in aliases:
        for spelling in spellings:
            alias_map[sanitize_header(spelling)] = field
    return alias_map


def sanitize_header(header: str) -> str:
    """Lowercase a header and collapse non-alphanumeric runs into '_'."""
    return re.sub(r"[^a-z0-9]+", "_", header.strip().lower())


HEADER_ALIAS_MAP: Dict[str, str] = build_alias_map()


def resolve_header(header: str, alias_map: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Map a raw header to its canonical field, or None when unrecognized."""
    alias_map = HEADER_ALIAS_MAP if alias_map is None else alias_map
    return alias_map.get(sanitize_header(header))


def normalize_whitespace(value: Optional[str]) -> Optional[str]:
    """
    Trim and collapse whitespace runs to single spaces.

    Returns:
        Normalized string, or None if nothing is left
    """
    if not value:
        return None
    normalized = re.sub(r"\s+", " ", value.strip())
    return normalized or None


def parse_date(raw: Optional[str]) -> Optional[str]:
    """
    Parse a bank-export date into ISO YYYY-MM-DD.

    Accepts YYYY/MM/DD and DD/MM/YYYY or MM/DD/YYYY with '/', '-' or '.'
    separators. Day and month are told apart by whichever part exceeds 12;
    when both are 12 or less the value is read as DD/MM/YYYY.

    Args:
        raw: Raw cell value

    Returns:
        ISO date string or None if the value is not a real calendar date
    """
    if not raw:
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None

    parts = [part for part in re.split(r"[/-]", trimmed.replace(".", "/")) if part]
    if len(parts) != 3 or not all(part.isascii() and part.isdigit() for part in parts):
        return None

    if len(parts[0]) == 4:
        year, month, day = int(parts[0]), int(parts[1]), int(parts[2])
    elif len(parts[2]) == 4:
        year = int(parts[2])
        first, second = int(parts[0]), int(parts[1])
        if first > 12 and second <= 12:
            day, month = first, second
        elif second > 12 and first <= 12:
            month, day = first, second
        else:
            # Ambiguous: DD/MM/YYYY
            day, month = first, second
    else:
        return None

    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_amount(raw: Optional[str], decimal_separator: str = ".") -> Optional[float]:
    """
    Parse a signed amount, tolerating currency symbols and thousands separators.

    With decimal_separator ',' dots are thousands separators and the last
    comma is the decimal point; with '.' all commas are dropped.

    Args:
        raw: Raw cell value
        decimal_separator: "." or ","

    Returns:
        Parsed float or None when the value is not numeric
    """
    if not raw:
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None

    cleaned = re.sub(r"[^0-9,.\-]", "", trimmed)

    if decimal_separator == ",":
        cleaned = cleaned.replace(".", "")
        head, comma, tail = cleaned.rpartition(",")
        if comma:
            cleaned = f"{head.replace(',', '')}.{tail}"
    else:
        cleaned = cleaned.replace(",", "")

    if not cleaned:
        return None

    try:
        return float(cleaned)
    except ValueError:
        logger.debug(f"Unparseable amount: {raw!r}")
        return None


def normalize_transaction_type(value: Optional[str]) -> Optional[str]:
    """Map a type cell onto 'income' / 'expense', or None if unrecognized."""
    if not value:
        return None
    normalized = value.strip().lower()
    if normalized in INCOME_SYNONYMS:
        return "income"
    if normalized in EXPENSE_SYNONYMS:
        return "expense"
    return None


def round_amount(value: float) -> float:
    """Absolute value rounded to cents, exact halves rounding away from zero."""
    return float(Decimal(abs(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def duplicate_key(occurred_on: str, description: str, amount: float) -> str:
    """Identity of a transaction within one file: date|lower(description)|amount."""
    return "|".join([occurred_on, description.lower(), f"{amount:.2f}"])


def category_key(name: str, kind: str) -> str:
    """Reconciliation key for a category: type:lower(trim(name))."""
    return f"{kind}:{name.strip().lower()}"

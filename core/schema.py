"""
Pydantic schemas for the CSV parse result and the import wire contract.
JSON field names are camelCase; Python attributes are snake_case.
"""
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TransactionKind = Literal["income", "expense"]


def normalize_row_id(v):
    """Normalize store ids to string (stores may return integer keys)."""
    if v is None:
        return v
    return str(v)


class WireModel(BaseModel):
    """Base model serializing with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump as a JSON-ready dict using wire field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=False)


class CsvParseOptions(WireModel):
    """Parser options; every field is optional."""
    delimiter: str = Field(default=",", description="Single-character field delimiter")
    decimal_separator: Literal[".", ","] = Field(default=".", description="Decimal point used in amounts")
    source_name: Optional[str] = Field(default=None, description="Provenance label copied into metadata")

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v):
        """Delimiter must be one character and cannot be a quote or line break."""
        if len(v) != 1:
            raise ValueError("Delimiter must be exactly one character")
        if v in ('"', "\n", "\r"):
            raise ValueError("Delimiter cannot be a quote or line break")
        return v


class CsvTransactionRecord(WireModel):
    """One parsed candidate row."""
    row_number: int = Field(..., ge=2, description="1-based file line; first data row is 2")
    occurred_on: str = Field(..., description="ISO calendar date YYYY-MM-DD")
    description: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0, description="Absolute value rounded to 2 decimals")
    type: TransactionKind
    category: Optional[str] = None
    notes: Optional[str] = None
    raw: Dict[str, str] = Field(default_factory=dict)
    duplicate_of_row: Optional[int] = None


class CsvDuplicate(WireModel):
    key: str
    first_row: int
    duplicate_row: int


class CsvRowError(WireModel):
    row_number: int
    message: str
    raw: Dict[str, str] = Field(default_factory=dict)


class CsvParseMetadata(WireModel):
    total_rows: int = 0
    processed_rows: int = 0
    skipped_rows: int = 0
    duplicate_count: int = 0
    headers: List[str] = Field(default_factory=list)
    source: Optional[str] = None


class CsvParseResult(WireModel):
    """Complete output of the CSV parser."""
    transactions: List[CsvTransactionRecord] = Field(default_factory=list)
    duplicates: List[CsvDuplicate] = Field(default_factory=list)
    errors: List[CsvRowError] = Field(default_factory=list)
    metadata: CsvParseMetadata = Field(default_factory=CsvParseMetadata)


class IncomingTransaction(WireModel):
    """A validated transaction received by the import service."""
    occurred_on: str
    description: str
    amount: float
    type: TransactionKind
    category: Optional[str] = None
    notes: Optional[str] = None
    source: Optional[str] = None


class CategoryRow(BaseModel):
    """Server-owned category; unique per (lower(name), type)."""
    id: Annotated[str, BeforeValidator(normalize_row_id)]
    name: str
    type: TransactionKind
    color: Optional[str] = None


class TransactionInsert(BaseModel):
    """Persisted transaction row shape (store column names)."""
    occurred_on: str
    description: str
    amount: float
    type: TransactionKind
    category_id: Optional[str] = None
    notes: Optional[str] = None
    source: Optional[str] = None


class ImportSummary(WireModel):
    """Terminal report of one import call."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    inserted_count: int
    failed_count: int
    created_categories: int
    category_mappings: Dict[str, str] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)

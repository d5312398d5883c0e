"""
Import reconciliation service.
Validates an import batch, resolves categories idempotently and bulk
inserts the transactions through the injected store.
"""
import math
from typing import Any, Dict, List, Optional, Tuple

from core.db import TransactionStore
from core.exceptions import AuthorizationError, CategoryConflictError, StoreError, ValidationError
from core.logger import mask_secret, setup_logger
from core.normalize import category_key
from core.schema import CategoryRow, ImportSummary, IncomingTransaction, TransactionInsert

logger = setup_logger(__name__)

DEFAULT_SOURCE = "csv"


def _optional_text(value: Any) -> Optional[str]:
    """Keep non-blank strings; anything else becomes None."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # integer too large for a float
        return False


def validate_transactions(payload: Any) -> List[IncomingTransaction]:
    """
    Validate a request body of the form {"transactions": [...]}.

    Intake is all-or-nothing: one bad row rejects the whole batch.

    Args:
        payload: Decoded JSON body

    Returns:
        List of validated transactions

    Raises:
        ValidationError: With every row-level problem joined into the message
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object.")

    transactions = payload.get("transactions")

    if not isinstance(transactions, list):
        raise ValidationError("`transactions` must be an array of transaction objects.")

    if len(transactions) == 0:
        raise ValidationError("`transactions` array must contain at least one item.")

    parsed: List[IncomingTransaction] = []
    errors: List[str] = []

    for index, row in enumerate(transactions, start=1):
        if not isinstance(row, dict):
            errors.append(f"Row {index}: expected an object.")
            continue

        occurred_on = row.get("occurredOn")
        description = row.get("description")
        amount = row.get("amount")
        kind = row.get("type")

        if not isinstance(occurred_on, str) or not occurred_on.strip():
            errors.append(f"Row {index}: occurredOn is required.")
            continue

        if not isinstance(description, str) or not description.strip():
            errors.append(f"Row {index}: description is required.")
            continue

        if not _is_number(amount):
            errors.append(f"Row {index}: amount must be a number.")
            continue

        if kind not in ("income", "expense"):
            errors.append(f'Row {index}: type must be "income" or "expense".')
            continue

        parsed.append(IncomingTransaction(
            occurred_on=occurred_on,
            description=description,
            amount=amount,
            type=kind,
            category=_optional_text(row.get("category")),
            notes=_optional_text(row.get("notes")),
            source=_optional_text(row.get("source")),
        ))

    if not parsed:
        suffix = f" Errors: {' '.join(errors)}" if errors else ""
        raise ValidationError(f"No valid transactions provided.{suffix}", details={"errors": errors})

    if errors:
        raise ValidationError(" ".join(errors), details={"errors": errors})

    return parsed


class ImportService:
    """Reconciles categories and persists an import batch."""

    def __init__(self, store: TransactionStore):
        """
        Args:
            store: Backing store; its lifecycle belongs to the caller
        """
        self.store = store

    def _load_index(self, credential: str) -> Dict[str, CategoryRow]:
        try:
            rows = self.store.fetch_categories(credential)
        except StoreError as e:
            raise StoreError(f"Failed to load categories: {e.message}", details=e.details)
        return {category_key(row.name, row.type): row for row in rows}

    def _create(self, credential: str, items: List[Dict[str, str]]) -> List[CategoryRow]:
        try:
            return self.store.insert_categories(credential, items)
        except CategoryConflictError:
            raise
        except StoreError as e:
            raise StoreError(f"Failed to create categories: {e.message}", details=e.details)

    def ensure_categories(
        self,
        credential: str,
        transactions: List[IncomingTransaction],
    ) -> Tuple[Dict[str, CategoryRow], int]:
        """
        Resolve every (category, type) pair to a category row, creating missing ones.

        A concurrent import may create the same category between our read and
        our insert. The store reports that as a conflict; we re-read, and insert
        only what is still missing.

        Returns:
            Tuple of (category index keyed by type:name, number of categories created)

        Raises:
            StoreError: If categories cannot be loaded or created
        """
        requested: Dict[str, Dict[str, str]] = {}
        for txn in transactions:
            if not txn.category:
                continue
            key = category_key(txn.category, txn.type)
            requested.setdefault(key, {"name": txn.category.strip(), "type": txn.type})

        if not requested:
            return {}, 0

        index = self._load_index(credential)
        missing = [item for key, item in requested.items() if key not in index]

        if not missing:
            logger.info(f"All {len(requested)} requested categories already exist")
            return index, 0

        try:
            inserted = self._create(credential, missing)
        except CategoryConflictError as e:
            logger.warning(f"Category insert raced with another import, re-reading: {e.message}")
            index.update(self._load_index(credential))
            missing = [item for key, item in requested.items() if key not in index]
            inserted = []
            if missing:
                try:
                    inserted = self._create(credential, missing)
                except CategoryConflictError as retry_error:
                    raise StoreError(
                        f"Failed to create categories: {retry_error.message}",
                        details=retry_error.details
                    )

        for row in inserted:
            index[category_key(row.name, row.type)] = row

        logger.info(f"Created {len(inserted)} categories ({len(requested)} requested)")
        return index, len(inserted)

    def import_transactions(self, credential: Optional[str], payload: Any) -> ImportSummary:
        """
        Validate, reconcile categories and insert one import batch.

        Args:
            credential: Caller's Authorization header value, forwarded to the store
            payload: Decoded request body

        Returns:
            ImportSummary for the batch

        Raises:
            AuthorizationError: If no credential is given
            ValidationError: If the batch is malformed
            StoreError: If category setup or the insert fails
        """
        if not credential:
            raise AuthorizationError("Authorization header is required.")

        validated = validate_transactions(payload)
        logger.info(f"Importing {len(validated)} transactions for {mask_secret(credential)}")

        categories, created_count = self.ensure_categories(credential, validated)

        inserts = []
        for txn in validated:
            category = categories.get(category_key(txn.category, txn.type)) if txn.category else None
            inserts.append(TransactionInsert(
                occurred_on=txn.occurred_on,
                description=txn.description,
                amount=txn.amount,
                type=txn.type,
                category_id=category.id if category else None,
                notes=txn.notes,
                source=txn.source or DEFAULT_SOURCE,
            ))

        try:
            inserted_ids = self.store.insert_transactions(credential, inserts)
        except StoreError as e:
            logger.error(f"Transaction insert failed: {e.message}", exc_info=True)
            raise StoreError(f"Failed to insert transactions: {e.message}", details=e.details)

        summary = ImportSummary(
            inserted_count=len(inserted_ids),
            failed_count=len(validated) - len(inserted_ids),
            created_categories=created_count,
            category_mappings={key: row.id for key, row in categories.items()},
            errors=[],
        )

        logger.info(
            f"Import finished: {summary.inserted_count} inserted, {summary.failed_count} failed, "
            f"{summary.created_categories} categories created"
        )
        return summary

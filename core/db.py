"""
Store contract for categories and transactions, plus a SQLite implementation.

Every call carries the caller credential. The SQLite store scopes rows to a
digest of that credential; hosted stores enforce their own row-level rules.
"""
import hashlib
import sqlite3
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List

from core.exceptions import CategoryConflictError, StoreError
from core.logger import setup_logger
from core.normalize import category_key
from core.schema import CategoryRow, TransactionInsert

logger = setup_logger(__name__)


class TransactionStore(ABC):
    """Backing store used by the import service."""

    @abstractmethod
    def fetch_categories(self, credential: str) -> List[CategoryRow]:
        """Return every category visible to the caller."""

    @abstractmethod
    def insert_categories(self, credential: str, items: Iterable[dict]) -> List[CategoryRow]:
        """
        Insert categories ({name, type}) in one call.

        Raises:
            CategoryConflictError: If an item matches an existing (name, type);
                nothing is inserted in that case
        """

    @abstractmethod
    def insert_transactions(self, credential: str, rows: Iterable[TransactionInsert]) -> List[str]:
        """Insert transactions in one call and return the new row ids."""

    def close(self) -> None:
        """Release resources held by the store."""


def owner_for(credential: str) -> str:
    """Stable per-caller owner id derived from the credential."""
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()


class SQLiteStore(TransactionStore):
    """Local store backed by a SQLite file."""

    def __init__(self, database_path: str):
        self.db_path = database_path
        self.init_db()

    def get_connection(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init_db(self) -> None:
        """Initialize database tables."""
        conn = None
        try:
            conn = self.get_connection()
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    name TEXT NOT NULL,
                    name_key TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
                    color TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (owner, name_key, type)
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    occurred_on TEXT NOT NULL,
                    description TEXT NOT NULL,
                    amount REAL NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
                    category_id TEXT REFERENCES categories (id),
                    notes TEXT,
                    source TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Database initialization failed: {e}")
            raise StoreError(
                f"Failed to initialize database: {e}",
                details={"database_path": self.db_path}
            )
        finally:
            if conn is not None:
                conn.close()

    def fetch_categories(self, credential: str) -> List[CategoryRow]:
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT id, name, type, color FROM categories WHERE owner = ? ORDER BY created_at, name",
                (owner_for(credential),)
            ).fetchall()
            return [CategoryRow(**dict(row)) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Failed to fetch categories: {e}")
            raise StoreError(str(e), details={"operation": "fetch_categories"})
        finally:
            conn.close()

    def insert_categories(self, credential: str, items: Iterable[dict]) -> List[CategoryRow]:
        owner = owner_for(credential)
        now = datetime.now(timezone.utc).isoformat()
        created = [
            CategoryRow(id=str(uuid.uuid4()), name=item["name"], type=item["type"])
            for item in items
        ]

        conn = self.get_connection()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO categories (id, owner, name, name_key, type, color, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [
                        (row.id, owner, row.name, row.name.strip().lower(), row.type, row.color, now)
                        for row in created
                    ]
                )
            return created
        except sqlite3.IntegrityError as e:
            logger.warning(f"Category insert conflict: {e}")
            raise CategoryConflictError(
                str(e),
                details={"keys": [category_key(row.name, row.type) for row in created]}
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to insert categories: {e}")
            raise StoreError(str(e), details={"operation": "insert_categories"})
        finally:
            conn.close()

    def insert_transactions(self, credential: str, rows: Iterable[TransactionInsert]) -> List[str]:
        owner = owner_for(credential)
        now = datetime.now(timezone.utc).isoformat()
        records = [(str(uuid.uuid4()), row) for row in rows]

        conn = self.get_connection()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO transactions "
                    "(id, owner, occurred_on, description, amount, type, category_id, notes, source, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            row_id, owner, row.occurred_on, row.description, row.amount,
                            row.type, row.category_id, row.notes, row.source, now,
                        )
                        for row_id, row in records
                    ]
                )
            return [row_id for row_id, _ in records]
        except sqlite3.Error as e:
            logger.error(f"Failed to insert transactions: {e}")
            raise StoreError(str(e), details={"operation": "insert_transactions"})
        finally:
            conn.close()

    def count_transactions(self, credential: str) -> int:
        """Number of transactions stored for the caller."""
        conn = self.get_connection()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM transactions WHERE owner = ?",
                (owner_for(credential),)
            ).fetchone()
            return int(row["total"])
        finally:
            conn.close()

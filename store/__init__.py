"""
Backing store construction.

This package contains:
- client: REST client for a hosted PostgREST-style store

build_store picks the SQLite or REST store from settings. The caller owns
the returned handle.
"""
from core.config import Settings
from core.db import SQLiteStore, TransactionStore
from core.exceptions import ConfigurationError
from core.logger import setup_logger
from store.client import RestStore

logger = setup_logger(__name__)

__all__ = ["RestStore", "build_store"]


def build_store(settings: Settings) -> TransactionStore:
    """
    Create the store configured by STORE_BACKEND.

    Raises:
        ConfigurationError: If the REST backend is selected without URL/key
    """
    if settings.store_backend == "rest":
        if not settings.store_url or not settings.store_service_key:
            raise ConfigurationError(
                "Store environment variables are not configured.",
                details={"required_keys": ["STORE_URL", "STORE_SERVICE_KEY"]}
            )
        return RestStore(settings.store_url, settings.store_service_key, settings.store_timeout)

    logger.info(f"Using SQLite store at {settings.database_path}")
    return SQLiteStore(settings.database_path)

"""Pytest configuration and fixtures for the ledger import service."""
import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from core.config import Settings, reset_settings
from core.db import SQLiteStore

AUTH_HEADER = "Bearer test-user-token-0001"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host environment variables out of Settings."""
    for name in (
        "APP_NAME", "HOST", "PORT", "LOG_LEVEL", "CORS_ALLOW_ORIGINS",
        "STORE_BACKEND", "DATABASE_PATH", "STORE_URL", "STORE_SERVICE_KEY",
        "STORE_TIMEOUT", "MAX_UPLOAD_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def store(tmp_path):
    """SQLite store in a temporary directory."""
    return SQLiteStore(str(tmp_path / "ledger-test.db"))


@pytest.fixture
def credential():
    return AUTH_HEADER


@pytest.fixture
def client(store):
    """Test client wired to the temporary store."""
    app = create_app(store=store, settings=Settings())
    return TestClient(app)


@pytest.fixture
def sample_csv_content():
    """Sample bank export with one repeated row."""
    return (
        "Date,Description,Amount,Category\n"
        "2024-06-01,Coffee,-3.50,Cafe\n"
        "2024-06-01,Coffee,-3.50,Cafe\n"
        "2024-06-05,Salary,1500,Income"
    )


@pytest.fixture
def sample_payload():
    """Valid import request body."""
    return {
        "transactions": [
            {"occurredOn": "2024-06-01", "description": "Coffee", "amount": 3.5,
             "type": "expense", "category": "Cafe"},
            {"occurredOn": "2024-06-02", "description": "Groceries", "amount": 42.1,
             "type": "expense", "category": "Food", "notes": "weekly shop"},
            {"occurredOn": "2024-06-05", "description": "Salary", "amount": 1500,
             "type": "income", "category": "Salary", "source": "manual"},
        ]
    }

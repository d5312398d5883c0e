"""
Tests for the REST store client and store factory.
"""
import json
from unittest.mock import MagicMock

import pytest
import requests

from core.config import get_settings
from core.db import SQLiteStore
from core.exceptions import CategoryConflictError, ConfigurationError, StoreError
from core.schema import TransactionInsert
from store import RestStore, build_store


def make_response(status_code, body=None, url="https://store.example.test/rest/v1/categories"):
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def rest_store(session):
    return RestStore("https://store.example.test/", "service-key", timeout=5, session=session)


def test_fetch_categories_forwards_credential(rest_store, session, credential):
    session.request.return_value = make_response(200, [
        {"id": "c1", "name": "Cafe", "type": "expense", "color": "#ff0000"},
        {"id": 2, "name": "Salary", "type": "income", "color": None},
    ])

    rows = rest_store.fetch_categories(credential)

    assert [(row.id, row.name) for row in rows] == [("c1", "Cafe"), ("2", "Salary")]
    method, url = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert method == "GET"
    assert url == "https://store.example.test/rest/v1/categories"
    assert kwargs["headers"]["Authorization"] == credential
    assert kwargs["headers"]["apikey"] == "service-key"
    assert kwargs["params"] == {"select": "id,name,type,color"}
    assert kwargs["timeout"] == 5


def test_insert_categories_posts_names(rest_store, session, credential):
    session.request.return_value = make_response(201, [{"id": "c9", "name": "Food", "type": "expense"}])

    rows = rest_store.insert_categories(credential, [{"name": "Food", "type": "expense"}])

    assert rows[0].id == "c9"
    assert json.loads(session.request.call_args.kwargs["data"]) == [{"name": "Food", "type": "expense"}]
    assert session.request.call_args.kwargs["headers"]["Prefer"] == "return=representation"


def test_insert_transactions_returns_ids(rest_store, session, credential):
    session.request.return_value = make_response(201, [{"id": "t1"}, {"id": "t2"}])

    ids = rest_store.insert_transactions(credential, [
        TransactionInsert(occurred_on="2024-06-01", description="Coffee", amount=3.5, type="expense", source="csv"),
        TransactionInsert(occurred_on="2024-06-02", description="Tea", amount=2.0, type="expense", source="csv"),
    ])

    assert ids == ["t1", "t2"]
    sent = json.loads(session.request.call_args.kwargs["data"])
    assert sent[0] == {
        "occurred_on": "2024-06-01", "description": "Coffee", "amount": 3.5, "type": "expense",
        "category_id": None, "notes": None, "source": "csv",
    }


def test_conflict_maps_to_category_conflict(rest_store, session, credential):
    session.request.return_value = make_response(409, {"message": "duplicate key value violates unique constraint"})

    with pytest.raises(CategoryConflictError) as exc_info:
        rest_store.insert_categories(credential, [{"name": "Food", "type": "expense"}])

    assert exc_info.value.message == "duplicate key value violates unique constraint"
    assert exc_info.value.details["status_code"] == 409


def test_http_error_maps_to_store_error(rest_store, session, credential):
    session.request.return_value = make_response(403, {"message": "permission denied for table categories"})

    with pytest.raises(StoreError) as exc_info:
        rest_store.fetch_categories(credential)

    assert not isinstance(exc_info.value, CategoryConflictError)
    assert exc_info.value.message == "permission denied for table categories"


def test_timeout_maps_to_store_error(rest_store, session, credential):
    session.request.side_effect = requests.exceptions.Timeout("read timed out")

    with pytest.raises(StoreError, match="timed out after 5s"):
        rest_store.fetch_categories(credential)


def test_connection_error_maps_to_store_error(rest_store, session, credential):
    session.request.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(StoreError, match="failed to connect"):
        rest_store.fetch_categories(credential)


def test_invalid_json_maps_to_store_error(rest_store, session, credential):
    response = make_response(200)
    response._content = b"<html>gateway</html>"
    session.request.return_value = response

    with pytest.raises(StoreError, match="invalid JSON"):
        rest_store.fetch_categories(credential)


def test_close_closes_session(rest_store, session):
    rest_store.close()
    session.close.assert_called_once()


def test_build_store_defaults_to_sqlite(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "factory.db"))
    assert isinstance(build_store(get_settings()), SQLiteStore)


def test_build_store_rest(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "rest")
    monkeypatch.setenv("STORE_URL", "https://store.example.test")
    monkeypatch.setenv("STORE_SERVICE_KEY", "service-key")

    store = build_store(get_settings())

    assert isinstance(store, RestStore)
    assert store.base_url == "https://store.example.test"
    store.close()


def test_build_store_rest_requires_credentials(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "rest")

    with pytest.raises(ConfigurationError, match="Store environment variables are not configured."):
        build_store(get_settings())

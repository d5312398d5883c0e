"""
REST client for a hosted PostgREST-style store.
The caller's Authorization header is forwarded untouched so the hosted
store applies its own row-level access rules.
"""
import json
from typing import Any, Dict, Iterable, List, Optional

import requests

from core.db import TransactionStore
from core.exceptions import CategoryConflictError, StoreError
from core.logger import mask_secret, setup_logger
from core.schema import CategoryRow, TransactionInsert

logger = setup_logger(__name__)

CATEGORY_COLUMNS = "id,name,type,color"


class RestStore(TransactionStore):
    """TransactionStore talking to /rest/v1/<table> endpoints."""

    def __init__(self, base_url: str, service_key: str, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        """
        Args:
            base_url: Store root URL, e.g. https://project.example.co
            service_key: Key sent as the apikey header
            timeout: Request timeout in seconds
            session: Optional requests session (owned by the caller)
        """
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

        logger.info(f"Initialized REST store client for {self.base_url}")

    def close(self) -> None:
        self.session.close()

    def _headers(self, credential: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "apikey": self.service_key,
            "Authorization": credential,
            "Prefer": "return=representation",
        }

    def _request(
        self,
        method: str,
        table: str,
        credential: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Raises:
            CategoryConflictError: On HTTP 409
            StoreError: On timeouts, connection failures and other HTTP errors
        """
        url = f"{self.base_url}/rest/v1/{table}"
        logger.debug(f"{method} {url} (credential={mask_secret(credential)})")

        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(credential),
                params=params,
                data=json.dumps(payload) if payload is not None else None,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json() if response.content else []

        except requests.exceptions.Timeout as e:
            logger.error(f"Store request timeout after {self.timeout}s: {e}")
            raise StoreError(
                f"request timed out after {self.timeout}s",
                details={"url": url, "timeout": self.timeout}
            )

        except requests.exceptions.HTTPError as e:
            status_code = getattr(e.response, "status_code", None)
            response_text = getattr(e.response, "text", None)
            details = {"url": url, "status_code": status_code, "response_text": response_text}
            if status_code == 409:
                logger.warning(f"Store conflict on {table}: {response_text}")
                raise CategoryConflictError(_error_message(e.response), details=details)
            logger.error(f"Store HTTP error: {e}")
            raise StoreError(_error_message(e.response), details=details)

        except ValueError as e:
            logger.error(f"Store returned invalid JSON: {e}")
            raise StoreError(
                f"store returned invalid JSON: {e}",
                details={"url": url}
            )

        except requests.exceptions.RequestException as e:
            logger.error(f"Store request failed: {e}")
            raise StoreError(
                f"failed to connect to store: {e}",
                details={"url": url, "error": str(e)}
            )

    def fetch_categories(self, credential: str) -> List[CategoryRow]:
        rows = self._request("GET", "categories", credential, params={"select": CATEGORY_COLUMNS})
        return [CategoryRow(**row) for row in rows]

    def insert_categories(self, credential: str, items: Iterable[dict]) -> List[CategoryRow]:
        payload = [{"name": item["name"], "type": item["type"]} for item in items]
        rows = self._request(
            "POST", "categories", credential,
            params={"select": CATEGORY_COLUMNS},
            payload=payload,
        )
        return [CategoryRow(**row) for row in rows]

    def insert_transactions(self, credential: str, rows: Iterable[TransactionInsert]) -> List[str]:
        payload = [row.model_dump() for row in rows]
        inserted = self._request(
            "POST", "transactions", credential,
            params={"select": "id"},
            payload=payload,
        )
        return [str(row["id"]) for row in inserted]


def _error_message(response: Optional[requests.Response]) -> str:
    """Pull the store's error message out of an error response."""
    if response is None:
        return "unknown store error"
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"

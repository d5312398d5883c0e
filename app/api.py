"""
FastAPI routes for CSV parsing and transaction import.
The store handle is created by the app (or injected) and handed to the
services per request.
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as PydanticValidationError

from core.config import Settings, get_settings
from core.db import TransactionStore
from core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    CsvStructureError,
    FileProcessingError,
    StoreError,
    ValidationError,
)
from core.logger import setup_logger
from core.schema import CsvParseOptions
from services.csv_service import parse_upload
from services.import_service import ImportService
from store import build_store

logger = setup_logger(__name__)

API_VERSION = "1.0.0"
CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def error_response(status_code: int, message: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """JSON error body: {error, details?}."""
    body: Dict[str, Any] = {"error": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def resolve_store(app: FastAPI) -> TransactionStore:
    """
    Return the app's store, building it from settings on first use.

    Raises:
        ConfigurationError: If the configured backend cannot be built
    """
    if app.state.store is None:
        app.state.store = build_store(app.state.settings)
        app.state.owns_store = True
    return app.state.store


def create_app(store: Optional[TransactionStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: Store to use; when omitted one is built from settings on first import
        settings: Settings override (defaults to get_settings())

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if app.state.owns_store and app.state.store is not None:
            app.state.store.close()
            logger.info("Store closed")

    app = FastAPI(
        title="Ledger Import Service",
        description="Parse bank-export CSV files and import transactions",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.owns_store = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "ledger_import",
            "version": API_VERSION
        }

    @app.post("/parse")
    async def parse_csv(
        file: UploadFile = File(...),
        delimiter: str = Form(","),
        decimal_separator: str = Form("."),
        source_name: Optional[str] = Form(None),
    ):
        """
        Parse an uploaded CSV file.

        Returns:
            CsvParseResult with camelCase keys
        """
        logger.info(f"Received CSV upload: {file.filename}")

        try:
            options = CsvParseOptions(
                delimiter=delimiter,
                decimal_separator=decimal_separator,
                source_name=source_name or None,
            )
        except PydanticValidationError as e:
            messages = "; ".join(error["msg"] for error in e.errors())
            return error_response(400, f"Invalid parse options: {messages}")

        content = await file.read()

        try:
            result = parse_upload(
                file.filename,
                file.content_type,
                content,
                settings.max_upload_bytes,
                options,
            )
        except (FileProcessingError, CsvStructureError) as e:
            logger.warning(f"Rejected upload {file.filename}: {e.message}")
            return error_response(400, e.message)

        return result.to_wire()

    @app.options("/import")
    async def import_preflight():
        """Answer bare pre-flight probes."""
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
            },
        )

    @app.post("/import")
    async def import_transactions(request: Request):
        """
        Import a batch of transactions.

        Body: {"transactions": [{occurredOn, description, amount, type, category?, notes?, source?}]}

        Returns:
            ImportSummary with camelCase keys
        """
        try:
            store = resolve_store(request.app)

            credential = request.headers.get("authorization")
            if not credential:
                raise AuthorizationError("Authorization header is required.")

            try:
                payload = await request.json()
            except ValueError:
                raise ValidationError("Request body must be valid JSON.")

            service = ImportService(store)
            summary = await run_in_threadpool(service.import_transactions, credential, payload)

        except AuthorizationError as e:
            logger.warning(f"Import rejected: {e.message}")
            return error_response(401, e.message)

        except ValidationError as e:
            logger.warning(f"Import rejected: {e.message}")
            return error_response(400, e.message)

        except (StoreError, ConfigurationError) as e:
            logger.error(f"Import failed: {e.message}")
            return error_response(500, e.message, e.details)

        return summary.to_wire()

    @app.api_route("/import", methods=["GET", "PUT", "PATCH", "DELETE"])
    async def import_method_not_allowed():
        return error_response(405, "Method not allowed")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    _settings = get_settings()
    uvicorn.run(app, host=_settings.host, port=_settings.port)

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from fastapi import APIRouter, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..config.loader import AppConfig
from ..db.insert import StoreError
from ..db.store import Store, connect
from ..logging.error_log import ErrorLogBuffer
from ..models.import_kind import ImportKind, InvalidImportKindError
from ..parsing.reader import ParseError
from ..services.export import export_filename, export_workbook
from ..services.mapping import MappingIncompleteError
from ..services.orchestrator import ProcessingError, commit_file, preview_file, process_client_records
from ..services.templates import build_template
from ..services.validation import ValidationError

"""HTTP surface of the import pipeline.

Routes mirror the CRM's configuration screens:

- POST /api/configuration/spreadsheet/preview
- POST /api/configuration/spreadsheet/import
- POST /api/configuration/csv/process
- GET  /api/configuration/spreadsheet/template
- GET  /api/export/{type}

Every failure is answered as ``{"error": ..., "message": ...}``: 400 for
anything wrong with the request or its data, 413 for oversized uploads, 500
for store failures and unexpected exceptions.
"""

__all__ = [
    "StoreProvider",
    "UploadTooLargeError",
    "create_app",
]

logger = logging.getLogger(__name__)

StoreProvider = Callable[[], AbstractContextManager[Store]]


class UploadTooLargeError(Exception):
    pass


def _error(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ParseError)
    async def _parse(request: Request, exc: ParseError) -> JSONResponse:
        return _error(400, "parse_error", str(exc))

    @app.exception_handler(MappingIncompleteError)
    async def _mapping(request: Request, exc: MappingIncompleteError) -> JSONResponse:
        return _error(400, "mapping_incomplete", str(exc), missing=exc.missing)

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, "validation_error", str(exc), rule=exc.rule, count=exc.offending_count)

    @app.exception_handler(InvalidImportKindError)
    async def _kind(request: Request, exc: InvalidImportKindError) -> JSONResponse:
        return _error(400, "invalid_type", str(exc))

    @app.exception_handler(ProcessingError)
    async def _processing(request: Request, exc: ProcessingError) -> JSONResponse:
        return _error(400, "bad_request", str(exc))

    @app.exception_handler(UploadTooLargeError)
    async def _too_large(request: Request, exc: UploadTooLargeError) -> JSONResponse:
        return _error(413, "file_too_large", str(exc))

    @app.exception_handler(StoreError)
    async def _store(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(f"{request.url.path}: store failure: {exc}")
        return _error(500, "store_error", str(exc))

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"{request.url.path}: unexpected failure")
        return _error(500, "internal_error", "Unexpected error while processing the import")


def create_app(config: AppConfig | None = None, store_provider: StoreProvider | None = None) -> FastAPI:
    """Build the FastAPI app.

    ``store_provider`` returns a context manager yielding a Store for one
    request; by default a PostgreSQL connection from ``config.database``.
    """
    config = config or AppConfig()
    settings = config.imports
    if store_provider is None:
        def store_provider() -> AbstractContextManager[Store]:
            return connect(config.database)

    app = FastAPI(title="crm-import")
    if config.api.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.api.allowed_origins),
            allow_methods=["*"],
            allow_headers=["*"],
        )
    _install_error_handlers(app)
    router = APIRouter()

    async def _read_upload(file: UploadFile) -> bytes:
        content = await file.read(settings.max_upload_bytes + 1)
        if len(content) > settings.max_upload_bytes:
            limit_mb = settings.max_upload_bytes / (1024 * 1024)
            raise UploadTooLargeError(f"{file.filename} exceeds the {limit_mb:g}MB upload limit")
        return content

    def _error_log() -> ErrorLogBuffer:
        return ErrorLogBuffer(settings.error_log_dir)

    @router.post("/api/configuration/spreadsheet/preview")
    async def spreadsheet_preview(
        file: UploadFile = File(...),
        type: str | None = Form(None),
    ) -> dict[str, Any]:
        content = await _read_upload(file)
        kind = ImportKind.parse(type)
        result = await run_in_threadpool(preview_file, content, kind, settings, filename=file.filename)
        logger.info(f"preview {file.filename}: kind={kind.value} total={result.total}")
        return result.to_response()

    @router.post("/api/configuration/spreadsheet/import")
    async def spreadsheet_import(
        file: UploadFile = File(...),
        type: str | None = Form(None),
        mappedData: str | None = Form(None),
        mappings: str | None = Form(None),
    ) -> dict[str, Any]:
        content = await _read_upload(file)
        kind = ImportKind.parse(type)

        def run() -> Any:
            with store_provider() as store:
                return commit_file(
                    content,
                    kind,
                    store,
                    settings,
                    filename=file.filename,
                    mappings=mappings,
                    mapped_data=mappedData,
                    error_log=_error_log(),
                    progress=False,
                )

        result = await run_in_threadpool(run)
        return result.to_response()

    @router.post("/api/configuration/csv/process")
    async def csv_process(request: Request) -> dict[str, Any]:
        try:
            payload = await request.json()
        except json.JSONDecodeError as e:
            raise ProcessingError(f"request body is not valid JSON: {e.msg}") from e

        def run() -> Any:
            with store_provider() as store:
                return process_client_records(payload, store, settings, error_log=_error_log(), progress=False)

        result = await run_in_threadpool(run)
        return result.to_response()

    @router.get("/api/configuration/spreadsheet/template")
    async def spreadsheet_template(
        type: str | None = Query(None),
        format: str = Query("csv"),
    ) -> Response:
        kind = ImportKind.parse(type)
        try:
            template = build_template(kind, format)
        except ValueError as e:
            raise ProcessingError(str(e)) from e
        return Response(
            content=template.content,
            media_type=template.media_type,
            headers={"Content-Disposition": f'attachment; filename="{template.filename}"'},
        )

    @router.get("/api/export/{type}")
    async def export(type: str) -> Response:
        kind = ImportKind.parse(type)

        def run() -> bytes:
            with store_provider() as store:
                rows = store.fetch_all(kind)
                customers = store.fetch_all(ImportKind.CUSTOMERS) if kind is ImportKind.SALES else None
                logger.info(f"export {kind.value}: {len(rows)} rows")
                return export_workbook(kind, rows, customers)

        content = await run_in_threadpool(run)
        return Response(
            content=content,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={
                "Content-Disposition": f"attachment; filename={export_filename(kind)}",
                "Cache-Control": "no-cache, no-store, must-revalidate",
            },
        )

    app.include_router(router)
    return app

"""Translate exceptions into ``{"error": message}`` JSON responses."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoicez.db import ProcedureError

logger = structlog.get_logger(__name__)


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _describe(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    described = []
    for error in errors:
        # Drop the "body" / "query" prefix so the field name reads like the request key.
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        described.append({"field": ".".join(loc) or "body", "message": str(error.get("msg", ""))})
    return described


async def procedure_error_handler(request: Request, exc: ProcedureError) -> JSONResponse:
    extra = {"details": exc.details} if exc.details is not None else {}
    return error_response(exc.status_code, exc.message, **extra)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = _describe(list(exc.errors()))
    missing = [d["field"] for d in details if d["message"].lower() == "field required"]
    if missing:
        message = f"{', '.join(missing)} required"
    else:
        message = "; ".join(f"{d['field']}: {d['message']}" for d in details) or "Invalid request"
    return error_response(400, message, details=details)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return error_response(500, str(exc) or exc.__class__.__name__)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProcedureError, procedure_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

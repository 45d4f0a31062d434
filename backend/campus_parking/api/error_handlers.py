"""
Exception handlers mapping request, engine and store errors to structured results

Every failure response has the shape
    {"success": false, "error": <kind>, "details": <text>, "field"?: <name>}
Stack traces go to the log, never into the payload.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as DocumentValidationError
import structlog

from campus_parking.database import StoreError, TransientStoreError, WriteConflictError
from campus_parking.sanctions import (
    ConflictError,
    NotFoundError,
    SanctionError,
    SweepIncompleteError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

SANCTION_STATUS_CODES = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (SweepIncompleteError, 500),
)


def _status_for(exc: SanctionError) -> int:
    for error_type, status_code in SANCTION_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def sanction_error_handler(request: Request, exc: SanctionError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.kind, details=exc.detail)
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.kind, details=exc.detail)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    if isinstance(exc, TransientStoreError):
        status_code, kind = 503, "store_unavailable"
    elif isinstance(exc, WriteConflictError):
        status_code, kind = 409, "conflict"
    else:
        status_code, kind = 500, "store_error"
    logger.error("store_failure", path=request.url.path, error=kind, details=exc.detail)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": kind, "details": exc.detail},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query or body input, reported on the first offending field"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = first.get("loc") or ()
    content = {
        "success": False,
        "error": ValidationError.kind,
        "details": first.get("msg", "Invalid request"),
    }
    if loc:
        content["field"] = str(loc[-1])
    logger.info("request_rejected", path=request.url.path, error=ValidationError.kind, details=content["details"])
    return JSONResponse(status_code=400, content=content)


async def document_validation_handler(request: Request, exc: DocumentValidationError) -> JSONResponse:
    logger.error("malformed_document", path=request.url.path, details=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "malformed_document",
            "details": f"Stored document failed validation: {exc.error_count()} invalid field(s)",
        },
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SanctionError, sanction_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(DocumentValidationError, document_validation_handler)

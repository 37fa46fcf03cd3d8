import logging
import uuid

from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from app.core.errors import DomainError
from app.schemas.response import ErrorBody, ErrorResponse

log = logging.getLogger(__name__)


def _rid():
    """Request id for the error body: the correlation id when the middleware set one."""
    return correlation_id.get() or uuid.uuid4().hex


def _error(status_code: int, **error) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(**error), request_id=_rid())
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ----------- Exception Handlers (called by FastAPI) -----------

def domain_exception_handler(request: Request, exc: DomainError):
    """Handles DomainError subclasses (missing idempotency key, conflicts, not found)."""
    return _error(exc.status_code, code=exc.code, title=exc.title, detail=exc.detail)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    return _error(exc.status_code, code="HTTP_ERROR", title="HTTP Error", detail=str(exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (400 with field details)."""
    return _error(
        400,
        code="VALIDATION_ERROR",
        title="Validation Error",
        detail="Invalid input data",
        errors=jsonable_encoder(exc.errors()),
    )


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)
    return _error(500, code="INTERNAL_ERROR", title="Internal Server Error", detail="An unexpected error occurred")


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app

"""Error taxonomy shared by services and routers.

Every error carries a stable machine-readable ``code`` next to the HTTP
status, and is rendered as ``{"error": {"code": ..., "message": ...}}``.
"""
from typing import Optional
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.logging import get_logger

logger = get_logger(__name__)


class DirectoryError(HTTPException):
    code = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=message or self.default_message,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return self.detail


class Unauthenticated(DirectoryError):
    code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class PermissionDenied(DirectoryError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Permission denied"


class NotFound(DirectoryError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ValidationFailed(DirectoryError):
    code = "validation_failed"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Conflict(DirectoryError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting request"


class Internal(DirectoryError):
    pass


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


async def directory_error_handler(request: Request, exc: DirectoryError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message),
        headers=exc.headers,
    )


STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ValidationFailed.code,
    status.HTTP_401_UNAUTHORIZED: Unauthenticated.code,
    status.HTTP_403_FORBIDDEN: PermissionDenied.code,
    status.HTTP_404_NOT_FOUND: NotFound.code,
    status.HTTP_409_CONFLICT: Conflict.code,
}


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Framework errors such as unknown routes or wrong methods
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(STATUS_CODES.get(exc.status_code, "http_error"), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Keep the first problem readable, e.g. "body.rating: Input should be ..."
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)
    return JSONResponse(
        status_code=ValidationFailed.status_code,
        content=error_body(ValidationFailed.code, message),
    )


async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("store_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=Internal.status_code,
        content=error_body(Internal.code, Internal.default_message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DirectoryError, directory_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)

from typing import Any, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from app.core.logging import get_logger

logger = get_logger("exceptions")


class FileStoreHTTPException(StarletteHTTPException):
    """HTTP error carrying a machine readable code next to the message"""

    error_code = "error"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any):
        detail = {"error": self.error_code, "message": message}
        detail.update(extra)
        super().__init__(status_code=status_code or self.default_status, detail=detail)
        self.message = message


class ValidationFailed(FileStoreHTTPException):
    error_code = "validation_error"
    default_status = status.HTTP_400_BAD_REQUEST


class AuthenticationRequired(FileStoreHTTPException):
    error_code = "authentication_required"
    default_status = status.HTTP_401_UNAUTHORIZED


class AccessForbidden(FileStoreHTTPException):
    """Access evaluator denial; always names the reason"""

    error_code = "forbidden"
    default_status = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str,
        reason: str,
        access_type: Optional[str] = None,
        required_roles: Optional[List[str]] = None,
    ):
        super().__init__(
            message,
            reason=reason,
            access_type=access_type,
            required_roles=required_roles or [],
        )
        self.reason = reason
        self.required_roles = required_roles or []


class Unauthorized(FileStoreHTTPException):
    """Role administration attempted by an identity lacking authority"""

    error_code = "unauthorized"
    default_status = status.HTTP_403_FORBIDDEN


class ResourceNotFound(FileStoreHTTPException):
    error_code = "not_found"
    default_status = status.HTTP_404_NOT_FOUND


class ResourceConflict(FileStoreHTTPException):
    error_code = "conflict"
    default_status = status.HTTP_409_CONFLICT


class StorageFailure(FileStoreHTTPException):
    error_code = "storage_error"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")

    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                **exc.detail,
            },
            headers=getattr(exc, "headers", None),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "status": "error",
            "message": str(exc.detail),
        },
        headers=getattr(exc, "headers", None),
    )


def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "status": "error",
            "message": "Validation error",
            "errors": [
                {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
                for error in exc.errors()
            ],
        },
    )


def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": "Internal server error",
            "errors": str(exc),
        },
    )


def integrity_error_handler(request: Request, exc: IntegrityError):
    """Handle database integrity violations like unique constraint errors."""
    error_msg = str(getattr(exc, "orig", exc))
    logger.error(f"Integrity Error: {error_msg}")
    if "Duplicate entry" in error_msg or "UNIQUE" in error_msg or "unique" in error_msg:
        return JSONResponse(
            status_code=409,
            content={
                "status": "error",
                "message": "Duplicate value violates a unique constraint.",
                "errors": error_msg,
            },
        )
    return JSONResponse(
        status_code=409,
        content={
            "status": "error",
            "message": "Data integrity violation.",
            "errors": error_msg
        },
    )


def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    """Catch-all for other SQLAlchemy errors."""
    logger.error(f"SQLAlchemy Error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": "Database error occurred.",
            "errors": str(exc),
        },
    )

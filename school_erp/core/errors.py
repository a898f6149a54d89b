from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

from school_erp.core.i18n import get_translation, language_from_header

logger = logging.getLogger(__name__)


class BaseAPIError(Exception):
    """Base exception class for API errors"""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(message)


class BadRequestError(BaseAPIError):
    """Raised when the request is well-formed but cannot be honoured"""
    def __init__(self, message: str = "Bad request", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BAD_REQUEST",
            details=details
        )


class ValidationError(BaseAPIError):
    """Raised when input validation fails"""
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            details=details
        )


class AuthenticationError(BaseAPIError):
    """Raised when the caller has no valid session or wrong credentials"""
    def __init__(
        self,
        message: str = "Authentication required",
        error_code: str = "AUTH_ERROR",
        details: Optional[Any] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code,
            details=details
        )


class InvalidCredentialsException(AuthenticationError):
    def __init__(self, message: str = "Invalid credentials", details: Optional[Any] = None):
        super().__init__(message=message, error_code="INVALID_CREDENTIALS", details=details)


class PermissionDenied(BaseAPIError):
    """Raised when user doesn't have required permissions"""
    def __init__(self, message: str = "Permission denied", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
            details=details
        )


class NotFoundError(BaseAPIError):
    """Raised when a requested resource is not found"""
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details
        )


class ConflictError(BaseAPIError):
    """Raised when a write collides with an existing row"""
    def __init__(self, message: str = "Resource already exists", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT",
            details=details
        )


class RateLimitExceeded(BaseAPIError):
    """Raised when rate limit is exceeded"""
    def __init__(self, message: str = "Too many requests", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_code="RATE_LIMIT_EXCEEDED",
            details=details
        )


def error_body(message: str, details: Any = None, code: Optional[str] = None) -> Dict[str, Any]:
    return {"error": message, "details": jsonable_encoder(details), "code": code}


def _translator(request: Request):
    return get_translation(language_from_header(request.headers.get("accept-language")))


async def api_error_handler(request: Request, exc: BaseAPIError) -> JSONResponse:
    translate = _translator(request)
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}", extra={"request_id": getattr(request.state, "request_id", None)})
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(translate(exc.message), exc.details, exc.error_code),
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    translate = _translator(request)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(translate(str(exc.detail)), None, "HTTP_ERROR"),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    translate = _translator(request)
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(translate("Validation error"), details, "VALIDATION_ERROR"),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"Integrity error: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body("Resource already exists", str(exc.orig), "CONFLICT"),
    )


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Database error: {str(exc)}", exc_info=exc)
    translate = _translator(request)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(translate("Database error occurred"), str(exc), "DB_ERROR"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=exc)
    translate = _translator(request)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(translate("Internal server error"), str(exc), "INTERNAL_ERROR"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

"""
Centralized Error Handling for Backoffice Admin

This module provides:
- Custom exception hierarchy
- Standardized error responses
- Error logging and tracking
- Impersonation, session and audit trail errors
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("backoffice.errors")


def _timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


class ErrorCode(str, Enum):
    """Standardized error codes"""

    # Validation Errors (400, 422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    # Authentication/Authorization Errors (401, 403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    SESSION_INVALID = "SESSION_INVALID"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    IMPERSONATION_DENIED = "IMPERSONATION_DENIED"

    # Resource Errors (404, 409)
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
    ACTIVITY_NOT_FOUND = "ACTIVITY_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Audit trail Errors
    AUDIT_WRITE_FAILED = "AUDIT_WRITE_FAILED"
    AUDIT_RECORD_IMMUTABLE = "AUDIT_RECORD_IMMUTABLE"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """
    Base exception for all application exceptions.

    Subclasses pick their error code, HTTP status and default message as
    class attributes and only override ``__init__`` to shape ``details``.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.default_message
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = _timestamp()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    code = ErrorCode.VALIDATION_ERROR
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


# ============================================================================
# Authentication/Authorization Exceptions
# ============================================================================

class AuthenticationException(AppException):
    code = ErrorCode.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class InvalidCredentialsException(AuthenticationException):
    """Email/password pair did not match an account"""

    code = ErrorCode.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class AccountDisabledException(AuthenticationException):
    """Account exists but is not active"""

    code = ErrorCode.ACCOUNT_DISABLED

    def __init__(self, status_value: str):
        super().__init__("Account is not active", details={"status": status_value})


class TokenExpiredException(AuthenticationException):
    code = ErrorCode.TOKEN_EXPIRED
    default_message = "Access token has expired"


class TokenInvalidException(AuthenticationException):
    code = ErrorCode.TOKEN_INVALID
    default_message = "Invalid access token"


class SessionInvalidError(AuthenticationException):
    """
    The impersonation session is missing, or a principal it refers to can no
    longer be resolved. Routers turn this into a redirect to the login page.
    """

    code = ErrorCode.SESSION_INVALID
    default_message = "No valid impersonation session"


class AuthorizationException(AppException):
    code = ErrorCode.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Permission denied"


class InsufficientPermissionsException(AuthorizationException):
    code = ErrorCode.INSUFFICIENT_PERMISSIONS

    def __init__(self, required_permission: str):
        super().__init__(
            f"Insufficient permissions. Required: {required_permission}",
            details={"required_permission": required_permission},
        )


class AuthorizationError(AuthorizationException):
    """The impersonation predicate refused the actor/target pair."""

    code = ErrorCode.IMPERSONATION_DENIED

    def __init__(self, reason: str, target_id: Optional[Union[str, UUID]] = None):
        details = {"reason": reason}
        if target_id:
            details["target_id"] = str(target_id)
        super().__init__(f"Impersonation denied: {reason}", details=details)
        self.reason = reason


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"{resource_type} with ID '{resource_id}' not found" if resource_id else f"{resource_type} not found"
        super().__init__(
            message,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class UserNotFoundException(NotFoundException):
    code = ErrorCode.USER_NOT_FOUND

    def __init__(self, user_id: Optional[Union[str, UUID]] = None, email: Optional[str] = None):
        message = f"User with email '{email}' not found" if email else None
        super().__init__("User", None if email else user_id, message=message)


class RoleNotFoundException(NotFoundException):
    code = ErrorCode.ROLE_NOT_FOUND

    def __init__(self, role_name: str):
        super().__init__("Role", message=f"Role '{role_name}' not found")


class ActivityNotFoundException(NotFoundException):
    """Activity log entry not found"""

    code = ErrorCode.ACTIVITY_NOT_FOUND

    def __init__(self, activity_id: Union[str, UUID]):
        super().__init__("Activity", activity_id)


class ConflictException(AppException):
    code = ErrorCode.RESOURCE_CONFLICT
    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if resource_type:
            details["resource_type"] = resource_type
        super().__init__(message, code=code, details=details)


class DuplicateEntryException(ConflictException):
    code = ErrorCode.DUPLICATE_ENTRY

    def __init__(self, resource_type: str, field: str, value: str):
        super().__init__(
            f"{resource_type} with {field} '{value}' already exists",
            resource_type=resource_type,
            details={"field": field, "value": value},
        )


# ============================================================================
# Database / Audit Exceptions
# ============================================================================

class DatabaseException(AppException):
    code = ErrorCode.DATABASE_ERROR
    default_message = "A database error occurred"


class AuditWriteError(DatabaseException):
    """Appending to the activity log failed. The request must not succeed."""

    code = ErrorCode.AUDIT_WRITE_FAILED

    def __init__(self, event: str, original_error: Optional[Exception] = None):
        super().__init__(f"Failed to record activity '{event}'", original_error=original_error)
        self.event = event


class ImmutableAuditRecordError(DatabaseException):
    """Raised on any attempt to update or delete an activity log row."""

    code = ErrorCode.AUDIT_RECORD_IMMUTABLE

    def __init__(self, operation: str):
        super().__init__(f"Activity log entries are append-only ({operation} refused)")


# ============================================================================
# Exception Handlers
# ============================================================================

# Status codes raised as plain HTTPException (mostly by routing itself)
HTTP_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.RESOURCE_CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_ERROR,
}


def render_error(exc: AppException, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Serialize an AppException into the standard error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_dict()},
        headers=headers,
    )


def classify_database_error(exc: SQLAlchemyError) -> AppException:
    """Map a driver level failure onto an application error without leaking SQL."""
    if isinstance(exc, IntegrityError):
        reason = str(exc.orig).lower() if exc.orig else ""
        if "unique" in reason or "duplicate" in reason:
            return ConflictException(
                message="A record with this value already exists",
                code=ErrorCode.DUPLICATE_ENTRY,
            )
        error = DatabaseException(
            message="Data integrity constraint violated",
            code=ErrorCode.DATA_INTEGRITY_ERROR,
            original_error=exc,
        )
        if "foreign key" in reason:
            error.message = "Referenced record does not exist"
            error.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        return error
    if isinstance(exc, OperationalError):
        return DatabaseException("Database operation failed", code=ErrorCode.CONNECTION_ERROR, original_error=exc)
    if isinstance(exc, DataError):
        error = DatabaseException("Invalid data format for database", original_error=exc)
        error.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        return error
    return DatabaseException(original_error=exc)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.code.value} on {request.method} {request.url.path}: {exc.message}",
        extra={"code": exc.code.value, "details": exc.details},
        exc_info=exc.original_error,
    )
    return render_error(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = HTTP_STATUS_CODES.get(
        exc.status_code,
        ErrorCode.INVALID_INPUT if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR,
    )
    logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {message}")
    return render_error(
        AppException(code=code, message=message, status_code=exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"{len(errors)} validation error(s) on {request.method} {request.url.path}",
        extra={"errors": errors},
    )
    return render_error(ValidationException("Request validation failed", details={"errors": errors}))


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        f"{type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=True,
    )
    return render_error(classify_database_error(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=True,
    )
    return render_error(
        AppException(
            code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred. Please try again later.",
        )
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Error Tracking Middleware
# ============================================================================

class ErrorTrackingMiddleware:
    """Logs requests that escape every handler before re-raising."""

    def __init__(self, app: FastAPI):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            logger.error(
                f"Request {scope.get('method')} {scope.get('path', 'unknown')} failed",
                extra={"exception_type": type(exc).__name__},
                exc_info=True,
            )
            raise

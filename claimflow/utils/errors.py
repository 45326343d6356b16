"""
Application Errors
Typed, HTTP-aware error hierarchy shared by services and routes
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/

Every error is an HTTPException so FastAPI can render it directly, and also
carries a machine-readable ``code``, ``details`` and an ``is_operational``
flag. Operational errors are expected outcomes whose message is safe to show;
non-operational errors are logged in full and surfaced with a generic message.
"""

from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


class AppError(HTTPException):
    """Base class for application errors."""

    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    is_operational: bool = True

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=self.status_code_default, detail=message, headers=headers)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return self.message


class BadRequestError(AppError):
    """Request is well-formed but not acceptable in the current state"""

    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class ValidationError(AppError):
    """Raised when input or claim state fails validation.

    ``fields`` names the offending attributes so clients can self-correct.
    """

    status_code_default = 422
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Validation error",
        fields: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.fields = list(fields or [])
        merged = dict(details or {})
        if self.fields:
            merged["fields"] = self.fields
        super().__init__(message, merged or None)


class AuthenticationError(AppError):
    """Raised when authentication fails"""

    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(AppError):
    """Raised when the caller's permissions or scope do not allow the action"""

    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFoundError(AppError):
    """Raised when resource not found (or not visible to the caller)"""

    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(AppError):
    """Raised when a precondition no longer holds at write time"""

    status_code_default = status.HTTP_409_CONFLICT
    code = "CONFLICT"

    def __init__(
        self,
        message: str = "Resource conflict",
        expected: str | None = None,
        actual: str | None = None,
    ):
        self.expected = expected
        self.actual = actual
        details = None
        if expected is not None or actual is not None:
            details = {"expected": expected, "actual": actual}
        super().__init__(message, details)


class InternalError(AppError):
    """Infrastructure failure; the message is never shown to the caller"""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    is_operational = False

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


# =============================================================================
# Exception handlers
# =============================================================================


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.is_operational:
        body = exc.to_dict()
    else:
        logger.opt(exception=exc).error(
            f"Internal error on {request.method} {request.url.path}: {exc.message}"
        )
        body = {"code": exc.code, "message": "Internal server error"}
    return JSONResponse(status_code=exc.status_code, content={"error": body}, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)

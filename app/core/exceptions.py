from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(message, code="CONFLICT", status_code=status.HTTP_409_CONFLICT, details=details)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class DomainError(AppError):
    """Ledger / workflow failure. Reported to the caller as a failed result (400)."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message, code=code, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InsufficientCreditsError(DomainError):
    def __init__(self, balance: int, required: int, credit_type: str = "listing"):
        super().__init__(
            f"Insufficient credits. Current balance: {balance}, Required: {required}",
            code="INSUFFICIENT_CREDITS",
            details={"balance": balance, "required": required, "credit_type": credit_type},
        )


class ProfileNotFoundError(DomainError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="PROFILE_NOT_FOUND")


class RequestNotFoundError(DomainError):
    def __init__(self, message: str = "Pending request not found"):
        super().__init__(message, code="REQUEST_NOT_FOUND")


class RequestAlreadyProcessedError(DomainError):
    def __init__(self, message: str = "Pending request not found or already processed"):
        super().__init__(message, code="REQUEST_ALREADY_PROCESSED")


class ImmutableRecordError(DomainError):
    def __init__(self, message: str = "Transaction records are append-only"):
        super().__init__(message, code="IMMUTABLE_RECORD")


def error_body(exc: AppError) -> dict[str, Any]:
    return {
        "success": False,
        "error": exc.message,
        "code": exc.code,
        "details": exc.details,
    }


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = error_body(exc)
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "success": False,
        "error": "Validation error",
        "code": "VALIDATION_ERROR",
        "details": {"errors": jsonable_errors(exc.errors())},
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body,
    )


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Pydantic error dicts may carry exception objects in ctx; keep the printable parts."""
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in errors
    ]


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from app.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "success": False,
        "error": "Internal server error",
        "code": "INTERNAL_ERROR",
        "details": {},
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )

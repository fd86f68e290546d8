"""
Request dispatcher: runs a service operation and renders its outcome.

Routers resolve the identity claim (app.auth.dependencies.get_current_claim),
build the typed request and hand the service call to `dispatch`. Domain error
outcomes are mapped to HTTP statuses through one fixed table; persistence and
unexpected exceptions are normalized here, once, into the same error shape.
"""
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import DataError, IntegrityError

from app.core.config import settings
from app.core.enums import ErrorCode
from app.core.exceptions import ServiceError
from app.core.outcomes import ErrorOutcome, FieldErrorDetail

logger = logging.getLogger(__name__)


STATUS_BY_CODE: Dict[ErrorCode, int] = {
    # 400 Bad Request
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_ID: status.HTTP_400_BAD_REQUEST,
    # 401 Unauthorized
    ErrorCode.NO_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_FAILED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NO_AUTH: status.HTTP_401_UNAUTHORIZED,
    # 403 Forbidden
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.NO_PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorCode.ACCOUNT_INACTIVE: status.HTTP_403_FORBIDDEN,
    # 404 Not Found
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SCHOOL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    # 409 Conflict
    ErrorCode.DUPLICATE: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_ERROR: status.HTTP_409_CONFLICT,
    ErrorCode.USER_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    # 422 business rules
    ErrorCode.BUSINESS_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.CAPACITY_FULL: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_OPERATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    # 500
    ErrorCode.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_code(code: Any) -> int:
    """HTTP status for an error code. Unmapped codes are client errors (400)."""
    try:
        return STATUS_BY_CODE.get(ErrorCode(code), status.HTTP_400_BAD_REQUEST)
    except ValueError:
        return status.HTTP_400_BAD_REQUEST


def render_error(outcome: ErrorOutcome, status_code: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or status_for_code(outcome.code),
        content=outcome.model_dump(mode="json", exclude_none=True),
    )


# sqlite: "UNIQUE constraint failed: schools.name"
# postgres: 'Key (name)=(Acme) already exists.'
_UNIQUE_FIELD_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)="),
)


def _duplicate_field(exc: IntegrityError) -> Optional[str]:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in _UNIQUE_FIELD_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _violation_kind(exc: IntegrityError) -> Optional[str]:
    """Classify the violated constraint; None for anything else (NOT NULL, ...)."""
    text = (str(exc.orig) if exc.orig is not None else str(exc)).lower()
    if "unique constraint" in text or "duplicate key" in text:
        return "unique"
    if "check constraint" in text:
        return "check"
    if "foreign key" in text:
        return "foreign_key"
    return None


def _validation_details(errors: List[dict], skip: Tuple[str, ...] = ()) -> List[FieldErrorDetail]:
    details = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if str(p) not in skip]
        details.append(FieldErrorDetail(field=".".join(loc), message=err.get("msg", "Invalid value")))
    return details


def normalize_exception(exc: Exception, operation_name: str = "operation") -> Tuple[ErrorOutcome, int]:
    """Map an exception raised by a service into the common error outcome."""
    if isinstance(exc, ServiceError):
        if exc.status_code >= 500:
            logger.error("Service failure in %s: %s", operation_name, exc.message, exc_info=exc)
        return ErrorOutcome(error=exc.message, code=exc.code), exc.status_code

    if isinstance(exc, IntegrityError):
        kind = _violation_kind(exc)
        if kind == "unique":
            field = _duplicate_field(exc)
            message = f"Duplicate {field}" if field else "Duplicate value"
            return ErrorOutcome(error=message, code=ErrorCode.DUPLICATE_ERROR), status.HTTP_409_CONFLICT
        if kind == "check":
            return (
                ErrorOutcome(error="Validation failed", code=ErrorCode.VALIDATION_ERROR),
                status.HTTP_400_BAD_REQUEST,
            )
        if kind == "foreign_key":
            return (
                ErrorOutcome(error="Referenced record does not exist", code=ErrorCode.VALIDATION_ERROR),
                status.HTTP_400_BAD_REQUEST,
            )
        # other integrity failures are server defects

    if isinstance(exc, DataError):
        return ErrorOutcome(error="Invalid ID format", code=ErrorCode.INVALID_ID), status.HTTP_400_BAD_REQUEST

    if isinstance(exc, ValidationError):
        return (
            ErrorOutcome(
                error="Validation failed",
                code=ErrorCode.VALIDATION_ERROR,
                details=_validation_details(exc.errors()),
            ),
            status.HTTP_400_BAD_REQUEST,
        )

    logger.exception("Manager execution error [%s]", operation_name)
    message = "Internal server error"
    if settings.is_development:
        message = f"{message}: {exc}"
    return ErrorOutcome(error=message, code=ErrorCode.SERVER_ERROR), status.HTTP_500_INTERNAL_SERVER_ERROR


async def dispatch(
    operation: Callable[..., Awaitable[Any]],
    *args: Any,
    success_status: int = status.HTTP_200_OK,
    **kwargs: Any,
) -> JSONResponse:
    """Await a service operation and translate its outcome into a response.

    Success payloads are wrapped as {"success": true, ...}; ErrorOutcome values and
    exceptions become {"error", "code", "details"?} with the mapped status.
    """
    operation_name = getattr(operation, "__qualname__", repr(operation))
    try:
        result = await operation(*args, **kwargs)
    except Exception as exc:
        outcome, status_code = normalize_exception(exc, operation_name)
        return render_error(outcome, status_code)

    if isinstance(result, ErrorOutcome):
        return render_error(result)

    if isinstance(result, BaseModel):
        payload = result.model_dump(mode="json")
    else:
        payload = dict(result or {})
    if payload.get("message") is None:
        payload.pop("message", None)
    return JSONResponse(status_code=success_status, content={"success": True, **payload})


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    outcome, status_code = normalize_exception(exc, request.url.path)
    return render_error(outcome, status_code)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(err.get("loc", ("",))[0] == "path" and err.get("type") == "uuid_parsing" for err in errors):
        return render_error(ErrorOutcome(error="Invalid ID format", code=ErrorCode.INVALID_ID))
    return render_error(
        ErrorOutcome(
            error="Validation error",
            code=ErrorCode.VALIDATION_ERROR,
            details=_validation_details(errors, skip=("body",)),
        )
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    outcome, status_code = normalize_exception(exc, request.url.path)
    return render_error(outcome, status_code)


def register_exception_handlers(app: FastAPI) -> None:
    """Render failures raised outside `dispatch` (dependencies, request parsing) in the same shape."""
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

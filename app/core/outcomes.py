"""
Typed outcomes returned by service functions.

A service returns either its success payload (a pydantic model) or an ErrorOutcome.
Only the dispatcher turns outcomes into HTTP responses.
"""
from typing import List, Optional

from pydantic import BaseModel

from app.core.enums import ErrorCode


class FieldErrorDetail(BaseModel):
    field: str
    message: str


class ErrorOutcome(BaseModel):
    """Failed domain outcome: human-readable `error` plus a stable `code`."""

    error: str
    code: ErrorCode
    details: Optional[List[FieldErrorDetail]] = None


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


def paginate(page: int, page_size: int, total: int) -> Pagination:
    return Pagination(
        page=page,
        page_size=page_size,
        total=total,
        total_pages=(total + page_size - 1) // page_size if page_size else 0,
    )


def forbidden(message: str) -> ErrorOutcome:
    return ErrorOutcome(error=message, code=ErrorCode.FORBIDDEN)


def not_found(message: str) -> ErrorOutcome:
    return ErrorOutcome(error=message, code=ErrorCode.NOT_FOUND)


def business_error(message: str) -> ErrorOutcome:
    return ErrorOutcome(error=message, code=ErrorCode.BUSINESS_ERROR)


def invalid_operation(message: str) -> ErrorOutcome:
    return ErrorOutcome(error=message, code=ErrorCode.INVALID_OPERATION)


def capacity_full(capacity: int, label: str = "Classroom") -> ErrorOutcome:
    return ErrorOutcome(
        error=f"{label} is at full capacity ({capacity}/{capacity})",
        code=ErrorCode.CAPACITY_FULL,
    )

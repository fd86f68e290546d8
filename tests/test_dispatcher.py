import json
from typing import Optional

import pytest
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import DataError, IntegrityError

from app.core.dispatcher import dispatch, normalize_exception, status_for_code
from app.core.enums import ErrorCode
from app.core.exceptions import ServiceError
from app.core.outcomes import ErrorOutcome, capacity_full, paginate


class _Result(BaseModel):
    value: int
    message: Optional[str] = None


class _Payload(BaseModel):
    name: str = Field(..., min_length=3)


def _body(response) -> dict:
    return json.loads(response.body)


@pytest.mark.parametrize(
    "code, expected",
    [
        (ErrorCode.VALIDATION_ERROR, 400),
        (ErrorCode.INVALID_ID, 400),
        (ErrorCode.NO_TOKEN, 401),
        (ErrorCode.TOKEN_EXPIRED, 401),
        (ErrorCode.FORBIDDEN, 403),
        (ErrorCode.ACCOUNT_INACTIVE, 403),
        (ErrorCode.SCHOOL_NOT_FOUND, 404),
        (ErrorCode.DUPLICATE_ERROR, 409),
        (ErrorCode.USER_EXISTS, 409),
        (ErrorCode.CAPACITY_FULL, 422),
        (ErrorCode.INVALID_OPERATION, 422),
        (ErrorCode.BUSINESS_ERROR, 422),
        (ErrorCode.SERVER_ERROR, 500),
        (ErrorCode.INVALID_PASSWORD, 400),
        ("SOMETHING_NEW", 400),
    ],
)
def test_status_table(code, expected) -> None:
    assert status_for_code(code) == expected


@pytest.mark.asyncio
async def test_success_is_wrapped() -> None:
    async def operation(x):
        return _Result(value=x, message="done")

    response = await dispatch(operation, 7, success_status=201)

    assert response.status_code == 201
    assert _body(response) == {"success": True, "value": 7, "message": "done"}


@pytest.mark.asyncio
async def test_missing_message_is_dropped() -> None:
    async def operation():
        return _Result(value=1)

    response = await dispatch(operation)

    assert _body(response) == {"success": True, "value": 1}


@pytest.mark.asyncio
async def test_error_outcome_is_rendered() -> None:
    async def operation():
        return capacity_full(30)

    response = await dispatch(operation)

    assert response.status_code == 422
    assert _body(response) == {"error": "Classroom is at full capacity (30/30)", "code": "CAPACITY_FULL"}


@pytest.mark.asyncio
async def test_service_error_keeps_its_status() -> None:
    async def operation():
        raise ServiceError("Token has expired", 401, ErrorCode.TOKEN_EXPIRED)

    response = await dispatch(operation)

    assert response.status_code == 401
    assert _body(response) == {"error": "Token has expired", "code": "TOKEN_EXPIRED"}


@pytest.mark.asyncio
async def test_unexpected_exception_is_server_error() -> None:
    async def operation():
        raise RuntimeError("boom")

    response = await dispatch(operation)

    assert response.status_code == 500
    body = _body(response)
    assert body["code"] == "SERVER_ERROR"
    # message only leaks in development
    assert "boom" not in body["error"]


def test_unique_violation_names_the_field() -> None:
    exc = IntegrityError("INSERT ...", {}, Exception("UNIQUE constraint failed: schools.name"))

    outcome, status_code = normalize_exception(exc)

    assert status_code == 409
    assert outcome == ErrorOutcome(error="Duplicate name", code=ErrorCode.DUPLICATE_ERROR)


def test_postgres_unique_violation_names_the_field() -> None:
    exc = IntegrityError(
        "INSERT ...", {}, Exception('duplicate key value violates unique constraint\nDETAIL:  Key (email)=(a@b.c) already exists.')
    )

    outcome, _ = normalize_exception(exc)

    assert outcome.error == "Duplicate email"


def test_check_violation_is_validation_error() -> None:
    exc = IntegrityError("UPDATE ...", {}, Exception("CHECK constraint failed: ck_classroom_enrollment_within_capacity"))

    outcome, status_code = normalize_exception(exc)

    assert status_code == 400
    assert outcome.code == ErrorCode.VALIDATION_ERROR


def test_foreign_key_violation_is_validation_error() -> None:
    exc = IntegrityError(
        "INSERT ...",
        {},
        Exception(
            'insert or update on table "classrooms" violates foreign key constraint "classrooms_school_id_fkey"\n'
            "DETAIL:  Key (school_id)=(9b2f7a52-3b5e-4c1e-8d8e-3f1f0f4c2a11) is not present in table \"schools\"."
        ),
    )

    outcome, status_code = normalize_exception(exc)

    assert status_code == 400
    assert outcome == ErrorOutcome(error="Referenced record does not exist", code=ErrorCode.VALIDATION_ERROR)


def test_not_null_violation_is_server_error() -> None:
    exc = IntegrityError("INSERT ...", {}, Exception("NOT NULL constraint failed: students.first_name"))

    outcome, status_code = normalize_exception(exc)

    assert status_code == 500
    assert outcome.code == ErrorCode.SERVER_ERROR


def test_data_error_is_invalid_id() -> None:
    outcome, status_code = normalize_exception(DataError("SELECT ...", {}, Exception("invalid input syntax for type uuid")))

    assert status_code == 400
    assert outcome.code == ErrorCode.INVALID_ID


def test_validation_error_lists_fields() -> None:
    with pytest.raises(ValidationError) as exc_info:
        _Payload(name="ab")

    outcome, status_code = normalize_exception(exc_info.value)

    assert status_code == 400
    assert outcome.code == ErrorCode.VALIDATION_ERROR
    assert [d.field for d in outcome.details] == ["name"]


def test_paginate() -> None:
    assert paginate(2, 10, 25).total_pages == 3
    assert paginate(1, 10, 0).total_pages == 0

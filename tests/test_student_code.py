"""Unit tests for student enrollment code generation."""

import re
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import student_code
from app.core.exceptions import ServiceError
from app.core.student_code import generate_student_code, generate_student_code_candidate

from conftest import create_classroom, create_school, create_student


def test_code_format() -> None:
    """STU-<2 digit year>-<6 chars from the unambiguous alphabet>."""
    code = generate_student_code_candidate()
    year_suffix = str(datetime.now().year)[-2:]
    assert re.match(rf"^STU-{year_suffix}-[A-HJ-NP-Z2-9]{{6}}$", code)


def test_year_comes_from_given_time() -> None:
    code = generate_student_code_candidate(datetime(2031, 1, 15))
    assert code.startswith("STU-31-")


def test_no_ambiguous_characters() -> None:
    """0/O and 1/I never appear in the random part."""
    for _ in range(200):
        suffix = generate_student_code_candidate().split("-")[2]
        assert not set(suffix) & {"0", "O", "1", "I"}


@pytest.mark.asyncio
async def test_generated_code_is_unused(db_session: AsyncSession) -> None:
    school = await create_school(db_session)
    classroom = await create_classroom(db_session, school)
    taken = await create_student(db_session, classroom)

    code = await generate_student_code(db_session)

    assert code != taken.student_code
    assert code.startswith("STU-")


@pytest.mark.asyncio
async def test_gives_up_after_repeated_collisions(db_session: AsyncSession, monkeypatch) -> None:
    school = await create_school(db_session)
    classroom = await create_classroom(db_session, school)
    taken = await create_student(db_session, classroom)
    monkeypatch.setattr(student_code, "generate_student_code_candidate", lambda now=None: taken.student_code)

    with pytest.raises(ServiceError) as exc_info:
        await generate_student_code(db_session, max_attempts=3)

    assert exc_info.value.status_code == 500

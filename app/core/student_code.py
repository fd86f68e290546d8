"""
Student enrollment code generation.

- student_code is a human-readable identifier (e.g. STU-26-K3M9QX), assigned once at
  enrollment and never edited.
- Student.id (UUID) remains the only primary key and FK target.
"""
import secrets
from datetime import datetime

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import Student

STUDENT_CODE_PREFIX = "STU"
# exclude ambiguous 0/O, 1/I
_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_student_code_candidate(now: datetime = None) -> str:
    """
    Generate a single candidate code (no DB check).
    Format: STU-<last 2 digits of year>-<6 non-guessable alphanumerics>.
    """
    year_suffix = str((now or datetime.now()).year)[-2:]
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{STUDENT_CODE_PREFIX}-{year_suffix}-{suffix}"


async def generate_student_code(
    db: AsyncSession,
    max_attempts: int = 20,
) -> str:
    """
    Generate a unique student_code.
    Ensures uniqueness before returning (retries with new suffix on collision).
    """
    for _ in range(max_attempts):
        code = generate_student_code_candidate()
        result = await db.execute(
            select(Student.id).where(Student.student_code == code)
        )
        if result.scalar_one_or_none() is None:
            return code
    raise ServiceError(
        "Could not generate unique student code",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

"""
Tenant directory: schools. Listing, creation and mutation are superadmin-only;
reads and stats go through can_access so a school admin sees its own school.
"""
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import can_access, is_superadmin
from app.auth.schemas import IdentityClaim
from app.core.enums import StudentStatus
from app.core.models import Classroom, School, Student
from app.core.outcomes import ErrorOutcome, forbidden, not_found, paginate
from app.core.schemas import model_values

from .schemas import (
    MessageResult,
    SchoolCreate,
    SchoolListResult,
    SchoolResponse,
    SchoolResult,
    SchoolStats,
    SchoolStatsResult,
    SchoolUpdate,
)

_JSON_FIELDS = ("address", "contact_info")


def _school_to_response(s: School) -> SchoolResponse:
    return SchoolResponse.model_validate(s)


async def list_schools(
    db: AsyncSession,
    claim: IdentityClaim,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
) -> Union[SchoolListResult, ErrorOutcome]:
    if not is_superadmin(claim):
        return forbidden("Only superadmins can list all schools")

    stmt = select(School).where(School.is_active.is_(True))
    count_stmt = select(func.count(School.id)).where(School.is_active.is_(True))
    if search:
        name_matches = School.name.icontains(search.strip(), autoescape=True)
        stmt = stmt.where(name_matches)
        count_stmt = count_stmt.where(name_matches)

    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(
        stmt.order_by(School.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = result.scalars().all()
    return SchoolListResult(
        schools=[_school_to_response(s) for s in rows],
        pagination=paginate(page, page_size, total),
    )


async def get_school(
    db: AsyncSession,
    claim: IdentityClaim,
    school_id: UUID,
) -> Union[SchoolResult, ErrorOutcome]:
    if not can_access(claim, school_id):
        return forbidden("Access denied to this school")
    school = await db.get(School, school_id)
    if not school:
        return not_found("School not found")
    return SchoolResult(school=_school_to_response(school))


async def create_school(
    db: AsyncSession,
    claim: IdentityClaim,
    payload: SchoolCreate,
) -> Union[SchoolResult, ErrorOutcome]:
    if not is_superadmin(claim):
        return forbidden("Only superadmins can create schools")

    school = School(
        **model_values(payload, json_fields=_JSON_FIELDS),
        is_active=True,
        created_by=claim.user_id,
    )
    db.add(school)
    try:
        await db.commit()
    except IntegrityError:
        # Duplicate name: rolled back here, reported as DUPLICATE_ERROR by the dispatcher
        await db.rollback()
        raise
    await db.refresh(school)
    return SchoolResult(school=_school_to_response(school), message="School created successfully")


async def update_school(
    db: AsyncSession,
    claim: IdentityClaim,
    school_id: UUID,
    payload: SchoolUpdate,
) -> Union[SchoolResult, ErrorOutcome]:
    if not is_superadmin(claim):
        return forbidden("Only superadmins can update schools")

    school = await db.get(School, school_id)
    if not school:
        return not_found("School not found")

    for field, value in model_values(payload, json_fields=_JSON_FIELDS, exclude_unset=True).items():
        setattr(school, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    await db.refresh(school)
    return SchoolResult(school=_school_to_response(school), message="School updated successfully")


async def delete_school(
    db: AsyncSession,
    claim: IdentityClaim,
    school_id: UUID,
) -> Union[MessageResult, ErrorOutcome]:
    """Soft delete. Classrooms and students keep their own active flags."""
    if not is_superadmin(claim):
        return forbidden("Only superadmins can delete schools")

    school = await db.get(School, school_id)
    if not school:
        return not_found("School not found")
    school.is_active = False
    await db.commit()
    return MessageResult(message="School deleted successfully")


async def get_school_stats(
    db: AsyncSession,
    claim: IdentityClaim,
    school_id: UUID,
) -> Union[SchoolStatsResult, ErrorOutcome]:
    if not can_access(claim, school_id):
        return forbidden("Access denied to this school")
    school = await db.get(School, school_id)
    if not school:
        return not_found("School not found")

    classroom_count = (
        await db.execute(
            select(func.count(Classroom.id)).where(
                Classroom.school_id == school_id,
                Classroom.is_active.is_(True),
            )
        )
    ).scalar_one()
    student_count = (
        await db.execute(
            select(func.count(Student.id)).where(
                Student.school_id == school_id,
                Student.status == StudentStatus.ACTIVE.value,
            )
        )
    ).scalar_one()

    capacity = school.total_capacity
    utilization = round(student_count / capacity * 100, 2) if capacity else 0.0
    return SchoolStatsResult(
        school=_school_to_response(school),
        stats=SchoolStats(
            classrooms=classroom_count,
            students=student_count,
            capacity=capacity,
            utilization_rate=utilization,
        ),
    )

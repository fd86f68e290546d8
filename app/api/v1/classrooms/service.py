"""
Classroom ledger: CRUD over school-scoped classrooms. current_enrollment is
read here but only written by app.core.enrollment.
"""
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.rbac import can_access, is_school_admin
from app.auth.schemas import IdentityClaim
from app.core import enrollment
from app.core.enums import StudentStatus
from app.core.models import Classroom, School, Student
from app.core.outcomes import ErrorOutcome, business_error, forbidden, not_found, paginate
from app.core.schemas import IdName, model_values

from .schemas import (
    ClassroomCreate,
    ClassroomDetail,
    ClassroomDetailResult,
    ClassroomListResult,
    ClassroomResponse,
    ClassroomResult,
    ClassroomStudentsResult,
    ClassroomSummary,
    ClassroomUpdate,
    MessageResult,
    ReconcileResult,
    RosterStudent,
)

_JSON_FIELDS = ("teacher", "subjects")


def _classroom_fields(c: Classroom) -> dict:
    return dict(
        id=c.id,
        school_id=c.school_id,
        school=IdName(id=c.school.id, name=c.school.name) if c.school else None,
        name=c.name,
        grade=c.grade,
        section=c.section,
        capacity=c.capacity,
        current_enrollment=c.current_enrollment,
        room_number=c.room_number,
        teacher=c.teacher,
        subjects=c.subjects or [],
        is_active=c.is_active,
        created_by=c.created_by,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _classroom_to_response(c: Classroom) -> ClassroomResponse:
    return ClassroomResponse(**_classroom_fields(c))


def _classroom_summary(c: Classroom) -> ClassroomSummary:
    return ClassroomSummary(
        id=c.id,
        name=c.name,
        grade=c.grade,
        section=c.section,
        capacity=c.capacity,
        current_enrollment=c.current_enrollment,
    )


async def _load_classroom(db: AsyncSession, classroom_id: UUID) -> Optional[Classroom]:
    result = await db.execute(
        select(Classroom)
        .where(Classroom.id == classroom_id)
        .options(selectinload(Classroom.school))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_classrooms(
    db: AsyncSession,
    claim: IdentityClaim,
    page: int = 1,
    page_size: int = 20,
    school_id: Optional[UUID] = None,
) -> Union[ClassroomListResult, ErrorOutcome]:
    """Active classrooms, newest first. A school admin is always scoped to its own school."""
    if is_school_admin(claim):
        school_id = claim.school_id
    if school_id is not None and not can_access(claim, school_id):
        return forbidden("Access denied to this school")

    filters = [Classroom.is_active.is_(True)]
    if school_id is not None:
        filters.append(Classroom.school_id == school_id)

    total = (await db.execute(select(func.count(Classroom.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Classroom)
        .where(*filters)
        .options(selectinload(Classroom.school))
        .order_by(Classroom.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return ClassroomListResult(
        classrooms=[_classroom_to_response(c) for c in result.scalars().all()],
        pagination=paginate(page, page_size, total),
    )


async def get_classroom(
    db: AsyncSession,
    claim: IdentityClaim,
    classroom_id: UUID,
) -> Union[ClassroomDetailResult, ErrorOutcome]:
    classroom = await _load_classroom(db, classroom_id)
    if not classroom:
        return not_found("Classroom not found")
    if not can_access(claim, classroom.school_id):
        return forbidden("Access denied to this classroom")

    current_students = await enrollment.count_active_students(db, classroom_id)
    return ClassroomDetailResult(
        classroom=ClassroomDetail(**_classroom_fields(classroom), current_students=current_students)
    )


async def create_classroom(
    db: AsyncSession,
    claim: IdentityClaim,
    payload: ClassroomCreate,
) -> Union[ClassroomResult, ErrorOutcome]:
    if not can_access(claim, payload.school_id):
        return forbidden("Access denied to this school")
    school = await db.get(School, payload.school_id)
    if not school:
        return not_found("School not found")

    classroom = Classroom(
        **model_values(payload, json_fields=_JSON_FIELDS),
        current_enrollment=0,
        is_active=True,
        created_by=claim.user_id,
    )
    db.add(classroom)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    return ClassroomResult(
        classroom=_classroom_to_response(await _load_classroom(db, classroom.id)),
        message="Classroom created successfully",
    )


async def _deactivation_blocked(db: AsyncSession, classroom: Classroom) -> Optional[ErrorOutcome]:
    """Deactivation (delete or is_active=false) needs an empty classroom and a zero counter."""
    active_students = await enrollment.count_active_students(db, classroom.id)
    if active_students > 0:
        return business_error(
            f"Cannot delete classroom with {active_students} active students. Please transfer students first."
        )
    if classroom.current_enrollment > 0:
        return business_error(
            f"Cannot delete classroom: enrollment counter is {classroom.current_enrollment} "
            "but no active students remain. Reconcile the classroom first."
        )
    return None


async def update_classroom(
    db: AsyncSession,
    claim: IdentityClaim,
    classroom_id: UUID,
    payload: ClassroomUpdate,
) -> Union[ClassroomResult, ErrorOutcome]:
    classroom = await _load_classroom(db, classroom_id)
    if not classroom:
        return not_found("Classroom not found")
    if not can_access(claim, classroom.school_id):
        return forbidden("Access denied to this classroom")

    values = model_values(payload, json_fields=_JSON_FIELDS, exclude_unset=True)
    if values.get("capacity") is not None and values["capacity"] < classroom.current_enrollment:
        return business_error(
            f"Cannot reduce capacity below current enrollment ({classroom.current_enrollment} students)"
        )
    if values.get("is_active") is False and classroom.is_active:
        blocked = await _deactivation_blocked(db, classroom)
        if blocked:
            return blocked

    for field, value in values.items():
        setattr(classroom, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    return ClassroomResult(
        classroom=_classroom_to_response(await _load_classroom(db, classroom_id)),
        message="Classroom updated successfully",
    )


async def delete_classroom(
    db: AsyncSession,
    claim: IdentityClaim,
    classroom_id: UUID,
) -> Union[MessageResult, ErrorOutcome]:
    """Soft delete, refused while the classroom still holds students."""
    classroom = await enrollment.get_classroom(db, classroom_id)
    if not classroom:
        return not_found("Classroom not found")
    if not can_access(claim, classroom.school_id):
        return forbidden("Access denied to this classroom")

    blocked = await _deactivation_blocked(db, classroom)
    if blocked:
        return blocked

    classroom.is_active = False
    await db.commit()
    return MessageResult(message="Classroom deleted successfully")


async def list_classroom_students(
    db: AsyncSession,
    claim: IdentityClaim,
    classroom_id: UUID,
) -> Union[ClassroomStudentsResult, ErrorOutcome]:
    classroom = await enrollment.get_classroom(db, classroom_id)
    if not classroom:
        return not_found("Classroom not found")
    if not can_access(claim, classroom.school_id):
        return forbidden("Access denied to this classroom")

    result = await db.execute(
        select(Student)
        .where(
            Student.classroom_id == classroom_id,
            Student.status == StudentStatus.ACTIVE.value,
        )
        .order_by(Student.last_name, Student.first_name)
    )
    students = [RosterStudent.model_validate(s) for s in result.scalars().all()]
    return ClassroomStudentsResult(
        classroom=_classroom_summary(classroom),
        students=students,
        count=len(students),
    )


async def reconcile_enrollment(
    db: AsyncSession,
    claim: IdentityClaim,
    classroom_id: UUID,
) -> Union[ReconcileResult, ErrorOutcome]:
    """Reset current_enrollment to the live count of active students."""
    classroom = await enrollment.get_classroom(db, classroom_id)
    if not classroom:
        return not_found("Classroom not found")
    if not can_access(claim, classroom.school_id):
        return forbidden("Access denied to this classroom")

    previous = await enrollment.recount_enrollment(db, classroom)
    if isinstance(previous, ErrorOutcome):
        return previous
    corrected = previous != classroom.current_enrollment
    return ReconcileResult(
        classroom=_classroom_summary(classroom),
        previous_enrollment=previous,
        current_enrollment=classroom.current_enrollment,
        corrected=corrected,
        message="Enrollment reconciled" if corrected else "Enrollment already consistent",
    )

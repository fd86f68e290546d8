"""
Student roster: reads and listings, plus thin wrappers that hand every
enrollment-affecting write to app.core.enrollment and render the result.
"""
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.rbac import can_access, is_school_admin
from app.auth.schemas import IdentityClaim
from app.core import enrollment
from app.core.enums import StudentStatus
from app.core.models import Classroom, School, Student
from app.core.outcomes import ErrorOutcome, forbidden, not_found, paginate
from app.core.schemas import IdName

from .schemas import (
    ClassroomRef,
    MessageResult,
    StudentCountResult,
    StudentCreate,
    StudentListResult,
    StudentResponse,
    StudentResult,
    StudentUpdate,
    TransferEntry,
    TransferRequest,
    TransferResult,
    TransferSummary,
)

_RELATED = (
    selectinload(Student.school),
    selectinload(Student.classroom),
    selectinload(Student.transfer_history),
)


def student_to_response(s: Student) -> StudentResponse:
    """Build the response from a student whose relationships were loaded up front."""
    return StudentResponse(
        id=s.id,
        student_code=s.student_code,
        school_id=s.school_id,
        school=IdName(id=s.school.id, name=s.school.name) if s.school else None,
        classroom_id=s.classroom_id,
        classroom=ClassroomRef(
            id=s.classroom.id,
            name=s.classroom.name,
            grade=s.classroom.grade,
            section=s.classroom.section,
        )
        if s.classroom
        else None,
        first_name=s.first_name,
        last_name=s.last_name,
        date_of_birth=s.date_of_birth,
        gender=s.gender,
        contact_info=s.contact_info,
        guardian=s.guardian or {},
        academic_info=s.academic_info,
        enrollment_date=s.enrollment_date,
        status=s.status,
        transfer_history=[TransferEntry.model_validate(t) for t in s.transfer_history],
        created_by=s.created_by,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def _reloaded(db: AsyncSession, student_id: UUID) -> StudentResponse:
    student = await enrollment.load_student(db, student_id)
    return student_to_response(student)


async def list_students(
    db: AsyncSession,
    claim: IdentityClaim,
    page: int = 1,
    page_size: int = 20,
    status: Optional[StudentStatus] = None,
    classroom_id: Optional[UUID] = None,
    school_id: Optional[UUID] = None,
    search: Optional[str] = None,
) -> Union[StudentListResult, ErrorOutcome]:
    """Paginated roster. A school admin only ever sees its own school."""
    if is_school_admin(claim):
        school_id = claim.school_id
    if school_id is not None and not can_access(claim, school_id):
        return forbidden("Access denied to this school")

    filters = []
    if school_id is not None:
        filters.append(Student.school_id == school_id)
    if status is not None:
        filters.append(Student.status == status.value)
    if classroom_id is not None:
        filters.append(Student.classroom_id == classroom_id)
    if search:
        term = search.strip()
        filters.append(
            or_(
                Student.first_name.icontains(term, autoescape=True),
                Student.last_name.icontains(term, autoescape=True),
                Student.student_code.icontains(term, autoescape=True),
            )
        )

    total = (await db.execute(select(func.count(Student.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Student)
        .where(*filters)
        .options(*_RELATED)
        .order_by(Student.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return StudentListResult(
        students=[student_to_response(s) for s in result.scalars().all()],
        pagination=paginate(page, page_size, total),
    )


async def get_student(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
) -> Union[StudentResult, ErrorOutcome]:
    student = await enrollment.load_student(db, student_id)
    if not student:
        return not_found("Student not found")
    if not can_access(claim, student.school_id):
        return forbidden("Access denied to this student")
    return StudentResult(student=student_to_response(student))


async def create_student(
    db: AsyncSession,
    claim: IdentityClaim,
    payload: StudentCreate,
) -> Union[StudentResult, ErrorOutcome]:
    result = await enrollment.enroll_student(db, claim, payload)
    if isinstance(result, ErrorOutcome):
        return result
    return StudentResult(
        student=await _reloaded(db, result.id),
        message="Student enrolled successfully",
    )


async def update_student(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
    payload: StudentUpdate,
) -> Union[StudentResult, ErrorOutcome]:
    result = await enrollment.apply_student_update(db, claim, student_id, payload)
    if isinstance(result, ErrorOutcome):
        return result
    return StudentResult(
        student=await _reloaded(db, student_id),
        message="Student updated successfully",
    )


async def withdraw_student(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
) -> Union[MessageResult, ErrorOutcome]:
    result = await enrollment.withdraw_student(db, claim, student_id)
    if isinstance(result, ErrorOutcome):
        return result
    return MessageResult(message="Student withdrawn successfully")


async def transfer_student(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
    payload: TransferRequest,
) -> Union[TransferResult, ErrorOutcome]:
    result = await enrollment.transfer_student(
        db, claim, student_id, payload.new_classroom_id, payload.reason
    )
    if isinstance(result, ErrorOutcome):
        return result

    student = await enrollment.load_student(db, student_id)
    entry = student.transfer_history[-1]
    return TransferResult(
        student=student_to_response(student),
        transfer=TransferSummary(
            from_classroom=entry.from_classroom,
            to_classroom=student.classroom.label,
            transferred_at=entry.transferred_at,
            reason=entry.reason,
        ),
        message="Student transferred successfully",
    )


async def list_classroom_roster(
    db: AsyncSession,
    claim: IdentityClaim,
    classroom_id: UUID,
) -> Union[StudentCountResult, ErrorOutcome]:
    """Active students of one classroom, by name."""
    classroom = await db.get(Classroom, classroom_id)
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
        .options(*_RELATED)
        .order_by(Student.last_name, Student.first_name)
        .execution_options(populate_existing=True)
    )
    students = [student_to_response(s) for s in result.scalars().all()]
    return StudentCountResult(students=students, count=len(students))


async def list_school_roster(
    db: AsyncSession,
    claim: IdentityClaim,
    school_id: UUID,
    status: Optional[StudentStatus] = StudentStatus.ACTIVE,
) -> Union[StudentCountResult, ErrorOutcome]:
    """Students of one school (active by default), by name."""
    if not can_access(claim, school_id):
        return forbidden("Access denied to this school")
    school = await db.get(School, school_id)
    if not school:
        return not_found("School not found")

    stmt = select(Student).where(Student.school_id == school_id)
    if status is not None:
        stmt = stmt.where(Student.status == status.value)
    result = await db.execute(
        stmt.options(*_RELATED)
        .order_by(Student.last_name, Student.first_name)
        .execution_options(populate_existing=True)
    )
    students = [student_to_response(s) for s in result.scalars().all()]
    return StudentCountResult(students=students, count=len(students))

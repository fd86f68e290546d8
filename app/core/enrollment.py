"""
Enrollment engine: keeps Classroom.current_enrollment consistent with the set of
active students assigned to each classroom.

Entry points: enroll, transfer, capacity-aware update (classroom or status change)
and withdraw. Each one validates every precondition before it writes anything;
once writing starts, counter updates go first, then the transfer history entry,
then the student's status/classroom reference. All writes of one entry point are
committed together.

Counters are only changed through conditional UPDATE statements:
- increment applies only while current_enrollment < capacity, so a concurrent
  request cannot push a classroom over capacity between the check and the write;
- decrement applies only while current_enrollment > 0 (floor at zero).
"""
import logging
from typing import Optional, Union
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.rbac import can_access
from app.auth.schemas import IdentityClaim
from app.core.enums import ErrorCode, StudentStatus
from app.core.exceptions import ServiceError
from app.core.models import Classroom, Student, StudentTransfer
from app.core.outcomes import (
    ErrorOutcome,
    business_error,
    capacity_full,
    forbidden,
    invalid_operation,
    not_found,
)
from app.core.schemas import model_values
from app.core.student_code import generate_student_code

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_REASON = "Classroom transfer"
REASSIGNMENT_REASON = "Classroom reassignment"
UNKNOWN_CLASSROOM_LABEL = "Unknown"

ACTIVE = StudentStatus.ACTIVE.value

STUDENT_JSON_FIELDS = ("contact_info", "guardian", "academic_info")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


async def get_classroom(db: AsyncSession, classroom_id: UUID) -> Optional[Classroom]:
    """Fresh read of a classroom; never trusts counters cached in the session."""
    return await db.get(Classroom, classroom_id, populate_existing=True)


async def load_student(db: AsyncSession, student_id: UUID) -> Optional[Student]:
    """Student with school, classroom and transfer history loaded (safe to render)."""
    result = await db.execute(
        select(Student)
        .where(Student.id == student_id)
        .options(
            selectinload(Student.school),
            selectinload(Student.classroom),
            selectinload(Student.transfer_history),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def count_active_students(db: AsyncSession, classroom_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Student.id)).where(
            Student.classroom_id == classroom_id,
            Student.status == ACTIVE,
        )
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Counter arithmetic
# ---------------------------------------------------------------------------


async def increment_enrollment(db: AsyncSession, classroom_id: UUID) -> bool:
    """Add one seat if the classroom is below capacity. False when it is full."""
    result = await db.execute(
        update(Classroom)
        .where(
            Classroom.id == classroom_id,
            Classroom.current_enrollment < Classroom.capacity,
        )
        .values(current_enrollment=Classroom.current_enrollment + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def decrement_enrollment(db: AsyncSession, classroom_id: UUID) -> bool:
    """Release one seat, floored at zero. False when the counter was already 0."""
    result = await db.execute(
        update(Classroom)
        .where(
            Classroom.id == classroom_id,
            Classroom.current_enrollment > 0,
        )
        .values(current_enrollment=Classroom.current_enrollment - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Enrollment counter of classroom %s already at 0; left unchanged", classroom_id)
        return False
    return True


# ---------------------------------------------------------------------------
# Shared checks and writes
# ---------------------------------------------------------------------------


async def _check_destination(
    db: AsyncSession,
    student: Student,
    new_classroom_id: UUID,
    takes_seat: bool,
) -> Union[Classroom, ErrorOutcome]:
    destination = await get_classroom(db, new_classroom_id)
    if not destination:
        return not_found("New classroom not found")
    if str(destination.school_id) != str(student.school_id):
        return invalid_operation("Can only transfer students within the same school")
    if str(destination.id) == str(student.classroom_id):
        return invalid_operation("Student is already in this classroom")
    if not destination.is_active:
        return invalid_operation("New classroom is not active")
    if takes_seat and destination.current_enrollment >= destination.capacity:
        return capacity_full(destination.capacity, "New classroom")
    return destination


async def _reassign(
    db: AsyncSession,
    student: Student,
    destination: Optional[Classroom],
    new_status: str,
    reason: str,
) -> Optional[ErrorOutcome]:
    """Apply a validated classroom and/or status change. Returns an outcome only on a lost capacity race."""
    student_id = student.id
    origin = await get_classroom(db, student.classroom_id)
    was_counted = student.status == ACTIVE
    will_count = new_status == ACTIVE
    seat = destination or origin

    # 1. release the origin seat
    if was_counted and origin is not None and (destination is not None or not will_count):
        await decrement_enrollment(db, origin.id)

    # 2. take the destination seat
    if will_count and seat is not None and (destination is not None or not was_counted):
        capacity = seat.capacity
        seat_id = seat.id
        if not await increment_enrollment(db, seat_id):
            await db.rollback()
            logger.warning("Lost capacity race on classroom %s for student %s", seat_id, student_id)
            return capacity_full(capacity, "New classroom" if destination is not None else "Classroom")

    # 3. history entry, 4. reference/status flip
    if destination is not None:
        student.transfer_history.append(
            StudentTransfer(
                sequence=len(student.transfer_history) + 1,
                from_classroom=origin.label if origin is not None else UNKNOWN_CLASSROOM_LABEL,
                from_classroom_id=student.classroom_id,
                to_classroom_id=destination.id,
                reason=reason,
            )
        )
        student.classroom_id = destination.id
    student.status = new_status
    return None


async def _commit(db: AsyncSession, what: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError(f"{what} could not be completed; no changes were saved") from e


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def enroll_student(
    db: AsyncSession,
    claim: IdentityClaim,
    payload,
) -> Union[Student, ErrorOutcome]:
    """Create a student in a classroom of the stated school and take one seat.

    The student insert and the counter increment are one unit: if the increment
    fails the student is rolled back (CAPACITY_FULL on a lost race, SERVER_ERROR
    otherwise) so no student exists without its seat.
    """
    if not can_access(claim, payload.school_id):
        return forbidden("Access denied to this school")

    classroom = await get_classroom(db, payload.classroom_id)
    if not classroom:
        return not_found("Classroom not found")
    if str(classroom.school_id) != str(payload.school_id):
        return invalid_operation("Classroom does not belong to this school")
    if not classroom.is_active:
        return invalid_operation("Classroom is not active")
    capacity = classroom.capacity
    if classroom.current_enrollment >= capacity:
        return capacity_full(capacity)

    student_code = await generate_student_code(db)
    student = Student(
        **model_values(payload, json_fields=STUDENT_JSON_FIELDS),
        student_code=student_code,
        status=ACTIVE,
        created_by=claim.user_id,
    )
    db.add(student)
    try:
        await db.flush()
        if not await increment_enrollment(db, classroom.id):
            await db.rollback()
            logger.warning("Lost capacity race on classroom %s during enrollment", payload.classroom_id)
            return capacity_full(capacity)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError(
            "Enrollment could not be completed; the student was not enrolled",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.SERVER_ERROR,
        ) from e

    logger.info("Enrolled student %s (%s) in classroom %s", student.id, student_code, payload.classroom_id)
    return student


async def transfer_student(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
    new_classroom_id: UUID,
    reason: Optional[str] = None,
) -> Union[Student, ErrorOutcome]:
    """Move an active student to another classroom of the same school."""
    student = await load_student(db, student_id)
    if not student:
        return not_found("Student not found")
    if not can_access(claim, student.school_id):
        return forbidden("Access denied to this student")
    if student.status != ACTIVE:
        return invalid_operation("Only active students can be transferred")

    destination = await _check_destination(db, student, new_classroom_id, takes_seat=True)
    if isinstance(destination, ErrorOutcome):
        return destination

    outcome = await _reassign(db, student, destination, ACTIVE, reason or DEFAULT_TRANSFER_REASON)
    if outcome is not None:
        return outcome
    await _commit(db, "Transfer")
    logger.info("Transferred student %s to classroom %s", student_id, new_classroom_id)
    return student


async def apply_student_update(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
    payload,
) -> Union[Student, ErrorOutcome]:
    """General student update.

    Field-only patches never touch counters. A classroom change runs the transfer
    checks and writes; a status change moves the student in or out of the counted
    set (leaving 'active' releases the seat, re-entering it needs a free seat).
    """
    student = await load_student(db, student_id)
    if not student:
        return not_found("Student not found")
    if not can_access(claim, student.school_id):
        return forbidden("Access denied to this student")

    values = model_values(payload, json_fields=STUDENT_JSON_FIELDS, exclude_unset=True)
    new_classroom_id = values.pop("classroom_id", None)
    new_status = values.pop("status", None) or student.status

    moving = new_classroom_id is not None and str(new_classroom_id) != str(student.classroom_id)
    status_changing = new_status != student.status

    destination = None
    if moving:
        destination = await _check_destination(db, student, new_classroom_id, takes_seat=new_status == ACTIVE)
        if isinstance(destination, ErrorOutcome):
            return destination
    elif status_changing and new_status == ACTIVE:
        current = await get_classroom(db, student.classroom_id)
        if current is None or not current.is_active:
            return invalid_operation("Cannot reactivate a student in an inactive classroom")
        if current.current_enrollment >= current.capacity:
            return capacity_full(current.capacity)

    for field, value in values.items():
        setattr(student, field, value)

    if moving or status_changing:
        outcome = await _reassign(db, student, destination, new_status, REASSIGNMENT_REASON)
        if outcome is not None:
            return outcome
    await _commit(db, "Update")
    return student


async def withdraw_student(
    db: AsyncSession,
    claim: IdentityClaim,
    student_id: UUID,
) -> Union[Student, ErrorOutcome]:
    """Soft delete: status becomes withdrawn and an active student's seat is released."""
    student = await load_student(db, student_id)
    if not student:
        return not_found("Student not found")
    if not can_access(claim, student.school_id):
        return forbidden("Access denied to this student")

    if student.status == ACTIVE:
        await decrement_enrollment(db, student.classroom_id)
    student.status = StudentStatus.WITHDRAWN.value
    await _commit(db, "Withdrawal")
    logger.info("Withdrew student %s from classroom %s", student_id, student.classroom_id)
    return student


async def recount_enrollment(
    db: AsyncSession,
    classroom: Classroom,
) -> Union[int, ErrorOutcome]:
    """Reset the counter to the number of active students assigned. Returns the previous value."""
    active = await count_active_students(db, classroom.id)
    previous = classroom.current_enrollment
    if active > classroom.capacity:
        return business_error(
            f"Classroom has {active} active students but capacity {classroom.capacity}; raise capacity first"
        )
    if active != previous:
        classroom.current_enrollment = active
        await _commit(db, "Reconciliation")
        logger.info("Reconciled classroom %s enrollment %s -> %s", classroom.id, previous, active)
    return previous

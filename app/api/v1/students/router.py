from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_claim
from app.auth.schemas import IdentityClaim
from app.core.config import settings
from app.core.dispatcher import dispatch
from app.core.enums import StudentStatus
from app.db.session import get_db

from .schemas import StudentCreate, StudentUpdate, TransferRequest
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.get("")
async def list_students(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    status_filter: Optional[StudentStatus] = Query(None, alias="status"),
    classroom_id: Optional[UUID] = Query(None),
    school_id: Optional[UUID] = Query(None, description="Ignored for school admins (always their own school)"),
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(
        service.list_students,
        db,
        claim,
        page=page,
        page_size=page_size,
        status=status_filter,
        classroom_id=classroom_id,
        school_id=school_id,
        search=search,
    )


@router.post("")
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    """Enroll a new student into a classroom (takes one seat)."""
    return await dispatch(service.create_student, db, claim, payload, success_status=status.HTTP_201_CREATED)


@router.get("/classroom/{classroom_id}")
async def list_classroom_students(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.list_classroom_roster, db, claim, classroom_id)


@router.get("/school/{school_id}")
async def list_school_students(
    school_id: UUID,
    status_filter: Optional[StudentStatus] = Query(StudentStatus.ACTIVE, alias="status"),
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.list_school_roster, db, claim, school_id, status=status_filter)


@router.get("/{student_id}")
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.get_student, db, claim, student_id)


@router.put("/{student_id}")
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.update_student, db, claim, student_id, payload)


@router.delete("/{student_id}")
async def withdraw_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    """Soft delete: the student is marked withdrawn and its seat released."""
    return await dispatch(service.withdraw_student, db, claim, student_id)


@router.post("/{student_id}/transfer")
async def transfer_student(
    student_id: UUID,
    payload: TransferRequest,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.transfer_student, db, claim, student_id, payload)

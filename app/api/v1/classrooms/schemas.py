from datetime import date, datetime
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, model_validator

from app.core.outcomes import Pagination
from app.core.schemas import IdName


def _normalize_section(v):
    return v.strip().upper() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


Section = Annotated[str, BeforeValidator(_normalize_section), Field(max_length=5, pattern=r"^[A-Z]+$")]
ClassroomName = Annotated[str, BeforeValidator(_strip), Field(min_length=2, max_length=50)]
Subject = Annotated[str, BeforeValidator(_strip), Field(max_length=50)]


class Teacher(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)


class ClassroomCreate(BaseModel):
    school_id: UUID
    name: ClassroomName
    grade: int = Field(..., ge=1, le=12)
    section: Optional[Section] = None
    capacity: int = Field(..., ge=1, le=100)
    room_number: Optional[str] = Field(None, max_length=20)
    teacher: Optional[Teacher] = None
    subjects: List[Subject] = Field(default_factory=list)


class ClassroomUpdate(BaseModel):
    """Partial update. school_id and current_enrollment are not editable."""

    name: Optional[ClassroomName] = None
    grade: Optional[int] = Field(None, ge=1, le=12)
    section: Optional[Section] = None
    capacity: Optional[int] = Field(None, ge=1, le=100)
    room_number: Optional[str] = Field(None, max_length=20)
    teacher: Optional[Teacher] = None
    subjects: Optional[List[Subject]] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ClassroomUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class ClassroomResponse(BaseModel):
    id: UUID
    school_id: UUID
    school: Optional[IdName] = None
    name: str
    grade: int
    section: Optional[str] = None
    capacity: int
    current_enrollment: int
    room_number: Optional[str] = None
    teacher: Optional[dict] = None
    subjects: List[str] = Field(default_factory=list)
    is_active: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class ClassroomDetail(ClassroomResponse):
    # Live count of active students assigned here
    current_students: int


class ClassroomResult(BaseModel):
    classroom: ClassroomResponse
    message: Optional[str] = None


class ClassroomDetailResult(BaseModel):
    classroom: ClassroomDetail


class ClassroomListResult(BaseModel):
    classrooms: List[ClassroomResponse]
    pagination: Pagination


class ClassroomSummary(BaseModel):
    id: UUID
    name: str
    grade: int
    section: Optional[str] = None
    capacity: int
    current_enrollment: int


class RosterStudent(BaseModel):
    id: UUID
    student_code: str
    first_name: str
    last_name: str
    date_of_birth: date
    status: str

    class Config:
        from_attributes = True


class ClassroomStudentsResult(BaseModel):
    classroom: ClassroomSummary
    students: List[RosterStudent]
    count: int


class ReconcileResult(BaseModel):
    classroom: ClassroomSummary
    previous_enrollment: int
    current_enrollment: int
    corrected: bool
    message: Optional[str] = None


class MessageResult(BaseModel):
    message: str

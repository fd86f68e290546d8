from datetime import date, datetime
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, PastDate, model_validator

from app.core.enums import Gender, StudentStatus
from app.core.outcomes import Pagination
from app.core.schemas import Address, IdName


def _strip(v):
    return v.strip() if isinstance(v, str) else v


PersonName = Annotated[str, BeforeValidator(_strip), Field(min_length=2, max_length=50)]


class StudentContactInfo(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[Address] = None


class Guardian(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    relationship: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    phone: str = Field(..., max_length=20)


class GuardianUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    relationship: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)


class AcademicInfo(BaseModel):
    previous_school: Optional[str] = Field(None, max_length=100)
    grade_level: Optional[int] = Field(None, ge=1, le=12)


class StudentCreate(BaseModel):
    school_id: UUID
    classroom_id: UUID
    first_name: PersonName
    last_name: PersonName
    date_of_birth: PastDate
    gender: Optional[Gender] = None
    contact_info: Optional[StudentContactInfo] = None
    guardian: Guardian
    academic_info: Optional[AcademicInfo] = None


class StudentUpdate(BaseModel):
    """Partial update. A classroom_id or status change goes through the enrollment engine."""

    classroom_id: Optional[UUID] = None
    first_name: Optional[PersonName] = None
    last_name: Optional[PersonName] = None
    date_of_birth: Optional[PastDate] = None
    gender: Optional[Gender] = None
    contact_info: Optional[StudentContactInfo] = None
    guardian: Optional[GuardianUpdate] = None
    status: Optional[StudentStatus] = None
    academic_info: Optional[AcademicInfo] = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "StudentUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class TransferRequest(BaseModel):
    new_classroom_id: UUID
    reason: Optional[Annotated[str, BeforeValidator(_strip), Field(max_length=200)]] = None


class ClassroomRef(BaseModel):
    id: UUID
    name: str
    grade: int
    section: Optional[str] = None


class TransferEntry(BaseModel):
    sequence: int
    from_classroom: str
    from_classroom_id: Optional[UUID] = None
    to_classroom_id: Optional[UUID] = None
    transferred_at: datetime
    reason: str

    class Config:
        from_attributes = True


class StudentResponse(BaseModel):
    id: UUID
    student_code: str
    school_id: UUID
    school: Optional[IdName] = None
    classroom_id: UUID
    classroom: Optional[ClassroomRef] = None
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Optional[str] = None
    contact_info: Optional[dict] = None
    guardian: dict
    academic_info: Optional[dict] = None
    enrollment_date: date
    status: StudentStatus
    transfer_history: List[TransferEntry] = Field(default_factory=list)
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class StudentResult(BaseModel):
    student: StudentResponse
    message: Optional[str] = None


class StudentListResult(BaseModel):
    students: List[StudentResponse]
    pagination: Pagination


class StudentCountResult(BaseModel):
    students: List[StudentResponse]
    count: int


class TransferSummary(BaseModel):
    from_classroom: str
    to_classroom: str
    transferred_at: datetime
    reason: str


class TransferResult(BaseModel):
    student: StudentResponse
    transfer: TransferSummary
    message: Optional[str] = None


class MessageResult(BaseModel):
    message: str

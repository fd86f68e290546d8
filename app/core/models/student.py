import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    """
    Student owned by one school and assigned to one classroom at a time.

    school_id never changes after creation. classroom_id and status change only
    through app.core.enrollment so the classroom counters stay consistent.
    Never hard-deleted; withdrawal sets status=withdrawn.
    """

    __tablename__ = "students"
    __table_args__ = (
        Index("ix_student_school_status", "school_id", "status"),
        Index("ix_student_classroom_status", "classroom_id", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False)
    classroom_id = Column(Uuid, ForeignKey("classrooms.id"), nullable=False)
    # Enrollment code generated at creation (e.g. STU-26-K3M9QX); not editable
    student_code = Column(String(20), unique=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=True)
    # {"email", "phone", "address": {...}}
    contact_info = Column(JSON, nullable=True)
    # {"name", "relationship", "email", "phone"}
    guardian = Column(JSON, nullable=False)
    # {"previous_school", "grade_level"}
    academic_info = Column(JSON, nullable=True)
    enrollment_date = Column(Date, nullable=False, default=date.today)
    status = Column(String(20), nullable=False, default="active")  # active | transferred | graduated | withdrawn
    created_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School")
    classroom = relationship("Classroom")
    transfer_history = relationship(
        "StudentTransfer",
        back_populates="student",
        order_by="StudentTransfer.sequence",
    )


class StudentTransfer(Base):
    """Append-only transfer history entry. Ordered by sequence; rows are never updated or deleted."""

    __tablename__ = "student_transfers"
    __table_args__ = (
        UniqueConstraint("student_id", "sequence", name="uq_student_transfer_sequence"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    # Origin classroom display label at the time of transfer
    from_classroom = Column(String(100), nullable=False)
    from_classroom_id = Column(Uuid, nullable=True)
    to_classroom_id = Column(Uuid, nullable=True)
    transferred_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    reason = Column(Text, nullable=False)

    student = relationship("Student", back_populates="transfer_history")

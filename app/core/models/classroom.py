"""School-scoped classrooms. Each carries a capacity and a live enrollment counter."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Classroom(Base):
    """
    Classroom owned by a school. Soft delete via is_active.

    current_enrollment counts the active students assigned here and is only
    written by app.core.enrollment.
    """

    __tablename__ = "classrooms"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_classroom_capacity_positive"),
        CheckConstraint("current_enrollment >= 0", name="ck_classroom_enrollment_non_negative"),
        CheckConstraint("current_enrollment <= capacity", name="ck_classroom_enrollment_within_capacity"),
        Index("ix_classroom_school_active", "school_id", "is_active"),
        Index("ix_classroom_school_grade_section", "school_id", "grade", "section"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # No cascade: schools are only ever deactivated
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False)
    name = Column(String(50), nullable=False)
    grade = Column(Integer, nullable=False)
    section = Column(String(5), nullable=True)
    capacity = Column(Integer, nullable=False)
    current_enrollment = Column(Integer, nullable=False, default=0)
    room_number = Column(String(20), nullable=True)
    # {"name", "email", "phone"}
    teacher = Column(JSON, nullable=True)
    subjects = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School", back_populates="classrooms")

    @property
    def label(self) -> str:
        """Display label used in transfer history, e.g. 'Blue Room (3-A)'."""
        return f"{self.name} ({self.grade}-{self.section or ''})"

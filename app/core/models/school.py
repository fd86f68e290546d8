import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class School(Base):
    """
    School (tenant) in the multi-tenant platform.

    - id: Primary key; the isolation boundary for school admins.
    - Never hard-deleted. Deactivation sets is_active=False and does not cascade
      to classrooms or students.
    """

    __tablename__ = "schools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False, index=True)
    # {"street", "city", "state", "zip_code", "country"}
    address = Column(JSON, nullable=True)
    # {"email", "phone", "website"}; email is required by the create schema
    contact_info = Column(JSON, nullable=False, default=dict)
    established_year = Column(Integer, nullable=True)
    principal_name = Column(String(100), nullable=True)
    total_capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    # User id of the creating superadmin; not a FK (users also reference schools)
    created_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    classrooms = relationship("Classroom", back_populates="school")

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    """
    Student record pinned to exactly one academic session.

    admission_no is unique per (tenant, session); the same number may be reused in another session.
    session_id never changes after insert: promotion writes a new row in the target session
    and leaves this one as the historical record.
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "session_id", "admission_no", name="uq_student_admission_no_per_session"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    admission_no = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    dob = Column(Date, nullable=True)
    father_name = Column(String(100), nullable=True)
    mother_name = Column(String(100), nullable=True)
    mobile = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    aadhaar = Column(String(12), nullable=True)
    photo_url = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE | DISABLED
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    session = relationship("AcademicSession", foreign_keys=[session_id])
    school_class = relationship("SchoolClass", foreign_keys=[class_id])

"""Teacher (staff) record. Optionally assigned to ONE class; a class has at most ONE active teacher."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base

_ASSIGNED_AND_ACTIVE = "status = 'ACTIVE' AND class_id IS NOT NULL"


class Teacher(Base):
    """
    Teacher identity is the contact email; user_id links 1:1 to the account record owned elsewhere.

    class_id and session_id are always written together (session_id = the class's session),
    so both assignment invariants are backed by partial unique indexes:
    - uq_teacher_per_class: one active teacher per class.
    - uq_teacher_email_per_session: one class per teacher email per session.
    """

    __tablename__ = "teachers"
    __table_args__ = (
        Index(
            "uq_teacher_per_class",
            "class_id",
            unique=True,
            postgresql_where=text(_ASSIGNED_AND_ACTIVE),
            sqlite_where=text(_ASSIGNED_AND_ACTIVE),
        ),
        Index(
            "uq_teacher_email_per_session",
            "tenant_id",
            "email",
            "session_id",
            unique=True,
            postgresql_where=text(_ASSIGNED_AND_ACTIVE),
            sqlite_where=text(_ASSIGNED_AND_ACTIVE),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), nullable=True, unique=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    mobile = Column(String(20), nullable=True)
    photo_url = Column(String(500), nullable=True)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    session_id = Column(UUID(as_uuid=True), ForeignKey("academic_sessions.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE | INACTIVE
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])

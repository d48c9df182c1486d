from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.api.v1.students.schemas import StudentResponse


class PromotionRequest(BaseModel):
    """Copy students from an inactive, non-archived session into the active session."""

    source_session_id: UUID = Field(..., description="Inactive, non-archived session to copy from")
    target_session_id: UUID = Field(..., description="The active session")
    student_ids: Optional[List[UUID]] = Field(
        None,
        description="Students of the source session to promote. Omit to promote every student of the source session.",
    )
    target_class_id: Optional[UUID] = Field(
        None,
        description="Put every promoted student in this class of the target session. "
        "Omit to use the class with the same name in the target session.",
    )
    preserve_admission_numbers: bool = Field(
        False,
        description="Keep admission numbers exactly; a collision fails that student instead of adding a suffix.",
    )
    skip_frozen_check: bool = Field(False, description="Ignore frozen flags on source and target classes")


class PromotionError(BaseModel):
    student_id: UUID
    student_name: str
    error: str


class PromotionResult(BaseModel):
    """Partial-success result: failed students are listed in errors, the rest are promoted."""

    promoted_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    promoted_students: List[StudentResponse]
    errors: List[PromotionError]


class SessionSummary(BaseModel):
    id: UUID
    name: str
    is_active: bool
    archived: bool


class SessionStudentsResponse(BaseModel):
    """Students of any session, archived ones included (read-only view)."""

    session: SessionSummary
    items: List[StudentResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1, le=100)
    total_pages: int = Field(..., ge=0)

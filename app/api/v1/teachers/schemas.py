from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class TeacherCreate(BaseModel):
    """Create teacher. class_id is optional; if given it must be a class of the active session."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., description="Teacher identity; one class per email per session")
    mobile: Optional[str] = Field(None, pattern=r"^[0-9]{10}$", description="10-digit mobile number")
    photo_url: Optional[str] = Field(None, max_length=500)
    user_id: Optional[UUID] = Field(None, description="Linked account (1:1)")
    class_id: Optional[UUID] = None


class TeacherUpdate(BaseModel):
    """Partial update. Sending class_id reassigns atomically; sending class_id=null releases the class."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    photo_url: Optional[str] = Field(None, max_length=500)
    class_id: Optional[UUID] = None


class TeacherResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    user_id: Optional[UUID] = None
    name: str
    email: str
    mobile: Optional[str] = None
    photo_url: Optional[str] = None
    class_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TeacherPaginatedResponse(BaseModel):
    items: List[TeacherResponse] = Field(..., description="Teachers assigned in the active session, by name")
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1, le=100)
    total_pages: int = Field(..., ge=0)

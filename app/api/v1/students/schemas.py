from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    """Create student. The session is never supplied: students are pinned to the active session."""

    admission_no: str = Field(..., min_length=1, max_length=50, description="Unique per session")
    name: str = Field(..., min_length=1, max_length=100)
    class_id: UUID = Field(..., description="Class in the active session")
    dob: Optional[date] = None
    father_name: Optional[str] = Field(None, max_length=100)
    mother_name: Optional[str] = Field(None, max_length=100)
    mobile: Optional[str] = Field(None, pattern=r"^[0-9]{10}$", description="10-digit mobile number")
    address: Optional[str] = None
    aadhaar: Optional[str] = Field(None, pattern=r"^[0-9]{12}$", description="12-digit Aadhaar number")
    photo_url: Optional[str] = Field(None, max_length=500)


class StudentUpdate(BaseModel):
    """Partial update. session_id is not accepted; a student's session never changes."""

    admission_no: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    class_id: Optional[UUID] = None
    dob: Optional[date] = None
    father_name: Optional[str] = Field(None, max_length=100)
    mother_name: Optional[str] = Field(None, max_length=100)
    mobile: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    address: Optional[str] = None
    aadhaar: Optional[str] = Field(None, pattern=r"^[0-9]{12}$")
    photo_url: Optional[str] = Field(None, max_length=500)


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    session_id: UUID
    class_id: UUID
    admission_no: str
    name: str
    dob: Optional[date] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    aadhaar: Optional[str] = None
    photo_url: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentPaginatedResponse(BaseModel):
    items: List[StudentResponse] = Field(..., description="Students, by admission number")
    total: int = Field(..., ge=0, description="Total count matching the query")
    page: int = Field(..., ge=1, description="Current page")
    page_size: int = Field(..., ge=1, le=100, description="Page size")
    total_pages: int = Field(..., ge=0, description="Total pages")

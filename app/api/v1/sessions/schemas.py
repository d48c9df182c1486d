from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    """Create academic session. name must be unique per institution."""

    name: str = Field(..., min_length=1, max_length=50, description="e.g. 2025-2026")
    start_date: date = Field(..., description="Session start date")
    end_date: date = Field(..., description="Session end date (must be after start_date)")
    activate: bool = Field(
        False,
        description="Activate immediately? If true, the currently active session is deactivated in the same transaction.",
    )


class SessionResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    start_date: date
    end_date: date
    is_active: bool
    archived: bool
    archived_at: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SessionPaginatedResponse(BaseModel):
    items: List[SessionResponse] = Field(..., description="Sessions, latest start_date first")
    total: int = Field(..., ge=0, description="Total sessions for the institution")
    page: int = Field(..., ge=1, description="Current page")
    page_size: int = Field(..., ge=1, le=100, description="Page size")
    total_pages: int = Field(..., ge=0, description="Total pages")

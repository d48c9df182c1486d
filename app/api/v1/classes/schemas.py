from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    """Create class in the active session. name must be unique within that session."""

    name: str = Field(..., min_length=1, max_length=50, description="e.g. 10-A")


class ClassResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    session_id: UUID
    name: str
    frozen: bool
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassPaginatedResponse(BaseModel):
    items: List[ClassResponse] = Field(..., description="Classes of the active session, by name")
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1, le=100)
    total_pages: int = Field(..., ge=0)

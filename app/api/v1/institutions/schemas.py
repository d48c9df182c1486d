from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class InstitutionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class InstitutionResponse(BaseModel):
    id: UUID
    name: str
    frozen: bool
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

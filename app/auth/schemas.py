from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Caller identity resolved from the bearer token. tenant_id scopes every core operation."""

    id: UUID
    tenant_id: UUID
    role: str
    email: Optional[str] = None

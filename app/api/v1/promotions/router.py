from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import PromotionRequest, PromotionResult, SessionStudentsResponse
from . import service

router = APIRouter(prefix="/api/v1/promotions", tags=["promotions"])


@router.post("", response_model=PromotionResult)
async def promote_students(
    payload: PromotionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> PromotionResult:
    """
    Promote students from an inactive session into the active session.

    Returns 200 with per-student errors when some students fail; the batch only
    fails as a whole on invalid sessions or target class.
    """
    try:
        return await service.promote_students(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/sessions/{session_id}/students", response_model=SessionStudentsResponse)
async def list_students_by_session(
    session_id: UUID,
    class_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SessionStudentsResponse:
    try:
        return await service.list_students_by_session(
            db,
            current_user.tenant_id,
            session_id,
            class_id=class_id,
            page=page,
            page_size=page_size,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

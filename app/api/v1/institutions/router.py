from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin, require_roles
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import InstitutionCreate, InstitutionResponse
from . import service

router = APIRouter(prefix="/api/v1/institutions", tags=["institutions"])


@router.post(
    "",
    response_model=InstitutionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_institution(
    payload: InstitutionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("SUPER_ADMIN")),
) -> InstitutionResponse:
    """Platform-level; only super admins onboard new institutions."""
    try:
        return await service.create_institution(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/me", response_model=InstitutionResponse)
async def get_my_institution(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InstitutionResponse:
    try:
        return await service.get_institution(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/me/freeze", response_model=InstitutionResponse)
async def freeze_institution(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> InstitutionResponse:
    try:
        return await service.freeze_institution(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/me/unfreeze", response_model=InstitutionResponse)
async def unfreeze_institution(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> InstitutionResponse:
    try:
        return await service.unfreeze_institution(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/me/disable", response_model=InstitutionResponse)
async def disable_institution(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("SUPER_ADMIN")),
) -> InstitutionResponse:
    try:
        return await service.disable_institution(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

"""Institution (tenant) lifecycle. Frozen or disabled institutions are read-only for every other service."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import RecordStatus
from app.core.exceptions import InvalidStateError, NotFoundError
from app.core.models import Tenant

from .schemas import InstitutionCreate, InstitutionResponse

logger = logging.getLogger(__name__)

INSTITUTION_NOT_FOUND = "Institution not found"


def _to_response(t: Tenant) -> InstitutionResponse:
    return InstitutionResponse(
        id=t.id,
        name=t.name,
        frozen=t.frozen,
        status=t.status,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


async def _get_tenant(db: AsyncSession, tenant_id: UUID) -> Tenant:
    result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
    tenant = result.scalar_one_or_none()
    if not tenant:
        raise NotFoundError(INSTITUTION_NOT_FOUND)
    return tenant


async def create_institution(db: AsyncSession, payload: InstitutionCreate) -> InstitutionResponse:
    tenant = Tenant(
        name=payload.name.strip(),
        frozen=False,
        status=RecordStatus.ACTIVE.value,
    )
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    logger.info("Created institution %s", tenant.id)
    return _to_response(tenant)


async def get_institution(db: AsyncSession, tenant_id: UUID) -> InstitutionResponse:
    return _to_response(await _get_tenant(db, tenant_id))


async def freeze_institution(db: AsyncSession, tenant_id: UUID) -> InstitutionResponse:
    tenant = await _get_tenant(db, tenant_id)
    if tenant.frozen:
        raise InvalidStateError("Institution is already frozen")
    tenant.frozen = True
    await db.commit()
    await db.refresh(tenant)
    logger.info("Froze institution %s", tenant_id)
    return _to_response(tenant)


async def unfreeze_institution(db: AsyncSession, tenant_id: UUID) -> InstitutionResponse:
    tenant = await _get_tenant(db, tenant_id)
    if not tenant.frozen:
        raise InvalidStateError("Institution is not frozen")
    tenant.frozen = False
    await db.commit()
    await db.refresh(tenant)
    logger.info("Unfroze institution %s", tenant_id)
    return _to_response(tenant)


async def disable_institution(db: AsyncSession, tenant_id: UUID) -> InstitutionResponse:
    """Disabled institutions stay readable; every mutation is rejected afterwards."""
    tenant = await _get_tenant(db, tenant_id)
    if tenant.status == RecordStatus.DISABLED.value:
        raise InvalidStateError("Institution is already disabled")
    tenant.status = RecordStatus.DISABLED.value
    await db.commit()
    await db.refresh(tenant)
    logger.info("Disabled institution %s", tenant_id)
    return _to_response(tenant)

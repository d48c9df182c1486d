import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date
from typing import AsyncGenerator, Dict, Optional
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.classes.schemas import ClassCreate
from app.api.v1.classes.service import create_class
from app.api.v1.sessions.schemas import SessionCreate
from app.api.v1.sessions.service import create_session
from app.api.v1.students.schemas import StudentCreate
from app.api.v1.students.service import create_student
from app.auth.security import create_access_token
from app.core.models import Tenant
from app.db.session import Base, get_db
from app.main import app


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite per test, so every connection sees the same schema and data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _add_tenant(db: AsyncSession, name: str) -> UUID:
    tenant = Tenant(name=name, frozen=False, status="ACTIVE")
    db.add(tenant)
    await db.commit()
    return tenant.id


@pytest.fixture()
async def tenant_id(db_session: AsyncSession) -> UUID:
    # Plain UUID: ORM instances expire on rollback and tests must not lazy-load them.
    return await _add_tenant(db_session, "Green Valley School")


@pytest.fixture()
async def other_tenant_id(db_session: AsyncSession) -> UUID:
    return await _add_tenant(db_session, "Riverside School")


def _make_headers(tenant_id: UUID, role: str = "SCHOOL_ADMIN", email: Optional[str] = None) -> Dict[str, str]:
    token = create_access_token(
        subject={
            "user_id": str(uuid4()),
            "tenant_id": str(tenant_id),
            "role": role,
            "email": email or f"{role.lower()}@example.com",
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(tenant_id: UUID) -> Dict[str, str]:
    return _make_headers(tenant_id)


@pytest.fixture()
def headers_for():
    """Bearer headers for any tenant and role."""
    return _make_headers


@pytest.fixture()
def make_session(db_session: AsyncSession, tenant_id: UUID):
    """Create a session named after its starting year, e.g. "2024" or "2024-2025"."""

    async def _make(name: str, activate: bool = False, tenant: Optional[UUID] = None):
        year = int(name[:4])
        payload = SessionCreate(
            name=name,
            start_date=date(year, 4, 1),
            end_date=date(year + 1, 3, 31),
            activate=activate,
        )
        return await create_session(db_session, tenant or tenant_id, payload)

    return _make


@pytest.fixture()
def make_class(db_session: AsyncSession, tenant_id: UUID):
    """Create a class in the tenant's active session."""

    async def _make(name: str, tenant: Optional[UUID] = None):
        return await create_class(db_session, tenant or tenant_id, ClassCreate(name=name))

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession, tenant_id: UUID):
    """Create a student in the tenant's active session."""

    async def _make(class_id: UUID, admission_no: str, name: str = "Asha Verma", tenant: Optional[UUID] = None):
        payload = StudentCreate(admission_no=admission_no, name=name, class_id=class_id)
        return await create_student(db_session, tenant or tenant_id, payload)

    return _make

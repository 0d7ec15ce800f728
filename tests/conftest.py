"""Pytest configuration and fixtures for tenant-center tests.

HTTP tests run against app.main:app through httpx's ASGI transport. Each test
gets a fresh in-memory SQLite database; get_db is overridden to use it.
"""
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database.engine import get_db, init_db
from app.features.permissions.models import Permission, Role, role_permissions
from app.features.users.auth import create_access_token
from app.features.users.models import User
from app.main import app


# ── Database ─────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the FastAPI app with the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Test Data ────────────────────────────────────────────────────

@pytest.fixture
async def permissions(db_session: AsyncSession) -> dict[str, Permission]:
    """
    Two menus:

        system (menu)
          users (menu)
            user:create (button)
          roles (menu)
        reports (menu)
    """
    system = Permission(id="p-system", code="system", name="System", type="menu", icon="setting", sort_order=0)
    reports = Permission(id="p-reports", code="reports", name="Reports", type="menu", sort_order=1)
    users = Permission(id="p-users", code="system:users", name="Users", type="menu", parent_id="p-system", sort_order=0)
    roles = Permission(id="p-roles", code="system:roles", name="Roles", type="menu", parent_id="p-system", sort_order=1)
    create_user = Permission(
        id="p-user-create", code="user:create", name="Create user", type="button", parent_id="p-users"
    )
    # Inserted out of display order on purpose
    db_session.add_all([create_user, reports, roles, users, system])
    await db_session.commit()
    return {p.id: p for p in (system, reports, users, roles, create_user)}


@pytest.fixture
async def role(db_session: AsyncSession, permissions: dict[str, Permission]) -> Role:
    """Role holding `users` and `reports` but not their parents or siblings."""
    role = Role(id="r-operator", code="ROLE_OPERATOR", name="Operator")
    db_session.add(role)
    await db_session.flush()
    await db_session.execute(
        insert(role_permissions),
        [{"role_id": role.id, "permission_id": pid} for pid in ("p-users", "p-reports")],
    )
    await db_session.commit()
    return role


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    user = User(id="u-admin", username="admin", is_admin=True)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def regular_user(db_session: AsyncSession) -> User:
    user = User(id="u-viewer", username="viewer", is_admin=False)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def user_headers(regular_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(regular_user.id)}"}

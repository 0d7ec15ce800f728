"""Tests for the grant store service and the in-process session path."""
import pytest

from app.core.exceptions import LoadError, RoleNotFoundError
from app.features.permissions import service
from app.features.permissions.models import Permission, Role
from app.features.permissions.service import DatabaseGrantStore
from app.features.permissions.session import AssignmentSession, SessionState
from app.features.permissions.tree import collect_enabled


pytestmark = pytest.mark.unit


async def granted(session_factory, role_id: str) -> set[str]:
    async with session_factory() as db:
        return await service.get_granted_ids(db, role_id)


async def test_load_role_grants_flags_held_permissions(session_factory, role) -> None:
    async with session_factory() as db:
        forest = await service.load_role_grants(db, role.id)

    assert collect_enabled(forest) == {"p-users", "p-reports"}
    assert [n.id for n in forest] == ["p-system", "p-reports"]


async def test_load_unknown_role(session_factory, permissions) -> None:
    async with session_factory() as db:
        with pytest.raises(RoleNotFoundError):
            await service.load_role_grants(db, "nope")


async def test_replace_reports_change(session_factory, role) -> None:
    async with session_factory() as db:
        change = await service.replace_role_grants(db, role.id, ["p-users", "p-system"])

    assert change == {"added": ["p-system"], "removed": ["p-reports"], "ignored": []}
    assert await granted(session_factory, role.id) == {"p-users", "p-system"}


async def test_replace_drops_ids_that_name_no_permission(session_factory, role) -> None:
    async with session_factory() as db:
        change = await service.replace_role_grants(db, role.id, ["p-ghost", "p-roles", "p-phantom"])

    assert change["ignored"] == ["p-ghost", "p-phantom"]
    assert change["added"] == ["p-roles"]
    assert await granted(session_factory, role.id) == {"p-roles"}


async def test_replace_rolls_back_when_a_later_step_fails(session_factory, role, monkeypatch) -> None:
    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit sink down")

    monkeypatch.setattr(service, "add_audit_log", broken_audit)

    async with session_factory() as db:
        with pytest.raises(RuntimeError):
            await service.replace_role_grants(db, role.id, ["p-roles"])

    assert await granted(session_factory, role.id) == {"p-users", "p-reports"}


# ── Session over the database store ──────────────────────────────

async def test_session_round_trip_against_database(session_factory, role, admin_user) -> None:
    session = AssignmentSession(DatabaseGrantStore(session_factory, actor_id=admin_user.id), timeout=None)

    await session.open(role.id)
    assert session.selection == {"p-users", "p-reports"}

    session.toggle("p-system", True)
    session.toggle("p-reports", False)
    submitted = await session.submit()

    assert submitted == {"p-system", "p-users"}
    assert session.state is SessionState.IDLE
    assert await granted(session_factory, role.id) == {"p-system", "p-users"}


async def test_session_open_unknown_role_raises_load_error(session_factory, permissions) -> None:
    session = AssignmentSession(DatabaseGrantStore(session_factory), timeout=None)

    with pytest.raises(LoadError):
        await session.open("nope")
    assert session.state is SessionState.IDLE


async def test_session_saves_when_a_toggled_permission_was_deleted_meanwhile(
    session_factory, role, permissions
) -> None:
    session = AssignmentSession(DatabaseGrantStore(session_factory), timeout=None)
    await session.open(role.id)
    session.toggle("p-roles", True)
    session.toggle("p-reports", False)

    async with session_factory() as db:
        await db.delete(await db.get(Permission, "p-roles"))
        await db.commit()

    assert await session.submit() == {"p-users", "p-roles"}
    assert session.state is SessionState.IDLE
    assert await granted(session_factory, role.id) == {"p-users"}


async def test_new_rows_get_ulid_keys(db_session) -> None:
    first = Role(code="ROLE_A", name="A")
    second = Role(code="ROLE_B", name="B")
    db_session.add(first)
    await db_session.flush()
    db_session.add(second)
    await db_session.flush()

    assert len(first.id) == 26
    assert len(second.id) == 26
    assert first.id != second.id


def test_loading_permissions_pulls_in_no_roles() -> None:
    assert "roles" not in Permission.__mapper__.relationships
    assert Role.__mapper__.relationships["permissions"].lazy == "raise"

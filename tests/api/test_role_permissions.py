"""HTTP tests for GET/POST /roles/{role_id}/permissions."""
import logging

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.features.permissions.models import AuditLog
from app.features.permissions.service import get_granted_ids


pytestmark = pytest.mark.api


async def granted(session_factory, role_id: str) -> set[str]:
    async with session_factory() as db:
        return await get_granted_ids(db, role_id)


# ── GET ──────────────────────────────────────────────────────────

async def test_get_returns_tree_with_enable_flags(client: AsyncClient, role, user_headers) -> None:
    response = await client.get(f"/roles/{role.id}/permissions", headers=user_headers)

    assert response.status_code == 200
    tree = response.json()
    assert [n["id"] for n in tree] == ["p-system", "p-reports"]

    system, reports = tree
    assert system["enable"] is False
    assert system["icon"] == "setting"
    assert reports["enable"] is True
    assert reports["children"] == []

    users, roles = system["children"]
    assert (users["id"], users["enable"]) == ("p-users", True)
    assert (roles["id"], roles["enable"]) == ("p-roles", False)
    assert users["children"][0]["id"] == "p-user-create"
    assert users["children"][0]["enable"] is False


async def test_get_unknown_role_is_404(client: AsyncClient, permissions, user_headers) -> None:
    response = await client.get("/roles/nope/permissions", headers=user_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "ROLE_NOT_FOUND"


async def test_get_requires_token(client: AsyncClient, role) -> None:
    response = await client.get(f"/roles/{role.id}/permissions")
    assert response.status_code in (401, 403)


async def test_get_rejects_bad_token(client: AsyncClient, role) -> None:
    response = await client.get(
        f"/roles/{role.id}/permissions", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


# ── POST ─────────────────────────────────────────────────────────

async def test_post_replaces_grants(client: AsyncClient, role, admin_headers, session_factory) -> None:
    response = await client.post(
        f"/roles/{role.id}/permissions",
        json={"permissions": ["p-system", "p-user-create"]},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert await granted(session_factory, role.id) == {"p-system", "p-user-create"}

    tree = (await client.get(f"/roles/{role.id}/permissions", headers=admin_headers)).json()
    assert tree[0]["enable"] is True
    assert tree[1]["enable"] is False


async def test_post_empty_list_revokes_everything(
    client: AsyncClient, role, admin_headers, session_factory
) -> None:
    response = await client.post(
        f"/roles/{role.id}/permissions", json={"permissions": []}, headers=admin_headers
    )

    assert response.status_code == 200
    assert await granted(session_factory, role.id) == set()


async def test_post_duplicates_are_collapsed(
    client: AsyncClient, role, admin_headers, session_factory
) -> None:
    response = await client.post(
        f"/roles/{role.id}/permissions",
        json={"permissions": ["p-roles", "p-roles"]},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert await granted(session_factory, role.id) == {"p-roles"}


async def test_post_drops_unknown_permission_ids(
    client: AsyncClient, role, admin_headers, session_factory
) -> None:
    response = await client.post(
        f"/roles/{role.id}/permissions",
        json={"permissions": ["p-roles", "p-ghost"]},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert await granted(session_factory, role.id) == {"p-roles"}

    async with session_factory() as db:
        entry = (await db.execute(select(AuditLog))).scalars().one()
    assert entry.details["ignored"] == ["p-ghost"]


async def test_post_unknown_role_is_404(client: AsyncClient, permissions, admin_headers) -> None:
    response = await client.post(
        "/roles/nope/permissions", json={"permissions": ["p-system"]}, headers=admin_headers
    )
    assert response.status_code == 404


async def test_post_missing_body_field_is_400(client: AsyncClient, role, admin_headers) -> None:
    response = await client.post(f"/roles/{role.id}/permissions", json={}, headers=admin_headers)

    assert response.status_code == 400
    assert "permissions" in response.json()


async def test_post_requires_admin(client: AsyncClient, role, user_headers, session_factory) -> None:
    response = await client.post(
        f"/roles/{role.id}/permissions", json={"permissions": []}, headers=user_headers
    )

    assert response.status_code == 403
    assert await granted(session_factory, role.id) == {"p-users", "p-reports"}


async def test_post_writes_audit_log(client: AsyncClient, role, admin_user, admin_headers, session_factory) -> None:
    await client.post(
        f"/roles/{role.id}/permissions",
        json={"permissions": ["p-users", "p-roles"]},
        headers=admin_headers,
    )

    async with session_factory() as db:
        entries = (await db.execute(select(AuditLog))).scalars().all()

    assert len(entries) == 1
    entry = entries[0]
    assert entry.user_id == admin_user.id
    assert entry.action == "replace_permissions"
    assert entry.resource_id == role.id
    assert entry.details["added"] == ["p-roles"]
    assert entry.details["removed"] == ["p-reports"]


# ── App wiring ───────────────────────────────────────────────────

async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_route_timings_are_logged(client: AsyncClient, role, user_headers, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="app.main")

    await client.get(f"/roles/{role.id}/permissions", headers=user_headers)

    timings = [r.getMessage() for r in caplog.records if r.name == "app.main" and "timing" in r.getMessage()]
    assert any("permissions.routes.get_role_permissions" in m and "time:wall" in m for m in timings)
    assert any("http_status:200" in m for m in timings)

"""
Grant store: load a role's permission tree and replace its grants.

Replacement is all-or-nothing. The whole change (delete old grants, insert the
new set, audit entry) runs in one transaction and is rolled back on any error,
so a role never ends up with part of a submitted set.
"""
from typing import Any, Dict, Iterable, Optional, Sequence
from sqlalchemy import select, delete, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import GrantStoreError, RoleNotFoundError
from app.features.permissions.dependencies import add_audit_log
from app.features.permissions.models import Permission, Role, role_permissions
from app.features.permissions.schemas import Forest
from app.features.permissions.tree import build_forest
from app.utils import get_logger


log = get_logger(__name__)


async def get_role(db: AsyncSession, role_id: str) -> Role:
    """Fetch a role or raise RoleNotFoundError."""
    result = await db.execute(select(Role).where(Role.id == role_id))
    role = result.scalars().first()
    if not role:
        raise RoleNotFoundError(role_id)
    return role


async def get_granted_ids(db: AsyncSession, role_id: str) -> set[str]:
    """Permission IDs currently granted to a role."""
    result = await db.execute(
        select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role_id)
    )
    return set(result.scalars().all())


async def load_role_grants(db: AsyncSession, role_id: str) -> Forest:
    """
    Build the full permission tree with `enabled` set where the role holds the grant.

    Raises:
        RoleNotFoundError: If the role does not exist
    """
    await get_role(db, role_id)

    result = await db.execute(select(Permission))
    permissions = result.scalars().all()
    granted = await get_granted_ids(db, role_id)

    log.debug(f"Loaded {len(permissions)} permissions for role {role_id}, {len(granted)} granted")
    return build_forest(permissions, granted)


async def replace_role_grants(
    db: AsyncSession,
    role_id: str,
    permission_ids: Iterable[str],
    actor_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Make `permission_ids` the exact grant set of a role, dropping IDs that name no permission.

    Args:
        db: Database session; committed on success, rolled back on failure
        role_id: Role whose grants are replaced
        permission_ids: Complete set of permission IDs to grant (duplicates ignored)
        actor_id: User performing the change, for the audit entry
        ip_address: Client IP address, for the audit entry
        user_agent: Client user agent, for the audit entry

    Returns:
        Summary with the added and removed permission IDs, and the requested
        IDs that were ignored because no such permission exists (deleted since
        the caller loaded the tree)

    Raises:
        RoleNotFoundError: If the role does not exist
    """
    requested = list(dict.fromkeys(permission_ids))

    try:
        role = await get_role(db, role_id)

        ignored: list[str] = []
        if requested:
            result = await db.execute(select(Permission.id).where(Permission.id.in_(requested)))
            found = set(result.scalars().all())
            ignored = [permission_id for permission_id in requested if permission_id not in found]
            if ignored:
                log.warning(f"Ignoring unknown permission ids for role {role_id}: {ignored}")
                requested = [permission_id for permission_id in requested if permission_id in found]

        previous = await get_granted_ids(db, role_id)

        await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
        if requested:
            await db.execute(
                insert(role_permissions),
                [{"role_id": role_id, "permission_id": permission_id} for permission_id in requested],
            )

        change = {
            "added": sorted(set(requested) - previous),
            "removed": sorted(previous - set(requested)),
            "ignored": ignored,
        }
        add_audit_log(
            db,
            user_id=actor_id,
            action="replace_permissions",
            resource_type="role",
            resource_id=role_id,
            details={"permission_count": len(requested), **change},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    log.info(
        f"Replaced grants of role {role.code}: {len(requested)} granted, "
        f"+{len(change['added'])} -{len(change['removed'])}"
    )
    return change


class DatabaseGrantStore:
    """
    Grant store backed directly by the database.

    Lets an assignment session run in-process (scripts, admin shells) instead
    of over HTTP. Each call opens its own database session. Failures surface
    as GrantStoreError, the same as the HTTP client.
    """

    def __init__(self, session_factory: async_sessionmaker, actor_id: Optional[str] = None):
        self._session_factory = session_factory
        self._actor_id = actor_id

    async def load_role_grants(self, role_id: str) -> Forest:
        async with self._session_factory() as db:
            try:
                return await load_role_grants(db, role_id)
            except RoleNotFoundError as exc:
                raise GrantStoreError(exc.message, status_code=exc.status_code) from exc
            except SQLAlchemyError as exc:
                raise GrantStoreError(f"Database error while loading role {role_id}") from exc

    async def replace_role_grants(self, role_id: str, permission_ids: Sequence[str]) -> None:
        async with self._session_factory() as db:
            try:
                await replace_role_grants(db, role_id, permission_ids, actor_id=self._actor_id)
            except RoleNotFoundError as exc:
                raise GrantStoreError(exc.message, status_code=exc.status_code) from exc
            except SQLAlchemyError as exc:
                raise GrantStoreError(f"Database error while saving role {role_id}") from exc

"""
Seed script to populate the default permission tree and roles.

Run this script after database initialization to create:
- The default menu/button permission tree
- Default roles with their initial grants
- An admin account, plus a development token for calling the API

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.models import Permission, Role
from app.features.users.auth import create_access_token
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# (code, name, type, parent code, icon); parents are listed before their children
DEFAULT_PERMISSIONS = [
    ("system", "System", "menu", None, "setting"),
    ("system:users", "Users", "menu", "system", "user"),
    ("user:create", "Create user", "button", "system:users", None),
    ("user:update", "Edit user", "button", "system:users", None),
    ("user:bind_roles", "Assign roles", "button", "system:users", None),
    ("system:roles", "Roles", "menu", "system", "team"),
    ("role:create", "Create role", "button", "system:roles", None),
    ("role:update", "Edit role", "button", "system:roles", None),
    ("role:bind_permissions", "Assign permissions", "button", "system:roles", None),
    ("system:permissions", "Permissions", "menu", "system", "key"),
    ("permission:create", "Create permission", "button", "system:permissions", None),
    ("permission:update", "Edit permission", "button", "system:permissions", None),
    ("system:menus", "Menus", "menu", "system", "menu"),
    ("menu:create", "Create menu", "button", "system:menus", None),
    ("menu:update", "Edit menu", "button", "system:menus", None),
    ("system:buttons", "Buttons", "menu", "system", "appstore"),
    ("button:create", "Create button", "button", "system:buttons", None),
    ("button:update", "Edit button", "button", "system:buttons", None),
]


DEFAULT_ROLES = {
    "ROLE_ADMIN": {
        "name": "Administrator",
        "description": "System administrator with all permissions",
        "permissions": "ALL"  # Special case - gets all permissions
    },
    "ROLE_AUDITOR": {
        "name": "Auditor",
        "description": "Can browse every screen but change nothing",
        "permissions": [
            "system", "system:users", "system:roles", "system:permissions",
            "system:menus", "system:buttons",
        ]
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create the default permission tree.

    Returns:
        Dictionary mapping permission codes to Permission objects
    """
    log.info("Creating default permissions...")
    permissions_map: dict[str, Permission] = {}

    for sort_order, (code, name, perm_type, parent_code, icon) in enumerate(DEFAULT_PERMISSIONS):
        stmt = select(Permission).where(Permission.code == code)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Permission '{code}' already exists, skipping")
            permissions_map[code] = existing
            continue

        parent = permissions_map.get(parent_code) if parent_code else None
        permission = Permission(
            code=code,
            name=name,
            type=perm_type,
            icon=icon,
            parent_id=parent.id if parent else None,
            sort_order=sort_order,
        )
        db.add(permission)
        # Flush so children created later in the loop can reference the id
        await db.flush()
        permissions_map[code] = permission
        log.info(f"Created permission: {code}")

    await db.commit()
    log.info(f"Ensured {len(permissions_map)} permissions")
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]):
    """Create default roles and assign their initial permissions."""
    log.info("Creating default roles...")

    for role_code, role_config in DEFAULT_ROLES.items():
        stmt = select(Role).where(Role.code == role_code)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Role '{role_code}' already exists, skipping")
            continue

        role = Role(
            code=role_code,
            name=role_config["name"],
            description=role_config["description"],
        )

        if role_config["permissions"] == "ALL":
            role.permissions = list(permissions_map.values())
            log.info(f"Created role '{role_code}' with ALL permissions")
        else:
            granted = []
            for code in role_config["permissions"]:
                if code in permissions_map:
                    granted.append(permissions_map[code])
                else:
                    log.warning(f"Permission '{code}' not found for role '{role_code}'")

            role.permissions = granted
            log.info(f"Created role '{role_code}' with {len(granted)} permissions")

        db.add(role)

    await db.commit()
    log.info("Default roles created successfully")


async def seed_admin(db: AsyncSession) -> User:
    """Create the `admin` account if it does not exist."""
    result = await db.execute(select(User).where(User.username == "admin"))
    admin = result.scalars().first()
    if admin is None:
        admin = User(username="admin", is_admin=True)
        db.add(admin)
        await db.commit()
        await db.refresh(admin)
        log.info("Created admin account")
    return admin


async def main():
    """Main function to seed permissions, roles and the admin account."""
    log.info("Starting permission seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            permissions_map = await seed_permissions(db)
            await seed_roles(db, permissions_map)
            admin = await seed_admin(db)

            log.info("Permission seeding completed successfully!")
            for role_code, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_code}: {role_config['description']}")
            log.info(f"Development token for admin: {create_access_token(admin.id)}")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())

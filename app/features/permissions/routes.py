"""
Role permission assignment API routes.

GET returns the role's permission tree with `enable` flags; POST replaces the
role's grants with the submitted set.
"""
from typing import List
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.limiter import limit_grant_writes
from app.features.users.dependencies import get_current_user, get_current_admin_user
from app.features.users.models import User
from app.features.permissions.schemas import (
    PermissionNode,
    ReplaceRolePermissions,
    ReplaceRolePermissionsResponse,
)
from app.features.permissions.dependencies import get_client_context
from app.features.permissions import service
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("/{role_id}/permissions", response_model=List[PermissionNode])
async def get_role_permissions(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get the full permission tree, flagged with what the role currently holds."""
    return await service.load_role_grants(db, role_id)


@router.post(
    "/{role_id}/permissions",
    response_model=ReplaceRolePermissionsResponse,
    status_code=status.HTTP_200_OK,
)
@limit_grant_writes
async def replace_role_permissions(
    role_id: str,
    payload: ReplaceRolePermissions,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Replace every grant of a role with the submitted permission IDs (admin only)."""
    change = await service.replace_role_grants(
        db,
        role_id,
        payload.permissions,
        actor_id=current_user.id,
        **get_client_context(request),
    )
    log.debug(f"Role {role_id} grants changed by {current_user.username}: {change}")
    return ReplaceRolePermissionsResponse(message="Permissions assigned successfully")

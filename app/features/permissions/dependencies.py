"""
Request helpers for the permission routes.

Implements:
- Client context extraction for audit entries
- Audit logging helper
"""
from typing import Any, Dict, Optional
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


def get_client_context(request: Request) -> Dict[str, Optional[str]]:
    """IP address and user agent of the caller, as stored on audit entries."""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def add_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> AuditLog:
    """
    Stage an audit log entry in the caller's transaction.

    The entry is committed (or rolled back) together with the change it
    describes, so a failed grant replacement leaves no audit trace.

    Args:
        db: Database session holding the open transaction
        user_id: User performing the action
        action: Action performed (e.g., "replace_permissions")
        resource_type: Type of resource (e.g., "role")
        resource_id: ID of the resource
        details: Additional details
        ip_address: Client IP address
        user_agent: Client user agent

    Returns:
        The pending AuditLog object
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent
    )
    db.add(audit_log)

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}")

    return audit_log

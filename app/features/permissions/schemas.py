"""
Pydantic schemas for role permission assignment.

PermissionNode is both the wire format of GET /roles/{id}/permissions and the
in-memory tree an assignment session edits, so it is frozen: edits go through
app.features.permissions.tree and produce new nodes.
"""
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator


# ============================================================================
# Permission Tree
# ============================================================================

class PermissionNode(BaseModel):
    """One permission in a role's tree, flagged with whether the role holds it."""
    id: str = Field(..., description="Permission ID, unique across the whole tree")
    name: str = Field(..., description="Display label")
    enabled: bool = Field(False, alias="enable", description="Whether the role holds this permission")
    icon: Optional[str] = Field(None, description="Display icon, passed through untouched")
    children: Tuple["PermissionNode", ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


PermissionNode.model_rebuild()

# Ordered top-level nodes of a role's tree
Forest = Tuple[PermissionNode, ...]


# ============================================================================
# Grant Replacement
# ============================================================================

class ReplaceRolePermissions(BaseModel):
    """Body of POST /roles/{id}/permissions: the complete set of granted ids."""
    permissions: List[str] = Field(..., description="Every permission ID the role should hold")

    @field_validator("permissions")
    @classmethod
    def ids_not_blank(cls, v: List[str]) -> List[str]:
        """Reject empty strings; duplicates are collapsed later."""
        if any(not item.strip() for item in v):
            raise ValueError("Permission IDs must not be blank")
        return v


class ReplaceRolePermissionsResponse(BaseModel):
    """Acknowledgement for a grant replacement."""
    ok: bool = True
    message: str

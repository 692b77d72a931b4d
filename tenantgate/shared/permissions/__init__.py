"""
Shared permission system for role-based access control.

The catalog and role table live in ``models``; the resolver and the pure
gate functions in ``services``; the FastAPI dependencies in
``dependencies``.

Usage:
    from tenantgate.shared.permissions.dependencies import require_permissions
    from tenantgate.shared.permissions.models import Permission

    @router.get("/{organization_id}/tasks")
    async def list_tasks(
        context: AuthorizationContext = Depends(
            require_permissions(Permission.TASK_READ)
        )
    ):
        pass
"""

from .models import (
    ROLE_PERMISSIONS,
    AuthorizationContext,
    AuthorizationStage,
    OrganizationContext,
    OrganizationRole,
    OrgIdLocation,
    Permission,
)

__all__ = [
    "AuthorizationContext",
    "AuthorizationStage",
    "OrgIdLocation",
    "OrganizationContext",
    "OrganizationRole",
    "Permission",
    "ROLE_PERMISSIONS",
]

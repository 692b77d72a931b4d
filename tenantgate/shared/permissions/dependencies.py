import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Depends, Request

from tenantgate.core.storage import AuthorizationStore, get_store
from tenantgate.domains.auth.dependencies import get_optional_user_id
from tenantgate.domains.auth.service import verify_organization_access
from tenantgate.shared.exceptions import AuthenticationMissingError

from .models import AuthorizationContext, OrganizationContext, OrgIdLocation, Permission
from .services import PermissionResolver, enforce_permissions

logger = logging.getLogger(__name__)

ORG_ID_FIELD = "organization_id"

OrganizationGate = Callable[..., Awaitable[OrganizationContext]]


async def extract_organization_id(
    request: Request, location: OrgIdLocation
) -> Optional[str]:
    """
    Read the organization ID from the configured part of the request.

    Returns None when the value is absent or is not a string.
    """
    value: Any
    if location == OrgIdLocation.PATH:
        value = request.path_params.get(ORG_ID_FIELD)
    elif location == OrgIdLocation.QUERY:
        value = request.query_params.get(ORG_ID_FIELD)
    else:
        try:
            body = await request.json()
        except ValueError:
            body = None
        value = body.get(ORG_ID_FIELD) if isinstance(body, dict) else None

    return value if isinstance(value, str) else None


def get_permission_resolver(
    store: AuthorizationStore = Depends(get_store),
) -> PermissionResolver:
    return PermissionResolver(store)


def _build_organization_gate(location: OrgIdLocation) -> OrganizationGate:
    async def check_organization(
        request: Request,
        user_id: Optional[str] = Depends(get_optional_user_id),
        store: AuthorizationStore = Depends(get_store),
    ) -> OrganizationContext:
        """
        Validate the user is an active member of the requested organization.

        Returns:
            OrganizationContext for the verified organization

        Raises:
            AuthorizationDenied: If any verification step fails
        """
        if not user_id:
            logger.warning("Organization access denied: no authenticated user")
            raise AuthenticationMissingError()

        organization_id = await extract_organization_id(request, location)
        return await verify_organization_access(store, user_id, organization_id)

    return check_organization


# One gate per location so FastAPI's per-request dependency cache runs the
# membership check once even when several dependencies need it.
_ORGANIZATION_GATES: Dict[OrgIdLocation, OrganizationGate] = {
    location: _build_organization_gate(location) for location in OrgIdLocation
}


def require_organization(
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> OrganizationGate:
    """
    Dependency for routes scoped to an organization.

    Args:
        location: Where the organization ID is read from

    Returns:
        Async dependency function that returns the verified OrganizationContext
    """
    return _ORGANIZATION_GATES[OrgIdLocation(location)]


def require_permissions(
    *permissions: Permission,
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> Callable[..., Awaitable[AuthorizationContext]]:
    """
    Dependency factory for permission-based authorization.

    Creates a dependency that first verifies organization membership and then
    checks the user holds every listed permission in that organization.

    Args:
        *permissions: Permissions required to access the endpoint
        location: Where the organization ID is read from

    Returns:
        Async dependency function that returns the AuthorizationContext
    """
    if not permissions:
        raise ValueError("require_permissions needs at least one permission")

    required = frozenset(Permission(p) for p in permissions)

    async def check_permissions(
        user_id: Optional[str] = Depends(get_optional_user_id),
        context: OrganizationContext = Depends(require_organization(location)),
        resolver: PermissionResolver = Depends(get_permission_resolver),
    ) -> AuthorizationContext:
        return await enforce_permissions(resolver, user_id, context, required)

    return check_permissions


def require_admin(
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> Callable[..., Awaitable[AuthorizationContext]]:
    """Routes restricted to organization administrators."""
    return require_permissions(Permission.ORG_ADMIN, location=location)


def require_org_read(
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> Callable[..., Awaitable[AuthorizationContext]]:
    """Routes that read organization data."""
    return require_permissions(Permission.ORG_READ, location=location)


def require_user_management(
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> Callable[..., Awaitable[AuthorizationContext]]:
    """Routes that modify organization users."""
    return require_permissions(Permission.USER_WRITE, location=location)

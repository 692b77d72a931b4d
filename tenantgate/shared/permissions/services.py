import logging
from typing import FrozenSet, Iterable, Optional, Set

from tenantgate.core.storage import AuthorizationStore, call_store
from tenantgate.shared.exceptions import (
    AuthenticationMissingError,
    OrganizationContextMissingError,
    PermissionDeniedError,
    StoreError,
    StoreFailureError,
)

from .models import (
    ROLE_PERMISSIONS,
    AuthorizationContext,
    OrganizationContext,
    OrganizationRole,
    Permission,
)

logger = logging.getLogger(__name__)


def has_permission(role: OrganizationRole, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: The organization role to check
        permission: The permission to validate

    Returns:
        True if the role has the permission, False otherwise
    """
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def get_role_permissions(role: OrganizationRole) -> FrozenSet[Permission]:
    """Built-in permissions for a role; unknown roles get nothing."""
    return ROLE_PERMISSIONS.get(role, frozenset())


def parse_permissions(values: Iterable[str]) -> FrozenSet[Permission]:
    """Map permission strings onto the catalog, dropping unknown values."""
    parsed: Set[Permission] = set()
    for value in values:
        try:
            parsed.add(Permission(value))
        except ValueError:
            logger.warning(f"Ignoring unknown permission in role binding: {value!r}")
    return frozenset(parsed)


class PermissionResolver:
    """
    Computes the effective permission set of a user in an organization.

    Effective permissions are the built-in permissions of the member's role
    combined with any custom role-binding grants the store holds for them.
    A user without an active membership resolves to the empty set.
    """

    def __init__(self, store: AuthorizationStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout

    async def resolve_strict(
        self, user_id: str, organization_id: str
    ) -> FrozenSet[Permission]:
        """
        Resolve permissions, raising StoreError if the store fails.

        Raises:
            StoreError: If any store lookup fails or times out
        """
        membership = await call_store(
            self.store.get_user_org_membership,
            user_id,
            organization_id,
            timeout=self.timeout,
        )
        if membership is None or not membership.is_active:
            return frozenset()

        granted = set(get_role_permissions(membership.role))

        bound = await call_store(
            self.store.get_user_permissions,
            user_id,
            organization_id,
            timeout=self.timeout,
        )
        granted.update(parse_permissions(bound or []))

        return frozenset(granted)

    async def resolve(self, user_id: str, organization_id: str) -> FrozenSet[Permission]:
        """Resolve permissions, returning the empty set if the store fails."""
        try:
            return await self.resolve_strict(user_id, organization_id)
        except StoreError as e:
            logger.error(
                f"Error resolving permissions for user {user_id} "
                f"in org {organization_id}: {e}"
            )
            return frozenset()


async def enforce_permissions(
    resolver: PermissionResolver,
    user_id: Optional[str],
    context: Optional[OrganizationContext],
    required: Iterable[Permission],
) -> AuthorizationContext:
    """
    Check that the user holds every required permission in the verified
    organization.

    Args:
        resolver: Permission resolver bound to the request's store
        user_id: Authenticated user ID, if any
        context: Result of the organization context gate, if it ran
        required: Permissions the operation needs

    Returns:
        AuthorizationContext carrying the resolved permissions

    Raises:
        AuthenticationMissingError: No authenticated user (401)
        OrganizationContextMissingError: Organization not yet verified (400)
        StoreFailureError: Store failed during resolution (403)
        PermissionDeniedError: A required permission is missing (403)
    """
    if not user_id:
        logger.warning("Permission check denied: no authenticated user")
        raise AuthenticationMissingError(
            "User must be authenticated to check permissions"
        )

    if context is None or not context.organization_id or context.user_id != user_id:
        logger.warning(
            f"Permission check denied for user {user_id}: "
            "organization context not established"
        )
        raise OrganizationContextMissingError("ORG_CONTEXT_REQUIRED")

    organization_id = context.organization_id

    try:
        resolved = await resolver.resolve_strict(user_id, organization_id)
    except StoreError as e:
        logger.error(
            f"Store error getting permissions for user {user_id} "
            f"in org {organization_id}: {e}"
        )
        raise StoreFailureError("AUTHORIZATION_ERROR", organization_id)

    missing = set(required) - resolved
    if missing:
        logger.warning(
            f"Permission denied for user {user_id} in org {organization_id}: "
            f"missing {sorted(p.value for p in missing)}"
        )
        raise PermissionDeniedError(organization_id)

    return AuthorizationContext(
        user_id=user_id,
        organization_id=organization_id,
        role=context.role,
        permissions=resolved,
    )

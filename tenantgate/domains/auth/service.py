import logging
from typing import Optional

from tenantgate.core.storage import AuthorizationStore, call_store
from tenantgate.domains.organizations.models import (
    OrganizationMembershipSummary,
    SessionState,
)
from tenantgate.shared.exceptions import (
    AuthenticationMissingError,
    MembershipDeniedError,
    OrganizationContextMissingError,
    StoreError,
    StoreFailureError,
)
from tenantgate.shared.permissions.models import OrganizationContext

logger = logging.getLogger(__name__)


class SessionService:
    """Service for session-related operations"""

    def __init__(self, store: AuthorizationStore):
        self.store = store

    async def get_session_state(self, user_id: str) -> SessionState:
        """
        Get the organizations a user currently belongs to, with their role
        in each.

        Args:
            user_id: Authenticated user ID

        Returns:
            SessionState listing every active membership
        """
        memberships = await call_store(self.store.list_user_memberships, user_id)

        organizations = []
        for membership in memberships:
            organization = await call_store(
                self.store.get_organization, membership.organization_id
            )
            if organization and organization.is_active:
                organizations.append(
                    OrganizationMembershipSummary(
                        id=organization.id,
                        name=organization.name,
                        role=membership.role,
                    )
                )

        return SessionState(user_id=user_id, organizations=organizations)


async def verify_organization_access(
    store: AuthorizationStore,
    user_id: Optional[str],
    organization_id: Optional[str],
    timeout: Optional[float] = None,
) -> OrganizationContext:
    """
    Validate that a user is an active member of an organization

    Args:
        store: Authorization store
        user_id: Authenticated user ID, if any
        organization_id: Organization ID extracted from the request, if any
        timeout: Optional override for the store timeout

    Returns:
        OrganizationContext with the verified organization and role

    Raises:
        AuthenticationMissingError: No authenticated user (401)
        OrganizationContextMissingError: No organization ID (400)
        StoreFailureError: Store failed while checking membership (403)
        MembershipDeniedError: User is not an active member (403)
    """
    if not user_id:
        logger.warning("Organization access denied: no authenticated user")
        raise AuthenticationMissingError()

    if not organization_id or not organization_id.strip():
        logger.warning(f"Organization access denied for user {user_id}: no org ID")
        raise OrganizationContextMissingError("ORG_ID_REQUIRED")

    try:
        has_access = await call_store(
            store.has_org_membership, user_id, organization_id, timeout=timeout
        )
        membership = None
        if has_access:
            membership = await call_store(
                store.get_user_org_membership,
                user_id,
                organization_id,
                timeout=timeout,
            )
    except StoreError as e:
        logger.error(
            f"Store error checking org access for user {user_id} "
            f"in org {organization_id}: {e}"
        )
        raise StoreFailureError("ORG_AUTHORIZATION_ERROR", organization_id)

    if not has_access or membership is None or not membership.is_active:
        logger.warning(
            f"Organization access denied for user {user_id} in org {organization_id}"
        )
        raise MembershipDeniedError(organization_id)

    return OrganizationContext(
        user_id=user_id,
        organization_id=organization_id,
        role=membership.role,
    )

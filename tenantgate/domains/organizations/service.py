# tenantgate/domains/organizations/service.py
import logging
from typing import List

from tenantgate.core.storage import AuthorizationStore, call_store
from tenantgate.domains.organizations.models import (
    AddOrganizationMemberRequest,
    CreateOrganizationResponse,
    Membership,
    Organization,
    OrganizationCreate,
    OrganizationMemberResponse,
    OrganizationResponse,
    UpdateOrganizationMemberRequest,
)
from tenantgate.shared.exceptions import (
    InvalidDataError,
    MemberNotFoundError,
    MembershipConflictError,
    MembershipStateError,
    OrganizationNotFoundError,
    PermissionDeniedError,
)
from tenantgate.shared.permissions.models import (
    AuthorizationContext,
    OrganizationRole,
    Permission,
)

logger = logging.getLogger(__name__)

# Granting or taking away these roles needs org:admin on top of the route's
# own permission.
PRIVILEGED_ROLES = frozenset({OrganizationRole.owner, OrganizationRole.admin})

STALE_ROLE_MESSAGE = "Member role changed, retry the request"


class OrganizationService:
    def __init__(self, store: AuthorizationStore):
        self.store = store

    async def create_organization(
        self, organization_data: OrganizationCreate, user_id: str
    ) -> CreateOrganizationResponse:
        """
        Create a new organization and add the current user as owner.
        """
        organization = await call_store(
            self.store.create_organization,
            Organization(
                name=organization_data.name,
                subdomain=organization_data.subdomain,
                plan=organization_data.plan,
            ),
        )

        membership = await call_store(
            self.store.add_org_membership,
            organization.id,
            user_id,
            OrganizationRole.owner,
        )
        logger.info(f"User {user_id} created organization {organization.id}")

        return CreateOrganizationResponse(
            organization=OrganizationResponse.from_organization(organization),
            role=membership.role,
        )

    async def get_organization(self, organization_id: str) -> OrganizationResponse:
        organization = await call_store(self.store.get_organization, organization_id)
        if not organization:
            raise OrganizationNotFoundError()
        return OrganizationResponse.from_organization(organization)

    async def get_organization_members(
        self, organization_id: str
    ) -> List[OrganizationMemberResponse]:
        """
        Get all active members of an organization.

        Args:
            organization_id: The organization ID to get members for

        Returns:
            List of organization members ordered by join date
        """
        members = await call_store(self.store.list_org_members, organization_id)
        return [OrganizationMemberResponse.from_membership(m) for m in members]

    async def add_member(
        self,
        organization_id: str,
        request_data: AddOrganizationMemberRequest,
        requester: AuthorizationContext,
    ) -> OrganizationMemberResponse:
        """
        Add a user to the organization with the given role.

        Raises:
            PermissionDeniedError: Privileged role without org:admin
            MembershipConflictError: User is already an active member
        """
        self._check_role_grant(request_data.role, requester)

        try:
            membership = await call_store(
                self.store.add_org_membership,
                organization_id,
                request_data.user_id,
                request_data.role,
            )
        except MembershipStateError:
            raise MembershipConflictError()

        logger.info(
            f"User {requester.user_id} added {request_data.user_id} to org "
            f"{organization_id} as {request_data.role.value}"
        )
        return OrganizationMemberResponse.from_membership(membership)

    async def update_member_role(
        self,
        organization_id: str,
        member_user_id: str,
        updates: UpdateOrganizationMemberRequest,
        requester: AuthorizationContext,
    ) -> OrganizationMemberResponse:
        """
        Change the role of an active member.

        Business rules:
        - Granting or revoking owner/admin requires org:admin
        - The last owner cannot be demoted

        Raises:
            MembershipConflictError: The member's role changed while the
                rules above were being checked
        """
        member = await self._get_active_member(organization_id, member_user_id)

        self._check_role_grant(updates.role, requester)
        self._check_role_grant(member.role, requester)

        if (
            member.role == OrganizationRole.owner
            and updates.role != OrganizationRole.owner
        ):
            await self._ensure_not_last_owner(organization_id)

        try:
            updated = await call_store(
                self.store.update_org_membership_role,
                organization_id,
                member_user_id,
                updates.role,
                member.role,
            )
        except MembershipStateError:
            raise MembershipConflictError(STALE_ROLE_MESSAGE)
        if not updated:
            raise MemberNotFoundError()

        logger.info(
            f"User {requester.user_id} changed role of {member_user_id} in org "
            f"{organization_id} to {updates.role.value}"
        )
        return OrganizationMemberResponse.from_membership(updated)

    async def remove_member(
        self,
        organization_id: str,
        member_user_id: str,
        requester: AuthorizationContext,
    ) -> OrganizationMemberResponse:
        """
        Deactivate a member. Memberships are never hard-deleted.

        Business rules:
        - Cannot remove yourself from the organization
        - Cannot remove the last owner
        - Removing an owner or admin requires org:admin
        """
        if member_user_id == requester.user_id:
            raise InvalidDataError("Cannot remove yourself from the organization")

        member = await self._get_active_member(organization_id, member_user_id)
        self._check_role_grant(member.role, requester)

        if member.role == OrganizationRole.owner:
            await self._ensure_not_last_owner(organization_id)

        try:
            removed = await call_store(
                self.store.deactivate_org_membership,
                organization_id,
                member_user_id,
                member.role,
            )
        except MembershipStateError:
            raise MembershipConflictError(STALE_ROLE_MESSAGE)
        if not removed:
            raise MemberNotFoundError()

        logger.info(
            f"User {requester.user_id} removed {member_user_id} from org "
            f"{organization_id}"
        )
        return OrganizationMemberResponse.from_membership(removed)

    async def _get_active_member(
        self, organization_id: str, member_user_id: str
    ) -> Membership:
        member = await call_store(
            self.store.get_user_org_membership, member_user_id, organization_id
        )
        if not member or not member.is_active:
            raise MemberNotFoundError()
        return member

    async def _ensure_not_last_owner(self, organization_id: str) -> None:
        members = await call_store(self.store.list_org_members, organization_id)
        owners = [m for m in members if m.role == OrganizationRole.owner]
        if len(owners) <= 1:
            raise InvalidDataError("Cannot remove the last owner")

    def _check_role_grant(
        self, role: OrganizationRole, requester: AuthorizationContext
    ) -> None:
        if role in PRIVILEGED_ROLES and not requester.has(Permission.ORG_ADMIN):
            logger.warning(
                f"User {requester.user_id} lacks org:admin to manage "
                f"{role.value} members in org {requester.organization_id}"
            )
            raise PermissionDeniedError(requester.organization_id)

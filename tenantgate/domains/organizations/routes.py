# tenantgate/domains/organizations/routes.py
from typing import List

from fastapi import APIRouter, Depends, status

from tenantgate.core.storage import AuthorizationStore, get_store
from tenantgate.domains.auth.dependencies import get_current_user_id
from tenantgate.domains.organizations.models import (
    AddOrganizationMemberRequest,
    CreateOrganizationResponse,
    OrganizationCreate,
    OrganizationMemberResponse,
    OrganizationResponse,
    UpdateOrganizationMemberRequest,
)
from tenantgate.domains.organizations.service import OrganizationService
from tenantgate.shared.permissions.dependencies import (
    require_org_read,
    require_permissions,
)
from tenantgate.shared.permissions.models import AuthorizationContext, Permission
from tenantgate.shared.request_body import parse_body

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post(
    "",
    response_model=CreateOrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="createOrganization",
)
async def create_organization(
    user_id: str = Depends(get_current_user_id),
    organization_data: OrganizationCreate = Depends(parse_body(OrganizationCreate)),
    store: AuthorizationStore = Depends(get_store),
) -> CreateOrganizationResponse:
    """
    Create a new organization and add the current user as owner.
    """
    service = OrganizationService(store)
    return await service.create_organization(organization_data, user_id)


@router.get(
    "/{organization_id}",
    response_model=OrganizationResponse,
    operation_id="getOrganization",
)
async def get_organization(
    organization_id: str,
    context: AuthorizationContext = Depends(require_org_read()),
    store: AuthorizationStore = Depends(get_store),
) -> OrganizationResponse:
    service = OrganizationService(store)
    return await service.get_organization(context.organization_id)


@router.get(
    "/{organization_id}/members",
    response_model=List[OrganizationMemberResponse],
    operation_id="getOrganizationMembers",
)
async def get_organization_members(
    organization_id: str,
    context: AuthorizationContext = Depends(require_permissions(Permission.USER_READ)),
    store: AuthorizationStore = Depends(get_store),
) -> List[OrganizationMemberResponse]:
    """
    Get all active members of an organization.

    Access is restricted to users with user:read.
    """
    service = OrganizationService(store)
    return await service.get_organization_members(context.organization_id)


@router.post(
    "/{organization_id}/members",
    response_model=OrganizationMemberResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="addOrganizationMember",
)
async def add_organization_member(
    organization_id: str,
    context: AuthorizationContext = Depends(
        require_permissions(Permission.USER_INVITE)
    ),
    request_data: AddOrganizationMemberRequest = Depends(
        parse_body(AddOrganizationMemberRequest)
    ),
    store: AuthorizationStore = Depends(get_store),
) -> OrganizationMemberResponse:
    """
    Add a user to the organization.

    Requires user:invite; adding an owner or admin also requires org:admin.
    """
    service = OrganizationService(store)
    return await service.add_member(context.organization_id, request_data, context)


@router.patch(
    "/{organization_id}/members/{member_user_id}",
    response_model=OrganizationMemberResponse,
    operation_id="updateOrganizationMember",
)
async def update_organization_member(
    organization_id: str,
    member_user_id: str,
    context: AuthorizationContext = Depends(require_permissions(Permission.ROLE_BIND)),
    updates: UpdateOrganizationMemberRequest = Depends(
        parse_body(UpdateOrganizationMemberRequest)
    ),
    store: AuthorizationStore = Depends(get_store),
) -> OrganizationMemberResponse:
    """
    Change a member's role.

    Requires role:bind; granting or revoking owner/admin also requires
    org:admin. The last owner cannot be demoted.
    """
    service = OrganizationService(store)
    return await service.update_member_role(
        context.organization_id, member_user_id, updates, context
    )


@router.delete(
    "/{organization_id}/members/{member_user_id}",
    response_model=OrganizationMemberResponse,
    operation_id="removeOrganizationMember",
)
async def remove_organization_member(
    organization_id: str,
    member_user_id: str,
    context: AuthorizationContext = Depends(
        require_permissions(Permission.USER_DELETE)
    ),
    store: AuthorizationStore = Depends(get_store),
) -> OrganizationMemberResponse:
    """
    Remove a member by deactivating their membership.

    Business rules:
    - Cannot remove yourself from the organization
    - Cannot remove the last owner
    """
    service = OrganizationService(store)
    return await service.remove_member(
        context.organization_id, member_user_id, context
    )

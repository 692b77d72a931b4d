import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import Depends, Request

from tenantgate.core.storage import AuthorizationStore, get_store
from tenantgate.domains.auth.dependencies import get_optional_user_id
from tenantgate.shared.exceptions import (
    ResourceAccessDeniedError,
    WorkflowAccessDeniedError,
)
from tenantgate.shared.permissions.dependencies import require_organization
from tenantgate.shared.permissions.models import OrganizationContext, OrgIdLocation

from .models import WorkflowAccess
from .ownership import verify_application_ownership, verify_execution_ownership

logger = logging.getLogger(__name__)

WorkflowGate = Callable[..., Awaitable[WorkflowAccess]]


def check_workflow_preconditions(
    resource_id: Optional[str],
    user_id: Optional[str],
    context: Optional[OrganizationContext],
) -> WorkflowAccess:
    """
    Ensure a workflow call has a resource, a user and a verified organization.

    No workflow state is inspected here; that belongs to the engine.

    Raises:
        WorkflowAccessDeniedError: If any precondition is missing (403)
    """
    if (
        not resource_id
        or not user_id
        or context is None
        or not context.organization_id
        or context.user_id != user_id
    ):
        organization_id = context.organization_id if context else None
        logger.warning(
            f"Workflow access denied: resource={resource_id!r} user={user_id!r} "
            f"org={organization_id!r}"
        )
        raise WorkflowAccessDeniedError()

    return WorkflowAccess(
        user_id=user_id,
        organization_id=context.organization_id,
        resource_id=resource_id,
    )


async def extract_resource_id(request: Request, resource_param: str) -> Optional[str]:
    """Read a resource ID from the path, falling back to the JSON body."""
    value: Any = request.path_params.get(resource_param)
    if value is None:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            value = body.get(resource_param)

    return value if isinstance(value, str) else None


def require_workflow_access(
    resource_param: str = "execution_id",
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> WorkflowGate:
    """
    Dependency factory guarding calls into the workflow engine.

    Args:
        resource_param: Name of the path or body field holding the resource ID
        location: Where the organization ID is read from

    Returns:
        Async dependency function that returns WorkflowAccess
    """

    async def check_workflow_access(
        request: Request,
        user_id: Optional[str] = Depends(get_optional_user_id),
        context: OrganizationContext = Depends(require_organization(location)),
    ) -> WorkflowAccess:
        resource_id = await extract_resource_id(request, resource_param)
        return check_workflow_preconditions(resource_id, user_id, context)

    return check_workflow_access


def require_owned_execution(
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> WorkflowGate:
    """Workflow access to an execution that belongs to the organization."""

    async def check_execution_ownership(
        access: WorkflowAccess = Depends(
            require_workflow_access("execution_id", location)
        ),
        store: AuthorizationStore = Depends(get_store),
    ) -> WorkflowAccess:
        # Unknown and foreign executions are indistinguishable to the caller
        if not await verify_execution_ownership(
            store, access.resource_id, access.organization_id
        ):
            logger.warning(
                f"Execution {access.resource_id} not owned by org "
                f"{access.organization_id} (user {access.user_id})"
            )
            raise ResourceAccessDeniedError(access.organization_id)
        return access

    return check_execution_ownership


def require_owned_application(
    location: OrgIdLocation = OrgIdLocation.PATH,
) -> WorkflowGate:
    """Workflow access to an application that belongs to the organization."""

    async def check_application_ownership(
        access: WorkflowAccess = Depends(
            require_workflow_access("application_id", location)
        ),
        store: AuthorizationStore = Depends(get_store),
    ) -> WorkflowAccess:
        if not await verify_application_ownership(
            store, access.resource_id, access.organization_id
        ):
            logger.warning(
                f"Application {access.resource_id} not owned by org "
                f"{access.organization_id} (user {access.user_id})"
            )
            raise ResourceAccessDeniedError(access.organization_id)
        return access

    return check_application_ownership

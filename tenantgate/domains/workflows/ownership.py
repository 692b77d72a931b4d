"""
Ownership checks for workflow resources.

Executions and applications do not store an organization ID. Ownership is
derived through the chain

    execution -> application -> business requirement -> owner's membership

and recomputed on every check, so revoking the owner's membership revokes the
organization's claim on everything they created.
"""

import logging
from typing import Optional

from tenantgate.core.storage import AuthorizationStore, call_store

logger = logging.getLogger(__name__)


async def _requirement_owned_by(
    store: AuthorizationStore,
    requirement_id: str,
    organization_id: str,
    timeout: Optional[float],
) -> bool:
    requirement = await call_store(
        store.get_business_requirement, requirement_id, timeout=timeout
    )
    if requirement is None or not requirement.user_id:
        return False

    membership = await call_store(
        store.get_user_org_membership,
        requirement.user_id,
        organization_id,
        timeout=timeout,
    )
    return (
        membership is not None
        and membership.is_active
        and membership.organization_id == organization_id
    )


async def verify_application_ownership(
    store: AuthorizationStore,
    application_id: str,
    organization_id: str,
    timeout: Optional[float] = None,
) -> bool:
    """
    Verifies that a generated application belongs to the organization.

    Args:
        store: Authorization store
        application_id: The generated application ID
        organization_id: The organization ID to verify against
        timeout: Optional override for the store timeout

    Returns:
        True only if the whole chain resolves to an active membership
    """
    if not application_id or not organization_id:
        return False

    try:
        application = await call_store(
            store.get_generated_application, application_id, timeout=timeout
        )
        if application is None:
            return False

        return await _requirement_owned_by(
            store, application.business_requirement_id, organization_id, timeout
        )
    except Exception as e:
        logger.error(
            f"Error verifying application {application_id} ownership "
            f"for org {organization_id}: {e}"
        )
        return False


async def verify_execution_ownership(
    store: AuthorizationStore,
    execution_id: str,
    organization_id: str,
    timeout: Optional[float] = None,
) -> bool:
    """
    Verifies that a workflow execution belongs to the organization.

    Args:
        store: Authorization store
        execution_id: The workflow execution ID
        organization_id: The organization ID to verify against
        timeout: Optional override for the store timeout

    Returns:
        True only if the whole chain resolves to an active membership
    """
    if not execution_id or not organization_id:
        return False

    try:
        execution = await call_store(
            store.get_workflow_execution, execution_id, timeout=timeout
        )
        if execution is None:
            return False

        application = await call_store(
            store.get_generated_application,
            execution.generated_application_id,
            timeout=timeout,
        )
        if application is None:
            return False

        return await _requirement_owned_by(
            store, application.business_requirement_id, organization_id, timeout
        )
    except Exception as e:
        logger.error(
            f"Error verifying execution {execution_id} ownership "
            f"for org {organization_id}: {e}"
        )
        return False

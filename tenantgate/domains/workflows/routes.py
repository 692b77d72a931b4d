# tenantgate/domains/workflows/routes.py
import logging
from enum import Enum

from fastapi import APIRouter, Depends, status

from tenantgate.core.storage import AuthorizationStore, call_store, get_store
from tenantgate.domains.workflows.dependencies import (
    require_owned_application,
    require_owned_execution,
)
from tenantgate.domains.workflows.engine import WorkflowEngine, get_workflow_engine
from tenantgate.domains.workflows.models import (
    StartExecutionRequest,
    WorkflowAccess,
    WorkflowActionResponse,
    WorkflowExecution,
)
from tenantgate.shared.exceptions import ResourceAccessDeniedError, StoreError
from tenantgate.shared.permissions.dependencies import require_permissions
from tenantgate.shared.permissions.models import (
    AuthorizationContext,
    OrgIdLocation,
    Permission,
)
from tenantgate.shared.request_body import parse_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Workflows"])


class WorkflowAction(str, Enum):
    advance = "advance"
    pause = "pause"
    resume = "resume"
    cancel = "cancel"


@router.post(
    "/workflows/executions",
    response_model=WorkflowActionResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="startWorkflowExecution",
)
async def start_workflow_execution(
    context: AuthorizationContext = Depends(
        require_permissions(Permission.WORKFLOW_EXECUTE, location=OrgIdLocation.BODY)
    ),
    access: WorkflowAccess = Depends(require_owned_application(OrgIdLocation.BODY)),
    request_data: StartExecutionRequest = Depends(parse_body(StartExecutionRequest)),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> WorkflowActionResponse:
    """
    Start a workflow for a generated application.

    The organization and application are read from the request body. The
    application must belong to the organization through its requirement
    owner's active membership.
    """
    execution = await engine.start(access, request_data.workflow_id)
    return WorkflowActionResponse(
        execution_id=execution.id, action="start", status=execution.status
    )


@router.get(
    "/workflows/executions/{execution_id}",
    response_model=WorkflowExecution,
    operation_id="getWorkflowExecution",
)
async def get_workflow_execution(
    execution_id: str,
    context: AuthorizationContext = Depends(
        require_permissions(Permission.WORKFLOW_READ, location=OrgIdLocation.QUERY)
    ),
    access: WorkflowAccess = Depends(require_owned_execution(OrgIdLocation.QUERY)),
    store: AuthorizationStore = Depends(get_store),
) -> WorkflowExecution:
    """
    Get a workflow execution.

    The organization is passed as the ``organization_id`` query parameter.
    """
    try:
        execution = await call_store(store.get_workflow_execution, access.resource_id)
    except StoreError as e:
        logger.error(f"Error loading execution {access.resource_id}: {e}")
        execution = None

    if execution is None:
        raise ResourceAccessDeniedError(access.organization_id)
    return execution


@router.post(
    "/organizations/{organization_id}/workflows/executions/{execution_id}/{action}",
    response_model=WorkflowActionResponse,
    operation_id="runWorkflowAction",
)
async def run_workflow_action(
    organization_id: str,
    execution_id: str,
    action: WorkflowAction,
    context: AuthorizationContext = Depends(
        require_permissions(Permission.WORKFLOW_EXECUTE)
    ),
    access: WorkflowAccess = Depends(require_owned_execution()),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> WorkflowActionResponse:
    """
    Advance, pause, resume or cancel a workflow execution.

    Only authorization preconditions are checked here; whether the action is
    valid for the execution's current state is up to the engine.
    """
    handler = getattr(engine, action.value)
    execution = await handler(access)
    return WorkflowActionResponse(
        execution_id=execution.id, action=action.value, status=execution.status
    )

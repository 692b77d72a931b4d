from abc import ABC, abstractmethod

from fastapi import Request

from tenantgate.shared.exceptions import WorkflowEngineUnavailableError

from .models import WorkflowAccess, WorkflowExecution


class WorkflowEngine(ABC):
    """
    Workflow execution engine.

    Step semantics live outside this service. Every call receives the
    WorkflowAccess produced by the workflow authorization gate, so the engine
    is only ever invoked for an authenticated user inside a verified
    organization.
    """

    @abstractmethod
    async def start(self, access: WorkflowAccess, workflow_id: str) -> WorkflowExecution:
        """Start a workflow of the application named by ``access.resource_id``."""

    @abstractmethod
    async def advance(self, access: WorkflowAccess) -> WorkflowExecution:
        pass

    @abstractmethod
    async def pause(self, access: WorkflowAccess) -> WorkflowExecution:
        pass

    @abstractmethod
    async def resume(self, access: WorkflowAccess) -> WorkflowExecution:
        pass

    @abstractmethod
    async def cancel(self, access: WorkflowAccess) -> WorkflowExecution:
        pass


def get_workflow_engine(request: Request) -> WorkflowEngine:
    """Workflow engine dependency; 503 when none is configured."""
    engine = getattr(request.app.state, "workflow_engine", None)
    if engine is None:
        raise WorkflowEngineUnavailableError()
    return engine

# tenantgate/domains/workflows/models.py
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tenantgate.shared.permissions.models import AuthorizationStage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class BusinessRequirement(BaseModel):
    """Top of the ownership chain; the only entity that names its owning user."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    original_description: str = ""
    status: Literal["analyzing", "validated", "generating_app", "completed"] = (
        "validated"
    )
    created_at: datetime = Field(default_factory=_utcnow)


class GeneratedApplication(BaseModel):
    id: str = Field(default_factory=_new_id)
    business_requirement_id: str
    name: str
    description: Optional[str] = None
    status: Literal["generating", "completed", "deployed", "failed"] = "completed"
    created_at: datetime = Field(default_factory=_utcnow)


class WorkflowExecution(BaseModel):
    id: str = Field(default_factory=_new_id)
    generated_application_id: str
    workflow_id: str
    user_id: str
    current_step: str = "start"
    step_data: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["pending", "in_progress", "completed", "failed", "cancelled"] = (
        "pending"
    )
    created_at: datetime = Field(default_factory=_utcnow)


class WorkflowAccess(BaseModel):
    """The three preconditions handed to the workflow engine."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    organization_id: str
    resource_id: str
    stage: AuthorizationStage = AuthorizationStage.AUTHORIZED


class StartExecutionRequest(BaseModel):
    organization_id: str
    application_id: str
    workflow_id: str


class WorkflowActionResponse(BaseModel):
    execution_id: str
    action: Literal["start", "advance", "pause", "resume", "cancel"]
    status: str

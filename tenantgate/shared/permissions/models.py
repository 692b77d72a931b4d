from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping

from pydantic import BaseModel, ConfigDict


class Permission(str, Enum):
    """
    Defines all permissions available in the system.

    Permissions follow the pattern ``resource:action``. The catalog is closed:
    anything not listed here can never be granted.
    """

    # Organization management
    ORG_READ = "org:read"
    ORG_WRITE = "org:write"
    ORG_DELETE = "org:delete"
    ORG_ADMIN = "org:admin"

    # User management
    USER_READ = "user:read"
    USER_WRITE = "user:write"
    USER_DELETE = "user:delete"
    USER_INVITE = "user:invite"

    # Role management
    ROLE_READ = "role:read"
    ROLE_WRITE = "role:write"
    ROLE_DELETE = "role:delete"
    ROLE_BIND = "role:bind"

    # Task management
    TASK_READ = "task:read"
    TASK_WRITE = "task:write"
    TASK_DELETE = "task:delete"
    TASK_ASSIGN = "task:assign"

    # Approval management
    APPROVAL_READ = "approval:read"
    APPROVAL_WRITE = "approval:write"
    APPROVAL_APPROVE = "approval:approve"
    APPROVAL_REJECT = "approval:reject"

    # Integration management
    INTEGRATION_READ = "integration:read"
    INTEGRATION_WRITE = "integration:write"
    INTEGRATION_DELETE = "integration:delete"
    INTEGRATION_EXECUTE = "integration:execute"

    # Workflow management
    WORKFLOW_READ = "workflow:read"
    WORKFLOW_WRITE = "workflow:write"
    WORKFLOW_DELETE = "workflow:delete"
    WORKFLOW_EXECUTE = "workflow:execute"

    # Report management
    REPORT_READ = "report:read"
    REPORT_WRITE = "report:write"
    REPORT_DELETE = "report:delete"
    REPORT_EXPORT = "report:export"

    # Analytics & audit
    ANALYTICS_READ = "analytics:read"
    AUDIT_READ = "audit:read"

    @property
    def resource(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        return self.value.split(":", 1)[1]


class OrganizationRole(str, Enum):
    """Built-in organization membership roles, highest privilege first."""

    owner = "owner"
    admin = "admin"
    manager = "manager"
    contributor = "contributor"
    viewer = "viewer"


P = Permission

_ADMIN_PERMISSIONS = frozenset(Permission) - {
    # Admins cannot delete or administer the organization itself
    P.ORG_DELETE,
    P.ORG_ADMIN,
    P.USER_DELETE,
    P.ROLE_DELETE,
}

_MANAGER_PERMISSIONS = frozenset(
    {
        P.ORG_READ,
        P.USER_READ,
        P.USER_INVITE,
        P.ROLE_READ,
        P.TASK_READ,
        P.TASK_WRITE,
        P.TASK_ASSIGN,
        P.APPROVAL_READ,
        P.APPROVAL_WRITE,
        P.APPROVAL_APPROVE,
        P.APPROVAL_REJECT,
        P.INTEGRATION_READ,
        P.INTEGRATION_EXECUTE,
        P.WORKFLOW_READ,
        P.WORKFLOW_WRITE,
        P.WORKFLOW_EXECUTE,
        P.REPORT_READ,
        P.REPORT_WRITE,
        P.REPORT_EXPORT,
        P.ANALYTICS_READ,
    }
)

_CONTRIBUTOR_PERMISSIONS = frozenset(
    {
        P.ORG_READ,
        P.USER_READ,
        P.TASK_READ,
        P.TASK_WRITE,
        P.APPROVAL_READ,
        P.APPROVAL_WRITE,
        P.INTEGRATION_READ,
        P.INTEGRATION_EXECUTE,
        P.WORKFLOW_READ,
        P.WORKFLOW_EXECUTE,
        P.REPORT_READ,
    }
)

_VIEWER_PERMISSIONS = frozenset(
    {
        P.ORG_READ,
        P.USER_READ,
        P.TASK_READ,
        P.APPROVAL_READ,
        P.INTEGRATION_READ,
        P.WORKFLOW_READ,
        P.REPORT_READ,
    }
)

# Built once at import and read-only afterwards. Custom role bindings are
# layered on top by the resolver, never written into this table.
ROLE_PERMISSIONS: Mapping[OrganizationRole, FrozenSet[Permission]] = MappingProxyType(
    {
        OrganizationRole.owner: frozenset(Permission),
        OrganizationRole.admin: _ADMIN_PERMISSIONS,
        OrganizationRole.manager: _MANAGER_PERMISSIONS,
        OrganizationRole.contributor: _CONTRIBUTOR_PERMISSIONS,
        OrganizationRole.viewer: _VIEWER_PERMISSIONS,
    }
)

del P


class OrgIdLocation(str, Enum):
    """Where the organization id is read from on an incoming request."""

    PATH = "path"
    QUERY = "query"
    BODY = "body"


class AuthorizationStage(str, Enum):
    """
    Stages of the authorization pipeline.

    A request moves forward one stage at a time and ends either in
    ``AUTHORIZED`` or in the absorbing ``DENIED`` stage.
    """

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    ORG_VERIFIED = "org_verified"
    PERMISSION_VERIFIED = "permission_verified"
    AUTHORIZED = "authorized"
    DENIED = "denied"


class OrganizationContext(BaseModel):
    """Verified organization membership for the current request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    organization_id: str
    role: OrganizationRole
    stage: AuthorizationStage = AuthorizationStage.ORG_VERIFIED


class AuthorizationContext(BaseModel):
    """Organization context enriched with the resolved permission set."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    organization_id: str
    role: OrganizationRole
    permissions: FrozenSet[Permission]
    stage: AuthorizationStage = AuthorizationStage.PERMISSION_VERIFIED

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

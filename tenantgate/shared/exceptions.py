# tenantgate/shared/exceptions.py
from typing import Any, Optional

from fastapi import HTTPException, status

from tenantgate.shared.permissions.models import AuthorizationStage


class StoreError(Exception):
    """Raised when the authorization store fails or times out."""


class MembershipStateError(ValueError):
    """
    Raised by a store when a membership mutation conflicts with the current
    state: an active membership already exists, or the role changed since it
    was read.
    """


# Authorization denials
class AuthorizationDenied(HTTPException):
    """
    Terminal denial of a request by one of the authorization gates.

    The response body carries a stable ``code`` and a human-readable
    ``message``. It never includes resolved permissions or role data.
    ``failed_stage`` is the last stage the request reached before denial.
    """

    stage = AuthorizationStage.DENIED

    def __init__(
        self,
        status_code: int,
        code: str,
        error: str,
        message: str,
        failed_stage: AuthorizationStage,
        organization_id: Optional[str] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.failed_stage = failed_stage
        self.code = code
        self.error = error
        self.message = message
        self.organization_id = organization_id

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.error,
            "message": self.message,
            "code": self.code,
        }
        if self.organization_id:
            body["organizationId"] = self.organization_id
        return body


class AuthenticationMissingError(AuthorizationDenied):
    def __init__(
        self,
        message: str = "User must be authenticated to access organization resources",
    ) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="AUTH_REQUIRED",
            error="Authentication Required",
            message=message,
            failed_stage=AuthorizationStage.UNAUTHENTICATED,
        )


class OrganizationContextMissingError(AuthorizationDenied):
    def __init__(self, code: str = "ORG_ID_REQUIRED") -> None:
        if code == "ORG_CONTEXT_REQUIRED":
            error = "Organization Context Required"
            message = (
                "Organization context must be established before checking permissions"
            )
        else:
            error = "Organization Required"
            message = "Organization ID must be provided"
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code=code,
            error=error,
            message=message,
            failed_stage=AuthorizationStage.AUTHENTICATED,
        )


class MembershipDeniedError(AuthorizationDenied):
    def __init__(self, organization_id: Optional[str] = None) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="ORG_ACCESS_DENIED",
            error="Organization Access Denied",
            message="You do not have access to this organization",
            failed_stage=AuthorizationStage.AUTHENTICATED,
            organization_id=organization_id,
        )


class PermissionDeniedError(AuthorizationDenied):
    def __init__(self, organization_id: Optional[str] = None) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="PERMISSION_DENIED",
            error="Permission Denied",
            message="Insufficient permissions to access this resource",
            failed_stage=AuthorizationStage.ORG_VERIFIED,
            organization_id=organization_id,
        )


class StoreFailureError(AuthorizationDenied):
    def __init__(
        self, code: str = "AUTHORIZATION_ERROR", organization_id: Optional[str] = None
    ) -> None:
        if code == "ORG_AUTHORIZATION_ERROR":
            message = "Unable to verify organization access"
            failed_stage = AuthorizationStage.AUTHENTICATED
        else:
            message = "Unable to verify permissions"
            failed_stage = AuthorizationStage.ORG_VERIFIED
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code=code,
            error="Authorization Error",
            message=message,
            failed_stage=failed_stage,
            organization_id=organization_id,
        )


class WorkflowAccessDeniedError(AuthorizationDenied):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="WORKFLOW_ACCESS_DENIED",
            error="Workflow Access Denied",
            message="Workflow access denied",
            failed_stage=AuthorizationStage.ORG_VERIFIED,
        )


class ResourceAccessDeniedError(AuthorizationDenied):
    def __init__(self, organization_id: Optional[str] = None) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="RESOURCE_ACCESS_DENIED",
            error="Resource Access Denied",
            message="You do not have access to this resource",
            failed_stage=AuthorizationStage.PERMISSION_VERIFIED,
            organization_id=organization_id,
        )


# Resource Not Found Exceptions
class OrganizationNotFoundError(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found"
        )


class MemberNotFoundError(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")


# Validation / Request Exceptions
class InvalidDataError(HTTPException):
    def __init__(self, message: str = "Invalid request data") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class MembershipConflictError(HTTPException):
    def __init__(
        self, message: str = "User is already an active member of this organization"
    ) -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)


# Collaborator Exceptions
class WorkflowEngineUnavailableError(HTTPException):
    def __init__(self, message: str = "Workflow engine is not configured") -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message
        )

# tenantgate/domains/organizations/models.py
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from tenantgate.shared.permissions.models import OrganizationRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class Organization(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    subdomain: Optional[str] = None
    plan: str = "starter"
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Membership(BaseModel):
    id: str = Field(default_factory=_new_id)
    organization_id: str
    user_id: str
    role: OrganizationRole
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class OrganizationCreate(BaseModel):
    name: str
    subdomain: Optional[str] = None
    plan: str = "starter"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Organization name must not be empty")
        return v.strip()


class OrganizationResponse(BaseModel):
    id: str
    name: str
    subdomain: Optional[str]
    plan: str
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_organization(cls, organization: Organization) -> "OrganizationResponse":
        return cls(
            id=organization.id,
            name=organization.name,
            subdomain=organization.subdomain,
            plan=organization.plan,
            created_at=organization.created_at.isoformat(),
            updated_at=organization.updated_at.isoformat(),
        )


class CreateOrganizationResponse(BaseModel):
    organization: OrganizationResponse
    role: OrganizationRole


class OrganizationMemberResponse(BaseModel):
    id: str
    user_id: str
    role: OrganizationRole
    is_active: bool
    joined_at: Optional[str]

    @classmethod
    def from_membership(cls, membership: Membership) -> "OrganizationMemberResponse":
        return cls(
            id=membership.id,
            user_id=membership.user_id,
            role=membership.role,
            is_active=membership.is_active,
            joined_at=membership.created_at.isoformat(),
        )


class AddOrganizationMemberRequest(BaseModel):
    user_id: str
    role: OrganizationRole = OrganizationRole.viewer

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_id must not be empty")
        return v


class UpdateOrganizationMemberRequest(BaseModel):
    role: OrganizationRole


class OrganizationMembershipSummary(BaseModel):
    id: str
    name: str
    role: OrganizationRole


class SessionState(BaseModel):
    user_id: str
    organizations: List[OrganizationMembershipSummary]

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from fastapi import Request

from tenantgate.core.settings import settings
from tenantgate.domains.organizations.models import Membership, Organization
from tenantgate.domains.workflows.models import (
    BusinessRequirement,
    GeneratedApplication,
    WorkflowExecution,
)
from tenantgate.shared.exceptions import MembershipStateError, StoreError
from tenantgate.shared.permissions.models import OrganizationRole

logger = logging.getLogger(__name__)

T = TypeVar("T")

MembershipKey = Tuple[str, str]


class AuthorizationStore(ABC):
    """
    Persistence collaborator consumed by the authorization layer.

    Any persistence technology can sit behind this interface. Callers in the
    authorization layer treat a raised exception exactly like "not found" for
    denial purposes, so implementations should let errors propagate rather
    than returning partial data.
    """

    # Membership lookups

    @abstractmethod
    async def has_org_membership(self, user_id: str, organization_id: str) -> bool:
        """True only for an active membership in an active organization."""

    @abstractmethod
    async def get_user_org_membership(
        self, user_id: str, organization_id: str
    ) -> Optional[Membership]:
        """
        Get the user's membership in an organization.

        Returns the active membership when one exists, otherwise the most
        recent inactive one, otherwise None. Memberships of an inactive
        organization are never returned.
        """

    @abstractmethod
    async def get_user_permissions(
        self, user_id: str, organization_id: str
    ) -> List[str]:
        """
        Get permission strings granted through custom role bindings.

        Built-in role permissions are not included; the resolver layers these
        grants on top of the role table.
        """

    # Ownership chain entities

    @abstractmethod
    async def get_workflow_execution(
        self, execution_id: str
    ) -> Optional[WorkflowExecution]:
        pass

    @abstractmethod
    async def get_generated_application(
        self, application_id: str
    ) -> Optional[GeneratedApplication]:
        pass

    @abstractmethod
    async def get_business_requirement(
        self, requirement_id: str
    ) -> Optional[BusinessRequirement]:
        pass

    # Organization administration

    @abstractmethod
    async def get_organization(self, organization_id: str) -> Optional[Organization]:
        pass

    @abstractmethod
    async def create_organization(self, organization: Organization) -> Organization:
        pass

    @abstractmethod
    async def list_user_memberships(self, user_id: str) -> List[Membership]:
        """Active memberships of a user across active organizations."""

    @abstractmethod
    async def list_org_members(self, organization_id: str) -> List[Membership]:
        """Active memberships of an organization."""

    @abstractmethod
    async def add_org_membership(
        self, organization_id: str, user_id: str, role: OrganizationRole
    ) -> Membership:
        """
        Create an active membership.

        Raises:
            MembershipStateError: If the user already has an active membership
        """

    @abstractmethod
    async def update_org_membership_role(
        self,
        organization_id: str,
        user_id: str,
        role: OrganizationRole,
        expected_role: Optional[OrganizationRole] = None,
    ) -> Optional[Membership]:
        """
        Change the role of the active membership, or return None if there is
        none.

        Raises:
            MembershipStateError: If ``expected_role`` is given and no longer
                matches the stored role
        """

    @abstractmethod
    async def deactivate_org_membership(
        self,
        organization_id: str,
        user_id: str,
        expected_role: Optional[OrganizationRole] = None,
    ) -> Optional[Membership]:
        """
        Deactivate the active membership, or return None if there is none.

        Raises:
            MembershipStateError: If ``expected_role`` is given and no longer
                matches the stored role
        """


class InMemoryStore(AuthorizationStore):
    """
    Dictionary-backed store.

    Each instance owns its own data, so tests and app instances never share
    state. Membership mutations are serialized per (user_id, organization_id).
    """

    def __init__(self) -> None:
        self.organizations: Dict[str, Organization] = {}
        self.memberships: Dict[str, Membership] = {}
        self.role_bindings: Dict[MembershipKey, Set[str]] = defaultdict(set)
        self.business_requirements: Dict[str, BusinessRequirement] = {}
        self.generated_applications: Dict[str, GeneratedApplication] = {}
        self.workflow_executions: Dict[str, WorkflowExecution] = {}
        # Entries disappear once no coroutine holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[MembershipKey, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: str, organization_id: str) -> asyncio.Lock:
        key = (user_id, organization_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @staticmethod
    def _check_expected_role(
        membership: Membership, expected_role: Optional[OrganizationRole]
    ) -> None:
        if expected_role is not None and membership.role != expected_role:
            raise MembershipStateError(
                f"Membership of user {membership.user_id} in organization "
                f"{membership.organization_id} changed from {expected_role.value} "
                f"to {membership.role.value}"
            )

    def _memberships_for(self, user_id: str, organization_id: str) -> List[Membership]:
        return [
            m
            for m in self.memberships.values()
            if m.user_id == user_id and m.organization_id == organization_id
        ]

    def _active_membership(
        self, user_id: str, organization_id: str
    ) -> Optional[Membership]:
        for membership in self._memberships_for(user_id, organization_id):
            if membership.is_active:
                return membership
        return None

    def _organization_is_active(self, organization_id: str) -> bool:
        organization = self.organizations.get(organization_id)
        return organization is not None and organization.is_active

    # Membership lookups

    async def has_org_membership(self, user_id: str, organization_id: str) -> bool:
        membership = await self.get_user_org_membership(user_id, organization_id)
        return membership is not None and membership.is_active

    async def get_user_org_membership(
        self, user_id: str, organization_id: str
    ) -> Optional[Membership]:
        if not self._organization_is_active(organization_id):
            return None

        active = self._active_membership(user_id, organization_id)
        if active:
            return active.model_copy()

        history = sorted(
            self._memberships_for(user_id, organization_id),
            key=lambda m: m.updated_at,
        )
        return history[-1].model_copy() if history else None

    async def get_user_permissions(
        self, user_id: str, organization_id: str
    ) -> List[str]:
        return sorted(self.role_bindings.get((user_id, organization_id), set()))

    def bind_permissions(
        self, user_id: str, organization_id: str, permissions: Iterable[str]
    ) -> None:
        """Attach custom role-binding grants to a user in an organization."""
        self.role_bindings[(user_id, organization_id)].update(permissions)

    # Ownership chain entities

    async def get_workflow_execution(
        self, execution_id: str
    ) -> Optional[WorkflowExecution]:
        return self.workflow_executions.get(execution_id)

    async def get_generated_application(
        self, application_id: str
    ) -> Optional[GeneratedApplication]:
        return self.generated_applications.get(application_id)

    async def get_business_requirement(
        self, requirement_id: str
    ) -> Optional[BusinessRequirement]:
        return self.business_requirements.get(requirement_id)

    def add_business_requirement(
        self, requirement: BusinessRequirement
    ) -> BusinessRequirement:
        self.business_requirements[requirement.id] = requirement
        return requirement

    def add_generated_application(
        self, application: GeneratedApplication
    ) -> GeneratedApplication:
        self.generated_applications[application.id] = application
        return application

    def add_workflow_execution(self, execution: WorkflowExecution) -> WorkflowExecution:
        self.workflow_executions[execution.id] = execution
        return execution

    # Organization administration

    async def get_organization(self, organization_id: str) -> Optional[Organization]:
        return self.organizations.get(organization_id)

    async def create_organization(self, organization: Organization) -> Organization:
        self.organizations[organization.id] = organization
        return organization

    async def list_user_memberships(self, user_id: str) -> List[Membership]:
        return [
            m.model_copy()
            for m in self.memberships.values()
            if m.user_id == user_id
            and m.is_active
            and self._organization_is_active(m.organization_id)
        ]

    async def list_org_members(self, organization_id: str) -> List[Membership]:
        members = [
            m.model_copy()
            for m in self.memberships.values()
            if m.organization_id == organization_id and m.is_active
        ]
        return sorted(members, key=lambda m: m.created_at)

    async def add_org_membership(
        self, organization_id: str, user_id: str, role: OrganizationRole
    ) -> Membership:
        async with self._lock_for(user_id, organization_id):
            if self._active_membership(user_id, organization_id):
                raise MembershipStateError(
                    f"User {user_id} already has an active membership in "
                    f"organization {organization_id}"
                )
            membership = Membership(
                organization_id=organization_id, user_id=user_id, role=role
            )
            self.memberships[membership.id] = membership
            logger.info(
                f"Created membership: user {user_id} -> org {organization_id} "
                f"as {role.value}"
            )
            return membership.model_copy()

    async def update_org_membership_role(
        self,
        organization_id: str,
        user_id: str,
        role: OrganizationRole,
        expected_role: Optional[OrganizationRole] = None,
    ) -> Optional[Membership]:
        async with self._lock_for(user_id, organization_id):
            membership = self._active_membership(user_id, organization_id)
            if not membership:
                return None
            self._check_expected_role(membership, expected_role)
            membership.role = role
            membership.updated_at = datetime.now(timezone.utc)
            return membership.model_copy()

    async def deactivate_org_membership(
        self,
        organization_id: str,
        user_id: str,
        expected_role: Optional[OrganizationRole] = None,
    ) -> Optional[Membership]:
        async with self._lock_for(user_id, organization_id):
            membership = self._active_membership(user_id, organization_id)
            if not membership:
                return None
            self._check_expected_role(membership, expected_role)
            membership.is_active = False
            membership.updated_at = datetime.now(timezone.utc)
            logger.info(
                f"Deactivated membership: user {user_id} -> org {organization_id}"
            )
            return membership.model_copy()


async def call_store(
    method: Callable[..., Awaitable[T]],
    *args: Any,
    timeout: Optional[float] = None,
) -> T:
    """
    Call a store method with an upper time bound.

    Any failure, including a timeout, is raised as StoreError. A
    MembershipStateError is a conflict rather than a failure and passes
    through unchanged. Cancellation is not intercepted.

    Args:
        method: Bound store coroutine method
        *args: Arguments for the method
        timeout: Seconds to wait, defaults to settings.STORE_TIMEOUT_SECONDS

    Returns:
        The store call's result

    Raises:
        StoreError: If the store raised or did not answer in time
    """
    limit = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(method(*args), timeout=limit)
    except asyncio.TimeoutError as e:
        raise StoreError(f"Store call timed out after {limit}s") from e
    except (StoreError, MembershipStateError):
        raise
    except Exception as e:
        raise StoreError(str(e)) from e


def get_store(request: Request) -> AuthorizationStore:
    """Store dependency for FastAPI dependency injection."""
    return request.app.state.store

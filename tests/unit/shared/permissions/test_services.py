"""
Tests for the permission resolver and the permission enforcement gate.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from tenantgate.core.storage import InMemoryStore
from tenantgate.shared.exceptions import (
    AuthenticationMissingError,
    OrganizationContextMissingError,
    PermissionDeniedError,
    StoreError,
    StoreFailureError,
)
from tenantgate.shared.permissions.models import (
    ROLE_PERMISSIONS,
    AuthorizationStage,
    OrganizationContext,
    OrganizationRole,
    Permission,
)
from tenantgate.shared.permissions.services import (
    PermissionResolver,
    enforce_permissions,
    get_role_permissions,
    has_permission,
    parse_permissions,
)
from tests.fixtures.organization_fixtures import ORG_A, ORG_B, ORG_INACTIVE


class TestHasPermission:
    def test_owner_has_org_delete(self):
        assert has_permission(OrganizationRole.owner, Permission.ORG_DELETE) is True

    def test_viewer_lacks_task_write(self):
        assert has_permission(OrganizationRole.viewer, Permission.TASK_WRITE) is False

    def test_unknown_role_has_nothing(self):
        assert get_role_permissions("superuser") == frozenset()  # type: ignore[arg-type]


class TestParsePermissions:
    def test_unknown_values_are_dropped(self):
        parsed = parse_permissions(["report:export", "org:everything", "*", ""])
        assert parsed == frozenset({Permission.REPORT_EXPORT})


class TestPermissionResolver:
    """Test effective permission resolution."""

    @pytest.mark.asyncio
    async def test_resolve_role_permissions(self, seeded_store: InMemoryStore):
        resolver = PermissionResolver(seeded_store)

        resolved = await resolver.resolve("user-manager-a", ORG_A)

        assert resolved == ROLE_PERMISSIONS[OrganizationRole.manager]

    @pytest.mark.asyncio
    async def test_no_membership_resolves_to_empty_set(
        self, seeded_store: InMemoryStore
    ):
        """A member of org B has nothing in org A."""
        resolver = PermissionResolver(seeded_store)

        assert await resolver.resolve("user-only-b", ORG_A) == frozenset()
        assert await resolver.resolve("nobody", ORG_A) == frozenset()
        assert await resolver.resolve("user-owner-a", "missing-org") == frozenset()

    @pytest.mark.asyncio
    async def test_inactive_membership_resolves_to_empty_set(
        self, seeded_store: InMemoryStore
    ):
        resolver = PermissionResolver(seeded_store)

        assert await resolver.resolve("user-inactive-a", ORG_A) == frozenset()

    @pytest.mark.asyncio
    async def test_inactive_organization_resolves_to_empty_set(
        self, seeded_store: InMemoryStore
    ):
        resolver = PermissionResolver(seeded_store)

        assert await resolver.resolve("user-owner-a", ORG_INACTIVE) == frozenset()

    @pytest.mark.asyncio
    async def test_role_bindings_are_layered_on_role(
        self, seeded_store: InMemoryStore
    ):
        seeded_store.bind_permissions(
            "user-viewer-a", ORG_A, ["report:export", "not-a-permission"]
        )
        resolver = PermissionResolver(seeded_store)

        resolved = await resolver.resolve("user-viewer-a", ORG_A)

        assert resolved == ROLE_PERMISSIONS[OrganizationRole.viewer] | {
            Permission.REPORT_EXPORT
        }

    @pytest.mark.asyncio
    async def test_role_bindings_ignored_without_membership(
        self, seeded_store: InMemoryStore
    ):
        """Bindings never grant anything to a non-member."""
        seeded_store.bind_permissions("user-only-b", ORG_A, ["org:admin"])
        resolver = PermissionResolver(seeded_store)

        assert await resolver.resolve("user-only-b", ORG_A) == frozenset()

    @pytest.mark.asyncio
    async def test_store_error_resolves_to_empty_set(self, mock_store: Mock):
        mock_store.get_user_org_membership = AsyncMock(
            side_effect=RuntimeError("connection reset")
        )
        resolver = PermissionResolver(mock_store)

        assert await resolver.resolve("user-1", ORG_A) == frozenset()

    @pytest.mark.asyncio
    async def test_resolve_strict_raises_store_error(
        self, mock_store: Mock, membership_factory
    ):
        mock_store.get_user_org_membership = AsyncMock(
            return_value=membership_factory(OrganizationRole.owner, "user-1")
        )
        mock_store.get_user_permissions = AsyncMock(side_effect=RuntimeError("boom"))
        resolver = PermissionResolver(mock_store)

        with pytest.raises(StoreError):
            await resolver.resolve_strict("user-1", ORG_A)

        # The lenient variant never falls back to the role's permissions
        assert await resolver.resolve("user-1", ORG_A) == frozenset()

    @pytest.mark.asyncio
    async def test_store_timeout_is_a_store_error(self, mock_store: Mock):
        async def slow_lookup(user_id: str, organization_id: str):
            await asyncio.sleep(1)

        mock_store.get_user_org_membership = slow_lookup
        resolver = PermissionResolver(mock_store, timeout=0.01)

        with pytest.raises(StoreError):
            await resolver.resolve_strict("user-1", ORG_A)

    @pytest.mark.asyncio
    async def test_repeated_resolution_is_stable(self, seeded_store: InMemoryStore):
        resolver = PermissionResolver(seeded_store)

        first = await resolver.resolve("user-contributor-a", ORG_A)
        second = await resolver.resolve("user-contributor-a", ORG_A)

        assert first == second

    @pytest.mark.asyncio
    async def test_concurrent_resolution_across_tenants(
        self, seeded_store: InMemoryStore
    ):
        resolver = PermissionResolver(seeded_store)

        results = await asyncio.gather(
            resolver.resolve("user-owner-a", ORG_A),
            resolver.resolve("user-only-b", ORG_B),
            resolver.resolve("user-only-b", ORG_A),
        )

        assert results[0] == frozenset(Permission)
        assert results[1] == frozenset(Permission)
        assert results[2] == frozenset()


class TestEnforcePermissions:
    """Test the permission enforcement gate."""

    @pytest.fixture
    def viewer_context(self) -> OrganizationContext:
        return OrganizationContext(
            user_id="user-viewer-a",
            organization_id=ORG_A,
            role=OrganizationRole.viewer,
        )

    @pytest.mark.asyncio
    async def test_viewer_denied_org_delete(
        self, seeded_store: InMemoryStore, viewer_context: OrganizationContext
    ):
        resolver = PermissionResolver(seeded_store)

        with pytest.raises(PermissionDeniedError) as exc_info:
            await enforce_permissions(
                resolver, "user-viewer-a", viewer_context, [Permission.ORG_DELETE]
            )

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_denial_does_not_echo_permissions(
        self, seeded_store: InMemoryStore, viewer_context: OrganizationContext
    ):
        resolver = PermissionResolver(seeded_store)

        with pytest.raises(PermissionDeniedError) as exc_info:
            await enforce_permissions(
                resolver, "user-viewer-a", viewer_context, [Permission.ORG_DELETE]
            )

        body = exc_info.value.to_body()
        assert set(body) == {"error", "message", "code", "organizationId"}
        rendered = str(body)
        assert "org:read" not in rendered
        assert "viewer" not in rendered

    @pytest.mark.asyncio
    async def test_success_attaches_permissions(
        self, seeded_store: InMemoryStore, viewer_context: OrganizationContext
    ):
        resolver = PermissionResolver(seeded_store)

        context = await enforce_permissions(
            resolver,
            "user-viewer-a",
            viewer_context,
            [Permission.ORG_READ, Permission.TASK_READ],
        )

        assert context.organization_id == ORG_A
        assert context.role == OrganizationRole.viewer
        assert context.permissions == ROLE_PERMISSIONS[OrganizationRole.viewer]
        assert context.stage == AuthorizationStage.PERMISSION_VERIFIED

    @pytest.mark.asyncio
    async def test_missing_user_is_401_before_context_check(self, mock_store: Mock):
        resolver = PermissionResolver(mock_store)

        with pytest.raises(AuthenticationMissingError) as exc_info:
            await enforce_permissions(resolver, None, None, [Permission.ORG_READ])

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "AUTH_REQUIRED"
        mock_store.get_user_org_membership.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_context_is_400(self, mock_store: Mock):
        resolver = PermissionResolver(mock_store)

        with pytest.raises(OrganizationContextMissingError) as exc_info:
            await enforce_permissions(resolver, "user-1", None, [Permission.ORG_READ])

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "ORG_CONTEXT_REQUIRED"
        mock_store.get_user_org_membership.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_for_another_user_is_rejected(
        self, mock_store: Mock, viewer_context: OrganizationContext
    ):
        resolver = PermissionResolver(mock_store)

        with pytest.raises(OrganizationContextMissingError):
            await enforce_permissions(
                resolver, "someone-else", viewer_context, [Permission.ORG_READ]
            )

    @pytest.mark.asyncio
    async def test_store_failure_is_403_authorization_error(
        self, mock_store: Mock, viewer_context: OrganizationContext
    ):
        mock_store.get_user_org_membership = AsyncMock(
            side_effect=ConnectionError("db down")
        )
        resolver = PermissionResolver(mock_store)

        with pytest.raises(StoreFailureError) as exc_info:
            await enforce_permissions(
                resolver, "user-viewer-a", viewer_context, [Permission.ORG_READ]
            )

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "AUTHORIZATION_ERROR"

    @pytest.mark.asyncio
    async def test_binding_lookup_failure_is_403_authorization_error(
        self,
        mock_store: Mock,
        viewer_context: OrganizationContext,
        membership_factory,
    ):
        mock_store.get_user_org_membership = AsyncMock(
            return_value=membership_factory(OrganizationRole.owner, "user-viewer-a")
        )
        mock_store.get_user_permissions = AsyncMock(side_effect=Exception("boom"))
        resolver = PermissionResolver(mock_store)

        with pytest.raises(StoreFailureError) as exc_info:
            await enforce_permissions(
                resolver, "user-viewer-a", viewer_context, [Permission.ORG_READ]
            )

        assert exc_info.value.code == "AUTHORIZATION_ERROR"

    @pytest.mark.asyncio
    async def test_membership_revoked_after_org_gate(
        self, seeded_store: InMemoryStore, viewer_context: OrganizationContext
    ):
        """A membership revoked between the two gates resolves to nothing."""
        await seeded_store.deactivate_org_membership(ORG_A, "user-viewer-a")
        resolver = PermissionResolver(seeded_store)

        with pytest.raises(PermissionDeniedError):
            await enforce_permissions(
                resolver, "user-viewer-a", viewer_context, [Permission.ORG_READ]
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", list(OrganizationRole))
    async def test_removing_any_required_permission_flips_to_denied(
        self, mock_store: Mock, membership_factory, role: OrganizationRole
    ):
        """Dropping a single required permission from the resolved set denies."""
        granted = ROLE_PERMISSIONS[role]
        required = sorted(granted, key=lambda p: p.value)
        context = OrganizationContext(user_id="user-1", organization_id=ORG_A, role=role)
        mock_store.get_user_org_membership = AsyncMock(
            return_value=membership_factory(role, "user-1")
        )
        resolver = PermissionResolver(mock_store)

        allowed = await enforce_permissions(resolver, "user-1", context, required)
        assert allowed.permissions == granted

        for dropped in required:
            resolver.resolve_strict = AsyncMock(return_value=granted - {dropped})
            with pytest.raises(PermissionDeniedError):
                await enforce_permissions(resolver, "user-1", context, required)

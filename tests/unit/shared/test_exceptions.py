"""
Tests for the denial hierarchy and its rendering.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from tenantgate.shared.exceptions import (
    AuthenticationMissingError,
    AuthorizationDenied,
    MembershipDeniedError,
    OrganizationContextMissingError,
    PermissionDeniedError,
    ResourceAccessDeniedError,
    StoreFailureError,
    WorkflowAccessDeniedError,
)
from tenantgate.shared.permissions.models import AuthorizationStage
from tests.fixtures.organization_fixtures import ORG_A, ORG_B


class TestDenialStages:
    @pytest.mark.parametrize(
        "denial, failed_stage",
        [
            (AuthenticationMissingError(), AuthorizationStage.UNAUTHENTICATED),
            (OrganizationContextMissingError(), AuthorizationStage.AUTHENTICATED),
            (MembershipDeniedError(ORG_A), AuthorizationStage.AUTHENTICATED),
            (
                StoreFailureError("ORG_AUTHORIZATION_ERROR", ORG_A),
                AuthorizationStage.AUTHENTICATED,
            ),
            (PermissionDeniedError(ORG_A), AuthorizationStage.ORG_VERIFIED),
            (StoreFailureError(), AuthorizationStage.ORG_VERIFIED),
            (WorkflowAccessDeniedError(), AuthorizationStage.ORG_VERIFIED),
            (ResourceAccessDeniedError(ORG_A), AuthorizationStage.PERMISSION_VERIFIED),
        ],
    )
    def test_failed_stage(
        self, denial: AuthorizationDenied, failed_stage: AuthorizationStage
    ):
        assert denial.stage == AuthorizationStage.DENIED
        assert denial.failed_stage == failed_stage

    def test_body_hides_stage(self):
        body = PermissionDeniedError(ORG_A).to_body()

        assert set(body) == {"error", "message", "code", "organizationId"}


class TestDenialLogging:
    def test_denial_logged_with_stage(
        self, client: TestClient, auth_headers_for, caplog
    ):
        with caplog.at_level(logging.INFO, logger="tenantgate.main"):
            response = client.get(
                f"/api/v1/organizations/{ORG_B}",
                headers=auth_headers_for("user-owner-a"),
            )

        assert response.status_code == 403
        assert (
            f"Denied GET /api/v1/organizations/{ORG_B} with ORG_ACCESS_DENIED "
            "at stage authenticated"
        ) in caplog.text

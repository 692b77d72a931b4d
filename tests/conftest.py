"""
Global pytest configuration and fixtures for the tenantgate test suite.
"""

import os

# Set test environment variables before the settings object is created
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only-32-chars"

from typing import Callable, Dict  # noqa: E402
from unittest.mock import AsyncMock, Mock  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from tenantgate.core.storage import AuthorizationStore, InMemoryStore  # noqa: E402
from tenantgate.domains.workflows.engine import WorkflowEngine  # noqa: E402
from tenantgate.main import create_app  # noqa: E402

# Import fixtures from fixture modules
from tests.fixtures.organization_fixtures import *  # noqa: F403, F401, E402
from tests.fixtures.workflow_fixtures import *  # noqa: F403, F401, E402


@pytest.fixture
def test_jwt_secret() -> str:
    """JWT secret for generating test tokens."""
    return "test-secret-key-for-testing-only-32-chars"


@pytest.fixture
def make_token(test_jwt_secret: str) -> Callable[[str], str]:
    """Factory producing a signed token for a user ID."""

    def _make_token(user_id: str) -> str:
        payload = {"sub": user_id, "email": f"{user_id}@example.com"}
        return jwt.encode(payload, test_jwt_secret, algorithm="HS256")

    return _make_token


@pytest.fixture
def auth_headers_for(
    make_token: Callable[[str], str],
) -> Callable[[str], Dict[str, str]]:
    """Factory producing Authorization headers for a user ID."""

    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture
def mock_store() -> Mock:
    """
    Mock AuthorizationStore for unit tests that need to control every call.
    """
    store = Mock(spec=AuthorizationStore)
    store.has_org_membership = AsyncMock(return_value=False)
    store.get_user_org_membership = AsyncMock(return_value=None)
    store.get_user_permissions = AsyncMock(return_value=[])
    store.get_workflow_execution = AsyncMock(return_value=None)
    store.get_generated_application = AsyncMock(return_value=None)
    store.get_business_requirement = AsyncMock(return_value=None)
    store.get_organization = AsyncMock(return_value=None)
    store.list_org_members = AsyncMock(return_value=[])
    store.list_user_memberships = AsyncMock(return_value=[])
    return store


@pytest.fixture
def mock_engine() -> Mock:
    """Mock WorkflowEngine with async actions."""
    engine = Mock(spec=WorkflowEngine)
    for action in ("start", "advance", "pause", "resume", "cancel"):
        setattr(engine, action, AsyncMock())
    return engine


@pytest.fixture
def app(seeded_store: InMemoryStore, mock_engine: Mock) -> FastAPI:
    """Application wired to an isolated, seeded store."""
    return create_app(store=seeded_store, workflow_engine=mock_engine)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """FastAPI test client for API endpoint testing."""
    return TestClient(app)

"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any ``rtap`` import so settings are
built from them.
"""

import os

# Set before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rtap.adapters.operations.in_memory import InMemoryOperationRepository
from rtap.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from rtap.core.app_factory import create_app
from rtap.core.auth import get_principal
from rtap.schemas.access import Group, Principal, Role


@pytest.fixture
def red_team() -> Group:
    return Group(id="g-red", name="Red Team", member_ids=frozenset({"op-1", "viewer-1"}))


@pytest.fixture
def blue_team() -> Group:
    return Group(id="g-blue", name="Blue Team", member_ids=frozenset({"op-2"}))


@pytest.fixture
def admin() -> Principal:
    return Principal(id="admin-1", role=Role.ADMIN)


@pytest.fixture
def operator() -> Principal:
    return Principal(id="op-1", role=Role.OPERATOR, group_ids=frozenset({"g-red"}))


@pytest.fixture
def other_operator() -> Principal:
    return Principal(id="op-2", role=Role.OPERATOR, group_ids=frozenset({"g-blue"}))


@pytest.fixture
def viewer() -> Principal:
    return Principal(id="viewer-1", role=Role.VIEWER, group_ids=frozenset({"g-red"}))


@pytest.fixture
def repository(red_team: Group, blue_team: Group) -> InMemoryOperationRepository:
    return InMemoryOperationRepository(groups=[red_team, blue_team])


@pytest.fixture
def rate_limiter() -> InMemoryFixedWindowRateLimiter:
    return InMemoryFixedWindowRateLimiter()


@pytest.fixture
def app(
    repository: InMemoryOperationRepository,
    rate_limiter: InMemoryFixedWindowRateLimiter,
) -> FastAPI:
    return create_app(rate_limiter=rate_limiter, operation_repository=repository)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def login_as(app: FastAPI):
    """Make subsequent requests run as the given principal."""

    def _login(principal: Principal) -> None:
        app.dependency_overrides[get_principal] = lambda: principal

    yield _login
    app.dependency_overrides.clear()

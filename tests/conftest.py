"""
Pytest configuration and shared fixtures for ChatWave API tests.

This file provides reusable test fixtures including:
- An in-memory MongoDB (mongomock-motor) bound to the Beanie models per test
- An async HTTP client for the FastAPI app
- Users, workspaces and bearer headers
"""

import os

# Must be set before app.config is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.core.security import create_access_token
from app.db.mongodb import init_models
from app.main import app
from app.models.user import User
from app.models.workspace import WorkspaceRole
from app.services.identity_service import IdentityService
from app.services.tenancy_service import TenancyService


@pytest.fixture
async def test_db():
    """
    Provide a clean database for each test.

    Every test gets a fresh in-memory client, so nothing needs dropping.
    """
    client = AsyncMongoMockClient()
    db = client["test_chatwave"]
    await init_models(db)
    yield db


@pytest.fixture
async def test_client(test_db) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide an async HTTP client for testing API endpoints.

    The app lifespan (real MongoDB connection) is not run; the test_db
    fixture has already bound the models.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def identity() -> IdentityService:
    return IdentityService()


@pytest.fixture
def tenancy() -> TenancyService:
    return TenancyService()


@pytest.fixture
def make_user(test_db, identity):
    """Factory: create a password user."""
    async def _make_user(email: str, name: Optional[str] = None, password: str = "password123") -> User:
        return await identity.sign_up(email, password, name)
    return _make_user


@pytest.fixture
def make_member(make_user, tenancy):
    """Factory: create a user and bootstrap their own workspace."""
    async def _make_member(email: str, name: Optional[str] = None) -> User:
        user = await make_user(email, name)
        await tenancy.ensure_workspace_for_user(user)
        return user
    return _make_member


@pytest.fixture
def headers_for():
    """Bearer headers for a user."""
    def _headers_for(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(str(user.id), user.email)}"}
    return _headers_for


@pytest.fixture
async def alice(make_member):
    return await make_member("alice@example.com", "Alice")


@pytest.fixture
async def bob(make_member):
    """A user in a different workspace from alice."""
    return await make_member("bob@example.com", "Bob")


@pytest.fixture
async def carol(make_user, tenancy, alice):
    """A member (not owner) of alice's workspace."""
    user = await make_user("carol@example.com", "Carol")
    membership = await tenancy.require_membership(alice.id)
    await tenancy.add_member(membership.workspace_id, user.id, WorkspaceRole.MEMBER)
    return user

"""
Tests for identity and workspace endpoints.

Tests cover:
- Sign-up / sign-in and token handling
- First-login workspace bootstrap over HTTP
- The current user's workspace query
"""

import jwt
import pytest
from beanie import PydanticObjectId
from httpx import AsyncClient

from app.config import settings
from app.core.security import create_upload_token, decode_access_token
from app.models.workspace import Workspace, WorkspaceMember, WorkspaceRole


class TestSignUp:
    """Tests for POST /api/chat/auth/signup"""

    async def test_sign_up_returns_token(self, test_client: AsyncClient):
        response = await test_client.post(
            "/api/chat/auth/signup",
            json={"email": " New.User@Example.com ", "password": "password123", "name": "New"}
        )

        assert response.status_code == 201
        data = response.json()
        token = decode_access_token(data["access_token"])
        assert token.user_id == data["user_id"]
        assert token.email == "new.user@example.com"

    async def test_sign_up_creates_no_workspace(self, test_client: AsyncClient):
        await test_client.post(
            "/api/chat/auth/signup",
            json={"email": "solo@example.com", "password": "password123"}
        )

        assert await Workspace.find_all().count() == 0
        assert await WorkspaceMember.find_all().count() == 0

    async def test_duplicate_email_conflicts(self, test_client: AsyncClient, make_user):
        await make_user("taken@example.com")

        response = await test_client.post(
            "/api/chat/auth/signup",
            json={"email": "TAKEN@example.com", "password": "password123"}
        )

        assert response.status_code == 409

    async def test_short_password_rejected(self, test_client: AsyncClient):
        response = await test_client.post(
            "/api/chat/auth/signup",
            json={"email": "short@example.com", "password": "short"}
        )

        assert response.status_code == 400

    async def test_invalid_email_rejected(self, test_client: AsyncClient):
        response = await test_client.post(
            "/api/chat/auth/signup",
            json={"email": "not-an-email", "password": "password123"}
        )

        assert response.status_code == 422


class TestSignIn:
    """Tests for POST /api/chat/auth/signin"""

    async def test_sign_in_success(self, test_client: AsyncClient, make_user):
        user = await make_user("sam@example.com", password="correct-horse")

        response = await test_client.post(
            "/api/chat/auth/signin",
            json={"email": "sam@example.com", "password": "correct-horse"}
        )

        assert response.status_code == 200
        assert response.json()["user_id"] == str(user.id)

    @pytest.mark.parametrize("email,password", [
        ("sam@example.com", "wrong-password"),
        ("nobody@example.com", "correct-horse"),
    ])
    async def test_sign_in_failure_is_uniform(self, test_client: AsyncClient, make_user, email, password):
        await make_user("sam@example.com", password="correct-horse")

        response = await test_client.post("/api/chat/auth/signin", json={"email": email, "password": password})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_upload_token_is_not_an_access_token(self, alice):
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(create_upload_token(str(alice.id)))


class TestWorkspaceEndpoints:
    """Tests for /api/chat/workspaces"""

    async def test_ensure_then_me(self, test_client: AsyncClient, make_user, headers_for):
        user = await make_user("tess@example.com", "Tess")

        first = await test_client.post("/api/chat/workspaces/ensure", headers=headers_for(user))
        second = await test_client.post("/api/chat/workspaces/ensure", headers=headers_for(user))

        assert first.status_code == 200
        assert first.json()["created"] is True
        assert second.json() == {"workspace_id": first.json()["workspace_id"], "created": False}

        me = await test_client.get("/api/chat/workspaces/me", headers=headers_for(user))
        assert me.json()["id"] == first.json()["workspace_id"]
        assert me.json()["name"] == "Tess's Workspace"
        assert me.json()["role"] == "owner"

        channels = await test_client.get("/api/chat/channels", headers=headers_for(user))
        assert [c["name"] for c in channels.json()] == ["general"]

    async def test_ensure_requires_caller(self, test_client: AsyncClient):
        response = await test_client.post("/api/chat/workspaces/ensure")

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    async def test_member_role_reported(self, test_client: AsyncClient, carol, headers_for):
        response = await test_client.get("/api/chat/workspaces/me", headers=headers_for(carol))

        assert response.json()["role"] == "member"
        assert response.json()["name"] == "Alice's Workspace"

    async def test_me_without_workspace_is_null(self, test_client: AsyncClient, make_user, headers_for):
        user = await make_user("uma@example.com")

        response = await test_client.get("/api/chat/workspaces/me", headers=headers_for(user))

        assert response.status_code == 200
        assert response.json() is None

    async def test_expired_token_is_anonymous(self, test_client: AsyncClient, alice):
        expired = jwt.encode(
            {"sub": str(alice.id), "type": "access", "iat": 0, "exp": 1},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

        response = await test_client.get(
            "/api/chat/workspaces/me",
            headers={"Authorization": f"Bearer {expired}"}
        )

        assert response.json() is None

    async def test_integrity_violation_is_500(self, test_client: AsyncClient, alice, headers_for):
        await WorkspaceMember.get_motor_collection().drop_indexes()
        await WorkspaceMember(
            workspace_id=PydanticObjectId(),
            user_id=alice.id,
            role=WorkspaceRole.MEMBER,
        ).insert()

        response = await test_client.get("/api/chat/channels", headers=headers_for(alice))

        assert response.status_code == 500
        assert response.json()["detail"] == "User belongs to multiple workspaces; expected exactly one workspace"

"""
Tests for the seed generator and the seeded end-to-end scenario.

Tests cover:
- Seed shape (users, workspaces, memberships, channels, templated messages)
- Idempotence: a second run writes nothing new
- Sign in as a seeded user and read channels, history and search over HTTP
"""

import pytest
from httpx import AsyncClient

from app.models.channel import Channel
from app.models.message import Message
from app.models.profile import Profile
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from app.services.identity_service import IdentityService
from app.services.profile_service import ProfileService
from app.services.blob_store import BlobStore
from app.services.seed_service import (
    TEST_PASSWORD,
    SeedService,
    build_seed_messages,
)
from app.services.tenancy_service import TenancyService


@pytest.fixture
def seed_service(test_db) -> SeedService:
    tenancy = TenancyService()
    return SeedService(IdentityService(), tenancy, ProfileService(tenancy, BlobStore()))


async def counts() -> dict:
    return {
        "users": await User.find_all().count(),
        "profiles": await Profile.find_all().count(),
        "workspaces": await Workspace.find_all().count(),
        "members": await WorkspaceMember.find_all().count(),
        "channels": await Channel.find_all().count(),
        "messages": await Message.find_all().count(),
    }


class TestSeedTemplates:

    def test_messages_alternate_owner_and_member(self):
        messages = build_seed_messages("Seed Workspace A", "product")

        assert [role for role, _ in messages] == ["owner", "member", "owner", "member"]
        assert [content for _, content in messages] == [
            "Welcome to Seed Workspace A.",
            "Use #product for focused updates.",
            "Posting a seeded message so this channel has history.",
            "ChatWave seed completed for #product.",
        ]


class TestSeedRun:

    async def test_first_run_shape(self, seed_service):
        report = await seed_service.run()

        assert await counts() == {
            "users": 4,
            "profiles": 4,
            "workspaces": 2,
            "members": 4,
            "channels": 6,
            "messages": 24,
        }
        assert report.users_created == 4
        assert report.workspaces_created == 2
        assert report.channels_created == 6
        assert report.messages_inserted == 24

    async def test_roles_and_isolation(self, seed_service):
        report = await seed_service.run()
        workspace_a = report.workspaces["Seed Workspace A"]
        workspace_b = report.workspaces["Seed Workspace B"]

        owner_a = await WorkspaceMember.find_one(WorkspaceMember.user_id == report.users["owner_a"])
        member_a = await WorkspaceMember.find_one(WorkspaceMember.user_id == report.users["member_a"])
        owner_b = await WorkspaceMember.find_one(WorkspaceMember.user_id == report.users["owner_b"])

        assert (owner_a.workspace_id, owner_a.role) == (workspace_a, WorkspaceRole.OWNER)
        assert (member_a.workspace_id, member_a.role) == (workspace_a, WorkspaceRole.MEMBER)
        assert (owner_b.workspace_id, owner_b.role) == (workspace_b, WorkspaceRole.OWNER)

        for workspace_id in (workspace_a, workspace_b):
            for message in await Message.find(Message.workspace_id == workspace_id).to_list():
                channel = await Channel.get(message.channel_id)
                assert channel.workspace_id == workspace_id

    async def test_second_run_is_idempotent(self, seed_service):
        first_report = await seed_service.run()
        before = await counts()

        second_report = await seed_service.run()

        assert await counts() == before
        assert second_report.users == first_report.users
        assert second_report.workspaces == first_report.workspaces
        assert second_report.channels == first_report.channels
        assert second_report.users_created == 0
        assert second_report.workspaces_created == 0
        assert second_report.channels_created == 0
        assert second_report.messages_inserted == 0

    async def test_channels_with_history_are_left_alone(self, seed_service):
        report = await seed_service.run()
        general_a = report.channels["Seed Workspace A"]["general"]
        await Message.find(Message.channel_id == general_a).delete()
        await Message(
            workspace_id=report.workspaces["Seed Workspace A"],
            channel_id=general_a,
            author_id=report.users["owner_a"],
            content="hand-written",
        ).insert()

        await seed_service.run()

        contents = [m.content for m in await Message.find(Message.channel_id == general_a).to_list()]
        assert contents == ["hand-written"]


class TestSeededScenario:
    """Sign in as a seeded owner and walk the main read paths."""

    async def test_seeded_owner_flow(self, test_client: AsyncClient, seed_service):
        await seed_service.run()

        signin = await test_client.post(
            "/api/chat/auth/signin",
            json={"email": "seed.owner.a@chatwave.test", "password": TEST_PASSWORD}
        )
        assert signin.status_code == 200
        headers = {"Authorization": f"Bearer {signin.json()['access_token']}"}

        ensure = await test_client.post("/api/chat/workspaces/ensure", headers=headers)
        assert ensure.json()["created"] is False

        channels = (await test_client.get("/api/chat/channels", headers=headers)).json()
        assert [c["name"] for c in channels] == ["general", "product", "random"]

        general = channels[0]
        history = (await test_client.get(f"/api/chat/channels/{general['id']}/messages", headers=headers)).json()
        assert [m["content"] for m in history] == [
            "Welcome to Seed Workspace A.",
            "Use #general for focused updates.",
            "Posting a seeded message so this channel has history.",
            "ChatWave seed completed for #general.",
        ]
        assert [m["author"]["name"] for m in history] == [
            "Seed Owner A", "Seed Member A", "Seed Owner A", "Seed Member A",
        ]

        results = (await test_client.get(
            "/api/chat/messages/search",
            params={"q": "focused updates"},
            headers=headers
        )).json()
        assert sorted(r["channel_name"] for r in results) == ["general", "product", "random"]
        assert all("Seed Workspace B" not in r["content"] for r in results)

        welcome = (await test_client.get(
            "/api/chat/messages/search",
            params={"q": "welcome"},
            headers=headers
        )).json()
        assert {r["content"] for r in welcome} == {"Welcome to Seed Workspace A."}

    async def test_seeded_workspaces_are_isolated(self, test_client: AsyncClient, seed_service):
        report = await seed_service.run()

        signin = await test_client.post(
            "/api/chat/auth/signin",
            json={"email": "seed.member.b@chatwave.test", "password": TEST_PASSWORD}
        )
        headers = {"Authorization": f"Bearer {signin.json()['access_token']}"}
        general_a = report.channels["Seed Workspace A"]["general"]

        history = await test_client.get(f"/api/chat/channels/{general_a}/messages", headers=headers)
        search = await test_client.get(
            "/api/chat/messages/search",
            params={"q": "welcome", "channel_id": str(general_a)},
            headers=headers
        )

        assert history.status_code == 403
        assert search.status_code == 403

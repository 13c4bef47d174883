"""
SeedService - deterministic demo data for local, dev and preview environments.

Every step is find-or-create, so running the seed twice leaves the same
users, workspaces, channels and messages in place. Messages are only written
into channels that have none.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from beanie import PydanticObjectId

from app.core import metrics
from app.core.logging_config import get_logger
from app.models.channel import Channel
from app.models.message import Message
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceRole
from app.services.identity_service import IdentityService, get_identity_service
from app.services.profile_service import ProfileService, get_profile_service
from app.services.tenancy_service import TenancyService, get_tenancy_service

logger = get_logger(__name__)

TEST_PASSWORD = "testtest123"

WORKSPACE_CHANNELS = ("general", "product", "random")


@dataclass(frozen=True)
class SeedUser:
    key: str
    email: str
    name: str


@dataclass(frozen=True)
class SeedWorkspace:
    name: str
    owner: str
    member: str


SEED_USERS = (
    SeedUser("owner_a", "seed.owner.a@chatwave.test", "Seed Owner A"),
    SeedUser("member_a", "seed.member.a@chatwave.test", "Seed Member A"),
    SeedUser("owner_b", "seed.owner.b@chatwave.test", "Seed Owner B"),
    SeedUser("member_b", "seed.member.b@chatwave.test", "Seed Member B"),
)

SEED_WORKSPACES = (
    SeedWorkspace("Seed Workspace A", owner="owner_a", member="member_a"),
    SeedWorkspace("Seed Workspace B", owner="owner_b", member="member_b"),
)


def build_seed_messages(workspace_name: str, channel_name: str) -> List[Tuple[str, str]]:
    """(author role, content) pairs for one channel, alternating owner and member."""
    return [
        ("owner", f"Welcome to {workspace_name}."),
        ("member", f"Use #{channel_name} for focused updates."),
        ("owner", "Posting a seeded message so this channel has history."),
        ("member", f"ChatWave seed completed for #{channel_name}."),
    ]


class SeedError(RuntimeError):
    """A seed step could not be verified after writing."""


@dataclass
class SeedReport:
    users: Dict[str, PydanticObjectId] = field(default_factory=dict)
    workspaces: Dict[str, PydanticObjectId] = field(default_factory=dict)
    channels: Dict[str, Dict[str, PydanticObjectId]] = field(default_factory=dict)
    users_created: int = 0
    workspaces_created: int = 0
    channels_created: int = 0
    messages_inserted: int = 0


class SeedService:
    """Builds the fixed demo tenants through the same services the API uses."""

    def __init__(
        self,
        identity: IdentityService,
        tenancy: TenancyService,
        profiles: ProfileService
    ):
        self.identity = identity
        self.tenancy = tenancy
        self.profiles = profiles

    async def run(self) -> SeedReport:
        report = SeedReport()

        for seed_user in SEED_USERS:
            user = await self._ensure_user(seed_user, report)
            await self.profiles.upsert_profile(user.id, seed_user.name)
            report.users[seed_user.key] = user.id

        for seed_workspace in SEED_WORKSPACES:
            owner_id = report.users[seed_workspace.owner]
            member_id = report.users[seed_workspace.member]

            workspace = await self._ensure_workspace(seed_workspace.name, owner_id, report)
            report.workspaces[seed_workspace.name] = workspace.id

            await self.tenancy.add_member(workspace.id, owner_id, WorkspaceRole.OWNER)
            await self.tenancy.add_member(workspace.id, member_id, WorkspaceRole.MEMBER)

            channels = {}
            for channel_name in WORKSPACE_CHANNELS:
                channel = await self._ensure_channel(workspace.id, channel_name, owner_id, report)
                channels[channel_name] = channel.id
                await self._seed_messages(
                    workspace,
                    channel,
                    {"owner": owner_id, "member": member_id},
                    report
                )
            report.channels[seed_workspace.name] = channels

        logger.info(
            "seed_completed",
            users_created=report.users_created,
            workspaces_created=report.workspaces_created,
            channels_created=report.channels_created,
            messages_inserted=report.messages_inserted
        )
        return report

    async def _ensure_user(self, seed_user: SeedUser, report: SeedReport) -> User:
        user = await self.identity.find_user_by_email(seed_user.email)
        if user is None:
            await self.identity.sign_up(seed_user.email, TEST_PASSWORD, seed_user.name)
            report.users_created += 1
            user = await self.identity.find_user_by_email(seed_user.email)
            if user is None:
                raise SeedError(f"Failed to create seed user {seed_user.email}")
        return user

    async def _ensure_workspace(
        self,
        name: str,
        owner_id: PydanticObjectId,
        report: SeedReport
    ) -> Workspace:
        workspace = await Workspace.find_one(Workspace.name == name)
        if workspace is not None:
            return workspace

        created = await self.tenancy.create_workspace(name, owner_id)
        report.workspaces_created += 1

        workspace = await Workspace.find_one(Workspace.name == name)
        if workspace is None or workspace.id != created.id:
            raise SeedError(f"Failed to create seed workspace {name!r}")
        return workspace

    async def _ensure_channel(
        self,
        workspace_id: PydanticObjectId,
        name: str,
        created_by: PydanticObjectId,
        report: SeedReport
    ) -> Channel:
        channel = await Channel.find_one(
            Channel.workspace_id == workspace_id,
            Channel.name == name
        )
        if channel is not None:
            return channel

        await Channel(workspace_id=workspace_id, name=name, created_by=created_by).insert()
        report.channels_created += 1

        channel = await Channel.find_one(
            Channel.workspace_id == workspace_id,
            Channel.name == name
        )
        if channel is None:
            raise SeedError(f"Failed to create seed channel #{name}")
        return channel

    async def _seed_messages(
        self,
        workspace: Workspace,
        channel: Channel,
        authors: Dict[str, PydanticObjectId],
        report: SeedReport
    ) -> Optional[int]:
        if await Message.find(Message.channel_id == channel.id).count() > 0:
            return None

        messages = [
            Message(
                workspace_id=workspace.id,
                channel_id=channel.id,
                author_id=authors[role],
                content=content,
            )
            for role, content in build_seed_messages(workspace.name, channel.name)
        ]
        for message in messages:
            await message.insert()

        report.messages_inserted += len(messages)
        metrics.seed_messages_inserted_total.inc(len(messages))
        return len(messages)


def get_seed_service() -> SeedService:
    return SeedService(get_identity_service(), get_tenancy_service(), get_profile_service())

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from beanie import init_beanie
from app.models.channel import Channel
from app.models.message import Message
from app.models.profile import Profile
from app.models.stored_file import StoredFile
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.config import settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

DOCUMENT_MODELS = [User, Workspace, WorkspaceMember, Channel, Message, Profile, StoredFile]

_client: Optional[AsyncIOMotorClient] = None


async def init_models(database: AsyncIOMotorDatabase) -> None:
    """
    Bind the Beanie document models to a database and create their indexes.

    The unique indexes created here (one membership per user, one profile per
    user, unique channel name per workspace, unique email) are part of the
    tenancy contract, not just performance hints.
    """
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)


async def init_db() -> AsyncIOMotorClient:
    """
    Initialize database connection and Beanie ODM.

    Connection pool configuration:
    - maxPoolSize=50: Maximum number of connections (prevents exhaustion)
    - minPoolSize=5: Pre-allocated connections (reduces latency)
    - maxIdleTimeMS=45000: Close idle connections after 45s
    - serverSelectionTimeoutMS=5000: Fail fast if MongoDB is down
    """
    global _client

    try:
        client = AsyncIOMotorClient(
            settings.MONGODB_URL,
            maxPoolSize=50,
            minPoolSize=5,
            maxIdleTimeMS=45000,
            serverSelectionTimeoutMS=5000,
            retryWrites=True,
            retryReads=True,
            tz_aware=True,
        )

        await client.admin.command('ping')
        logger.info("mongodb_connected", database=settings.DATABASE_NAME)

        await init_models(client[settings.DATABASE_NAME])
        logger.info("beanie_initialized", models=[model.__name__ for model in DOCUMENT_MODELS])

        _client = client
        return client

    except Exception as e:
        logger.error("mongodb_connection_failed", error=str(e))
        raise


async def close_db() -> None:
    """Close database connection."""
    global _client
    if _client:
        _client.close()
        _client = None
        logger.info("mongodb_connection_closed")

"""
Seed the configured database with the demo workspaces.

Usage:
    python -m app.seed

Safe to run repeatedly; deploys run it after every `fly deploy`.
"""

import asyncio
import sys

from app.config import settings
from app.core.logging_config import PerformanceLogger, setup_logging, get_logger
from app.db.mongodb import init_db, close_db
from app.services.seed_service import SEED_USERS, TEST_PASSWORD, SeedError, get_seed_service

logger = get_logger(__name__)


async def run_seed() -> int:
    await init_db()
    try:
        with PerformanceLogger("seed_run", logger, database=settings.DATABASE_NAME):
            report = await get_seed_service().run()
    except SeedError as e:
        logger.error("seed_failed", error=str(e), database=settings.DATABASE_NAME)
        print(f"Seed failed: {e}", file=sys.stderr)
        return 1
    finally:
        await close_db()

    print(f"Seeded database {settings.DATABASE_NAME!r}")
    print(
        f"  users created: {report.users_created}, "
        f"workspaces created: {report.workspaces_created}, "
        f"channels created: {report.channels_created}, "
        f"messages inserted: {report.messages_inserted}"
    )
    print("Seed accounts (password for all: %s):" % TEST_PASSWORD)
    for seed_user in SEED_USERS:
        print(f"  {seed_user.email}  ({seed_user.name})")
    return 0


def main() -> None:
    setup_logging()
    sys.exit(asyncio.run(run_seed()))


if __name__ == "__main__":
    main()

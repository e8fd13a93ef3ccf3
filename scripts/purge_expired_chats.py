"""Delete chat sessions (and their messages) whose expiry has passed.

Meant to run from cron; sessions are never hard-deleted by the API itself.

Usage:
    python -m scripts.purge_expired_chats
    python -m scripts.purge_expired_chats --grace-days 7 --dry-run
"""

import argparse
import asyncio
from datetime import timedelta

import structlog
from sqlalchemy import func, select

from app.core.clock import utcnow
from app.core.database import async_session_factory, engine
from app.models.chat_session import ChatSession
from app.repositories.chat_repo import ChatRepository

logger = structlog.get_logger()


async def purge(grace_days: int, dry_run: bool) -> int:
    """Remove sessions that expired more than ``grace_days`` ago."""
    cutoff = utcnow() - timedelta(days=grace_days)
    async with async_session_factory() as session:
        if dry_run:
            result = await session.execute(
                select(func.count(ChatSession.id)).where(ChatSession.expires_at < cutoff)
            )
            count = int(result.scalar_one())
            logger.info("Purge dry run", cutoff=cutoff.isoformat(), sessions=count)
        else:
            count = await ChatRepository(session).purge_expired(cutoff)
            await session.commit()
            logger.info("Expired chats purged", cutoff=cutoff.isoformat(), sessions=count)

    await engine.dispose()
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description="Purge expired chat sessions")
    parser.add_argument(
        "--grace-days",
        type=int,
        default=0,
        help="Keep sessions for this many days after they expire",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Only count what would be deleted"
    )
    args = parser.parse_args()

    count = asyncio.run(purge(args.grace_days, args.dry_run))
    print(f"{'Would delete' if args.dry_run else 'Deleted'} {count} chat sessions")


if __name__ == "__main__":
    main()

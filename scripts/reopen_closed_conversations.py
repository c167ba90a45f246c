"""
Reopen every closed conversation (closed -> active).

Manual recovery tool. Without --commit the update is rolled back after
reporting how many rows it would change.

Usage:
    python scripts/reopen_closed_conversations.py            # dry-run
    python scripts/reopen_closed_conversations.py --commit   # persist changes
"""
import argparse
import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def reopen(commit: bool = False) -> None:
    from nobre_hub.database import async_session_factory
    from nobre_hub.services.reconciliation import reopen_closed_conversations

    async with async_session_factory() as db:
        count = await reopen_closed_conversations(db)
        if commit:
            await db.commit()
        else:
            await db.rollback()

    logger.info(
        "%d conversations %s",
        count, "reopened" if commit else "would be reopened [DRY RUN]",
    )


def main():
    parser = argparse.ArgumentParser(description="Reopen all closed conversations")
    parser.add_argument("--commit", action="store_true", help="Persist changes (default: dry-run)")
    args = parser.parse_args()

    asyncio.run(reopen(commit=args.commit))


if __name__ == "__main__":
    main()

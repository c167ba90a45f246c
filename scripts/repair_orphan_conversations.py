"""
Create the missing conversation for every lead that has none.

Safe to rerun: the insert is ON CONFLICT (lead_id) DO NOTHING, so a second run
creates nothing. Without --commit the work is rolled back after reporting.

Usage:
    python scripts/repair_orphan_conversations.py            # dry-run
    python scripts/repair_orphan_conversations.py --commit   # persist changes
"""
import argparse
import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def repair(commit: bool = False) -> None:
    from nobre_hub.database import async_session_factory
    from nobre_hub.services.reconciliation import repair_orphan_conversations

    async with async_session_factory() as db:
        report = await repair_orphan_conversations(db)
        if commit:
            await db.commit()
        else:
            await db.rollback()

    logger.info(
        "Orphans found: %d, conversations created: %d, failures: %d%s",
        report.orphans_found, report.conversations_created, len(report.failures),
        "" if commit else " [DRY RUN - rolled back]",
    )
    for failure in report.failures:
        logger.error("  lead %s: %s", failure.lead_id, failure.error)


def main():
    parser = argparse.ArgumentParser(description="Create missing conversations for orphaned leads")
    parser.add_argument("--commit", action="store_true", help="Persist changes (default: dry-run)")
    args = parser.parse_args()

    asyncio.run(repair(commit=args.commit))


if __name__ == "__main__":
    main()

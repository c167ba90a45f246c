"""
Collapse duplicate leads of one source onto the oldest lead per phone number.

Phones are compared by their last 8 digits. The earliest-created lead of each
group survives; the others are deleted together with their messages,
interactions and conversation.

Usage:
    python scripts/collapse_duplicate_leads.py                        # dry-run, source=whatsapp
    python scripts/collapse_duplicate_leads.py --source website
    python scripts/collapse_duplicate_leads.py --commit               # persist changes
"""
import argparse
import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def collapse(source: str, commit: bool = False) -> None:
    from nobre_hub.database import async_session_factory
    from nobre_hub.services.reconciliation import collapse_duplicate_leads

    async with async_session_factory() as db:
        report = await collapse_duplicate_leads(db, source, dry_run=not commit)
        if commit:
            await db.commit()

    logger.info(
        "Source %s: %d duplicate groups, %d leads %s",
        source, report.groups_affected, report.leads_deleted,
        "deleted" if commit else "would be deleted [DRY RUN]",
    )
    if commit:
        logger.info(
            "Also deleted %d conversations and %d messages",
            report.conversations_deleted, report.messages_deleted,
        )
    for failure in report.failures:
        logger.error("  lead %s: %s", failure.lead_id, failure.error)


def main():
    parser = argparse.ArgumentParser(description="Collapse duplicate leads by phone number")
    parser.add_argument("--source", default="whatsapp", help="Lead source to clean (default: whatsapp)")
    parser.add_argument("--commit", action="store_true", help="Persist changes (default: dry-run)")
    args = parser.parse_args()

    asyncio.run(collapse(args.source, commit=args.commit))


if __name__ == "__main__":
    main()

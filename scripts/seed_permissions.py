"""
Seed the default role -> permission table.

Missing roles are inserted; roles already edited through the API are left
alone unless --overwrite is given.

Usage:
    python scripts/seed_permissions.py
    python scripts/seed_permissions.py --overwrite
"""
import argparse
import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def seed(overwrite: bool = False) -> None:
    from nobre_hub.database import async_session_factory
    from nobre_hub.services.permissions import DEFAULT_ROLE_PERMISSIONS, seed_default_permissions

    async with async_session_factory() as db:
        written = await seed_default_permissions(db, overwrite=overwrite)
        await db.commit()

    logger.info("%d of %d roles written", written, len(DEFAULT_ROLE_PERMISSIONS))
    for role, tokens in DEFAULT_ROLE_PERMISSIONS.items():
        logger.info("  %-20s %s", role, ", ".join(tokens))


def main():
    parser = argparse.ArgumentParser(description="Seed default role permissions")
    parser.add_argument("--overwrite", action="store_true", help="Replace existing role rows too")
    args = parser.parse_args()

    asyncio.run(seed(overwrite=args.overwrite))


if __name__ == "__main__":
    main()

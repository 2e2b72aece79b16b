#!/usr/bin/env python3
"""
Initialize the Linkboard database.

Usage:
    python scripts/init_db.py                # alembic upgrade head
    python scripts/init_db.py --create-all   # create tables from ORM metadata
    python scripts/init_db.py --reset        # WARNING: Destroys all data!
"""

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path

from linkboard.config import get_settings
from linkboard.database import Database
from linkboard.logging_config import configure_logging, get_logger

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run_alembic_migrations() -> bool:
    """Run Alembic database migrations."""
    logger.info("running_alembic_migrations")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        logger.error("alembic_not_found")
        return False
    if result.returncode != 0:
        logger.error("alembic_migration_failed", stderr=result.stderr)
        return False
    logger.info("alembic_migrations_complete")
    return True


async def create_tables(reset: bool) -> bool:
    """Create tables straight from the ORM metadata."""
    db = Database(get_settings())
    try:
        await db.verify()
        if reset:
            logger.warning("dropping_all_tables")
            await db.drop_all()
        await db.create_all()
        logger.info("tables_created")
        return True
    except Exception as e:
        logger.error("table_creation_failed", error=str(e))
        return False
    finally:
        await db.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Initialize the Linkboard database")
    parser.add_argument("--create-all", action="store_true", help="Create tables from ORM metadata instead of migrating")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first (implies --create-all)")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")

    if args.create_all or args.reset:
        ok = asyncio.run(create_tables(reset=args.reset))
    else:
        ok = run_alembic_migrations()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())

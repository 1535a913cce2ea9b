#!/usr/bin/env python3
"""
Create the election schema and seed data, then exit.

Usage:
    python scripts/init_db.py            # schema + seed
    python scripts/init_db.py --no-seed  # schema only
"""
import argparse
import asyncio
import logging
import sys

from ballot_api.config import settings
from ballot_api.credentials import CredentialStore
from ballot_api.database import Database
from ballot_api.seed import seed_database

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("init_db")


async def main(seed: bool) -> int:
    database = Database(settings)
    try:
        await database.initialize()
        await database.create_schema()
        if seed:
            inserted = await seed_database(database, CredentialStore(database), settings)
            print(f"✅ Seeded: {inserted}")
        print(f"✅ Database {settings.POSTGRES_DB} ready")
        return 0
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        return 1
    finally:
        await database.close()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Initialize the ballot database")
    parser.add_argument("--no-seed", action="store_true", help="Skip seed data")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(seed=not args.no_seed)))

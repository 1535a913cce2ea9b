"""First-run seed data: one admin, three voters, three candidates."""
import logging
from typing import Optional

from .config import Settings, settings as default_settings
from .credentials import CredentialStore
from .database import Database

logger = logging.getLogger(__name__)

SEED_VOTERS = (
    ("V001", "John Doe"),
    ("V002", "Jane Smith"),
    ("V003", "Bob Johnson"),
)

SEED_CANDIDATES = (
    ("Alice Wilson", "Democratic Party"),
    ("Robert Brown", "Republican Party"),
    ("Carol Davis", "Independent"),
)


async def seed_database(
    database: Database,
    credentials: CredentialStore,
    config: Optional[Settings] = None,
) -> dict:
    """
    Insert the default admin, and the starter voters and candidates when
    their tables are empty.

    Returns:
        Dictionary with the number of rows inserted per table
    """
    config = config or default_settings
    inserted = {"admins": 0, "voters": 0, "candidates": 0}

    if await credentials.ensure_admin(
        config.SEED_ADMIN_USERNAME, config.SEED_ADMIN_PASSWORD
    ):
        inserted["admins"] = 1

    voter_password = await credentials.hash_password(config.SEED_VOTER_PASSWORD)

    async with database.transaction() as conn:
        # Empty-table checks and inserts share one lock so concurrent
        # startups seed at most once.
        await conn.execute("LOCK TABLE voters, candidates IN SHARE ROW EXCLUSIVE MODE")

        if await conn.fetchval("SELECT COUNT(*) FROM voters") == 0:
            await conn.executemany(
                "INSERT INTO voters (id, name, password) VALUES ($1, $2, $3)",
                [(voter_id, name, voter_password) for voter_id, name in SEED_VOTERS],
            )
            inserted["voters"] = len(SEED_VOTERS)

        if await conn.fetchval("SELECT COUNT(*) FROM candidates") == 0:
            await conn.executemany(
                "INSERT INTO candidates (name, party) VALUES ($1, $2)",
                list(SEED_CANDIDATES),
            )
            inserted["candidates"] = len(SEED_CANDIDATES)

    logger.info(f"Seed data applied: {inserted}")
    return inserted

"""PostgreSQL connection pool, schema and scoped transactions."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from .config import Settings, settings as default_settings
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Faults that say nothing about the request itself; callers may retry.
TRANSIENT_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.QueryCanceledError,
    asyncpg.exceptions.LockNotAvailableError,
    asyncpg.exceptions.InsufficientResourcesError,
    asyncpg.exceptions.OperatorInterventionError,
    asyncio.TimeoutError,
    OSError,
)

SCHEMA_LOCK_KEY = 727001

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS voters (
        id VARCHAR(50) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        password VARCHAR(255) NOT NULL,
        has_voted BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS candidates (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        party VARCHAR(255) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS votes (
        id SERIAL PRIMARY KEY,
        voter_id VARCHAR(50) NOT NULL
            REFERENCES voters(id) ON DELETE CASCADE,
        candidate_id INTEGER NOT NULL
            REFERENCES candidates(id) ON DELETE CASCADE,
        cast_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CONSTRAINT unique_vote UNIQUE (voter_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_votes_candidate_id ON votes (candidate_id)",
    """
    CREATE TABLE IF NOT EXISTS admins (
        id SERIAL PRIMARY KEY,
        username VARCHAR(50) UNIQUE NOT NULL,
        password VARCHAR(255) NOT NULL
    )
    """,
)


class TransactionConflict(StoreUnavailable):
    """Serialization failure or deadlock; the transaction was rolled back."""


class Database:
    """Async PostgreSQL database manager.

    One instance is created per process and handed to the stores that use
    it. ``initialize`` must be awaited before any query; ``close`` releases
    the pool.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self, dsn: Optional[str] = None):
        """Initialize database connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                dsn or self.settings.postgres_dsn,
                min_size=self.settings.POSTGRES_POOL_MIN_SIZE,
                max_size=self.settings.POSTGRES_POOL_MAX_SIZE,
                command_timeout=self.settings.POSTGRES_COMMAND_TIMEOUT,
                server_settings={
                    "application_name": self.settings.SERVICE_NAME,
                    "lock_timeout": str(self.settings.POSTGRES_LOCK_TIMEOUT_MS),
                    "statement_timeout": str(self.settings.POSTGRES_STATEMENT_TIMEOUT_MS),
                },
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                logger.info("PostgreSQL connection verified")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            raise

    async def create_schema(self):
        """Create the four election tables if they do not exist yet."""
        async with self.transaction() as conn:
            # Serializes concurrent startups racing on CREATE TABLE.
            await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_KEY)
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Database schema ready")

    @asynccontextmanager
    async def _translate_errors(self, operation: str):
        try:
            yield
        except asyncpg.exceptions.TransactionRollbackError as e:
            logger.warning(f"Transaction conflict during {operation}: {e}")
            raise TransactionConflict() from e
        except TRANSIENT_ERRORS as e:
            logger.error(f"Storage unavailable during {operation}: {e}")
            raise StoreUnavailable() from e

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection for single-statement reads."""
        if self.pool is None:
            raise StoreUnavailable()
        async with self._translate_errors("query"):
            async with self.pool.acquire(
                timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT
            ) as conn:
                yield conn

    @asynccontextmanager
    async def transaction(
        self,
        isolation: str = "read_committed",
        readonly: bool = False,
    ) -> AsyncIterator[asyncpg.Connection]:
        """
        Run the enclosed statements as one atomic unit.

        Any exception leaving the block rolls the transaction back before
        it propagates, so a failed multi-statement mutation is never
        partially visible.

        Args:
            isolation: asyncpg isolation level name
            readonly: open a READ ONLY transaction

        Yields:
            Connection bound to the open transaction
        """
        if self.pool is None:
            raise StoreUnavailable()
        async with self._translate_errors("transaction"):
            async with self.pool.acquire(
                timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT
            ) as conn:
                async with conn.transaction(isolation=isolation, readonly=readonly):
                    yield conn

    async def check_health(self) -> bool:
        """Check database connection health."""
        try:
            if not self.pool:
                return False
            async with self.pool.acquire(
                timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT
            ) as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                self.pool = None
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")

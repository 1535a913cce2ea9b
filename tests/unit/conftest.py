"""Pytest fixtures for unit tests.

Provides a stand-in for ``Database`` whose connection methods are
AsyncMocks, a fast password context, and a FastAPI test client wired to
mocked services.
"""

from contextlib import asynccontextmanager
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

from ballot_api.config import Settings
from ballot_api.credentials import CredentialStore
from ballot_api.election_store import ElectionStore
from ballot_api.main import create_app, limiter


class StubDatabase:
    """Records transactions and hands out one mocked connection."""

    def __init__(self):
        self.conn = MagicMock()
        self.conn.fetch = AsyncMock(return_value=[])
        self.conn.fetchrow = AsyncMock(return_value=None)
        self.conn.fetchval = AsyncMock(return_value=None)
        self.conn.execute = AsyncMock(return_value="OK")
        self.conn.executemany = AsyncMock(return_value=None)
        self.transactions = []

    @asynccontextmanager
    async def connection(self):
        yield self.conn

    @asynccontextmanager
    async def transaction(self, isolation="read_committed", readonly=False):
        self.transactions.append((isolation, readonly))
        yield self.conn

    def executed_sql(self):
        """SQL text of every execute() call, in order."""
        return [" ".join(c.args[0].split()) for c in self.conn.execute.await_args_list]


@pytest.fixture
def crypt_context() -> CryptContext:
    """Low-round context so hashing does not slow the suite down."""
    return CryptContext(schemes=["pbkdf2_sha256"], pbkdf2_sha256__default_rounds=1000)


@pytest.fixture
def stub_db() -> StubDatabase:
    return StubDatabase()


@pytest.fixture
def credentials(stub_db, crypt_context) -> CredentialStore:
    return CredentialStore(stub_db, crypt_context)


@pytest.fixture
def store(stub_db, credentials) -> ElectionStore:
    return ElectionStore(stub_db, credentials)


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(VOTE_MAX_RETRIES=2, VOTE_RETRY_DELAY=0, STATIC_DIR=None, SEED_ON_STARTUP=False)


@pytest.fixture
def services() -> MagicMock:
    """Mocked service graph attached to the app under test."""
    graph = MagicMock()
    graph.credentials = AsyncMock()
    graph.store = AsyncMock()
    graph.voting = AsyncMock()
    graph.tally = AsyncMock()
    graph.database = AsyncMock()
    return graph


@pytest.fixture
def client(services, fast_settings) -> Generator[TestClient, None, None]:
    """TestClient for an app without lifespan, backed by mocked services."""
    app = create_app(fast_settings, use_lifespan=False)
    app.state.credentials = services.credentials
    app.state.store = services.store
    app.state.voting = services.voting
    app.state.tally = services.tally
    app.state.database = services.database

    limiter.enabled = False
    with TestClient(app) as test_client:
        yield test_client
    limiter.enabled = True

"""Voter and admin identities with salted password hashes."""
import asyncio
import logging
from typing import Optional

from passlib.context import CryptContext

from .config import settings
from .database import Database
from .domain import AdminSummary, VoterSummary
from .errors import DuplicateId, InvalidCredentials, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

MAX_VOTER_ID_LENGTH = 50

pwd_context = CryptContext(schemes=settings.PASSWORD_SCHEMES, deprecated="auto")


def validate_text(value, label: str) -> str:
    """Return the stripped text or raise ValidationFailed.

    PostgreSQL text columns cannot store NUL, so it is rejected here
    rather than failing inside the database.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"{label} is required")
    if "\x00" in value:
        raise ValidationFailed(f"{label} must not contain NUL characters")
    return value.strip()


def validate_voter_id(voter_id) -> str:
    """Return the stripped voter id or raise ValidationFailed."""
    voter_id = validate_text(voter_id, "Voter ID")
    if len(voter_id) > MAX_VOTER_ID_LENGTH:
        raise ValidationFailed(
            f"Voter ID must be at most {MAX_VOTER_ID_LENGTH} characters"
        )
    return voter_id


def _usable_login(identifier, password) -> bool:
    """False for logins that cannot match any stored row."""
    if not identifier or not password:
        return False
    return "\x00" not in identifier


class CredentialStore:
    """Verifies voter and admin logins and owns the voter lifecycle.

    Hashing runs in a worker thread so slow key derivation never stalls
    the event loop.
    """

    def __init__(self, database: Database, context: Optional[CryptContext] = None):
        self.db = database
        self.context = context or pwd_context

    async def hash_password(self, password: str) -> str:
        return await asyncio.to_thread(self.context.hash, password)

    async def verify_password(self, password: str, hashed: Optional[str]) -> bool:
        if hashed is None:
            # Burn comparable time so unknown ids are not distinguishable.
            await asyncio.to_thread(self.context.dummy_verify)
            return False
        return await asyncio.to_thread(self.context.verify, password, hashed)

    async def verify_voter(self, voter_id: str, password: str) -> VoterSummary:
        """
        Check a voter's credentials.

        Returns:
            VoterSummary of the authenticated voter

        Raises:
            InvalidCredentials: unknown id or wrong password
        """
        if not _usable_login(voter_id, password):
            raise InvalidCredentials()

        async with self.db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, password, has_voted FROM voters WHERE id = $1",
                voter_id,
            )

        if not await self.verify_password(password, row["password"] if row else None):
            logger.info(f"Rejected voter login for id={voter_id}")
            raise InvalidCredentials()

        return VoterSummary.from_row(row)

    async def verify_admin(self, username: str, password: str) -> AdminSummary:
        if not _usable_login(username, password):
            raise InvalidCredentials()

        async with self.db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT username, password FROM admins WHERE username = $1",
                username,
            )

        if not await self.verify_password(password, row["password"] if row else None):
            logger.warning(f"Rejected admin login for username={username}")
            raise InvalidCredentials()

        return AdminSummary(username=row["username"])

    async def create_voter(self, voter_id: str, name: str, password: str) -> VoterSummary:
        """
        Register a voter.

        Raises:
            ValidationFailed: missing id, name or password
            DuplicateId: a voter with this id already exists
        """
        voter_id = validate_voter_id(voter_id)
        name = validate_text(name, "Voter name")
        if not password:
            raise ValidationFailed("Password is required")

        hashed = await self.hash_password(password)
        async with self.db.transaction() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO voters (id, name, password)
                VALUES ($1, $2, $3)
                ON CONFLICT (id) DO NOTHING
                RETURNING id, name, has_voted, created_at
                """,
                voter_id, name, hashed,
            )

        if row is None:
            logger.warning(f"Voter with id {voter_id} already exists")
            raise DuplicateId()

        logger.info(f"Voter created: id={voter_id}")
        return VoterSummary.from_row(row)

    async def remove_voter(self, voter_id: str):
        """
        Delete a voter together with the vote it owns.

        Raises:
            NotFound: no voter with this id
        """
        voter_id = validate_voter_id(voter_id)
        async with self.db.transaction() as conn:
            # Waits for any in-flight cast by this voter to finish first.
            locked = await conn.fetchval(
                "SELECT id FROM voters WHERE id = $1 FOR UPDATE", voter_id
            )
            if locked is None:
                raise NotFound("Voter not found")
            await conn.execute("DELETE FROM votes WHERE voter_id = $1", voter_id)
            await conn.execute("DELETE FROM voters WHERE id = $1", voter_id)

        logger.info(f"Voter removed: id={voter_id}")

    async def ensure_admin(self, username: str, password: str) -> bool:
        """Insert an admin unless the username exists. Returns True if inserted."""
        hashed = await self.hash_password(password)
        async with self.db.transaction() as conn:
            inserted = await conn.fetchval(
                """
                INSERT INTO admins (username, password)
                VALUES ($1, $2)
                ON CONFLICT (username) DO NOTHING
                RETURNING id
                """,
                username, hashed,
            )
        return inserted is not None

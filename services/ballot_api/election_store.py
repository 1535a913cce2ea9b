"""Candidates, voters and votes; enforces one vote per voter."""
import logging
from typing import List

import asyncpg

from .credentials import CredentialStore, validate_text
from .database import Database
from .domain import MAX_CANDIDATE_ID, Candidate, CastOutcome, VoterSummary
from .errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def validate_candidate_id(candidate_id) -> int:
    """Return the candidate id as int or raise ValidationFailed."""
    if isinstance(candidate_id, bool):
        raise ValidationFailed("Candidate ID must be a positive integer")
    try:
        candidate_id = int(candidate_id)
    except (TypeError, ValueError):
        raise ValidationFailed("Candidate ID must be a positive integer")
    if candidate_id <= 0 or candidate_id > MAX_CANDIDATE_ID:
        raise ValidationFailed("Candidate ID must be a positive integer")
    return candidate_id


class ElectionStore:
    """Sole owner of candidate and vote rows and of the has_voted flag."""

    def __init__(self, database: Database, credentials: CredentialStore):
        self.db = database
        self.credentials = credentials

    # Candidates

    async def list_candidates(self) -> List[Candidate]:
        async with self.db.connection() as conn:
            rows = await conn.fetch(
                "SELECT id, name, party, created_at FROM candidates ORDER BY name, id"
            )
        return [Candidate.from_row(row) for row in rows]

    async def add_candidate(self, name: str, party: str) -> Candidate:
        name = validate_text(name, "Candidate name")
        party = validate_text(party, "Candidate party")

        async with self.db.transaction() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO candidates (name, party)
                VALUES ($1, $2)
                RETURNING id, name, party, created_at
                """,
                name, party,
            )

        candidate = Candidate.from_row(row)
        logger.info(f"Candidate added: id={candidate.id}, name={candidate.name}")
        return candidate

    async def remove_candidate(self, candidate_id) -> None:
        """
        Delete a candidate and every vote cast for it, atomically.

        Voters whose vote is removed get their has_voted flag cleared in the
        same transaction.

        Raises:
            NotFound: no candidate with this id
        """
        candidate_id = validate_candidate_id(candidate_id)
        async with self.db.transaction() as conn:
            # Blocks until in-flight casts holding FOR SHARE on it commit.
            locked = await conn.fetchval(
                "SELECT id FROM candidates WHERE id = $1 FOR UPDATE", candidate_id
            )
            if locked is None:
                raise NotFound("Candidate not found")

            await conn.execute(
                """
                UPDATE voters SET has_voted = FALSE
                WHERE id IN (SELECT voter_id FROM votes WHERE candidate_id = $1)
                """,
                candidate_id,
            )
            removed = await conn.execute(
                "DELETE FROM votes WHERE candidate_id = $1", candidate_id
            )
            await conn.execute("DELETE FROM candidates WHERE id = $1", candidate_id)

        logger.info(f"Candidate removed: id={candidate_id} ({removed})")

    # Voters

    async def add_voter(self, voter_id: str, name: str, password: str) -> VoterSummary:
        return await self.credentials.create_voter(voter_id, name, password)

    async def remove_voter(self, voter_id: str) -> None:
        await self.credentials.remove_voter(voter_id)

    async def list_voters(self) -> List[VoterSummary]:
        async with self.db.connection() as conn:
            rows = await conn.fetch(
                "SELECT id, name, has_voted, created_at FROM voters ORDER BY name, id"
            )
        return [VoterSummary.from_row(row) for row in rows]

    # Votes

    async def record_vote(self, voter_id: str, candidate_id: int) -> CastOutcome:
        """
        Commit a vote and flip has_voted as one atomic, conditional unit.

        Locks are taken candidate first, then voter, the same order
        remove_candidate uses. The insert is guarded by the unique
        constraint on votes.voter_id, so among concurrent attempts for one
        voter exactly one returns COMMITTED.

        Returns:
            CastOutcome of the attempt; no mutation unless COMMITTED
        """
        try:
            async with self.db.transaction() as conn:
                candidate = await conn.fetchval(
                    "SELECT id FROM candidates WHERE id = $1 FOR SHARE",
                    candidate_id,
                )
                if candidate is None:
                    return CastOutcome.UNKNOWN_CANDIDATE

                voter = await conn.fetchval(
                    "SELECT id FROM voters WHERE id = $1 FOR UPDATE",
                    voter_id,
                )
                if voter is None:
                    return CastOutcome.UNKNOWN_VOTER

                vote_id = await conn.fetchval(
                    """
                    INSERT INTO votes (voter_id, candidate_id)
                    VALUES ($1, $2)
                    ON CONFLICT (voter_id) DO NOTHING
                    RETURNING id
                    """,
                    voter_id, candidate_id,
                )
                if vote_id is None:
                    return CastOutcome.ALREADY_VOTED

                await conn.execute(
                    "UPDATE voters SET has_voted = TRUE WHERE id = $1", voter_id
                )
        except asyncpg.exceptions.UniqueViolationError:
            return CastOutcome.ALREADY_VOTED
        except asyncpg.exceptions.ForeignKeyViolationError as e:
            if "candidate" in (e.constraint_name or ""):
                return CastOutcome.UNKNOWN_CANDIDATE
            return CastOutcome.UNKNOWN_VOTER

        logger.debug(f"Vote row {vote_id} committed for voter {voter_id}")
        return CastOutcome.COMMITTED

    async def reset_election(self) -> int:
        """
        Delete every vote and clear every has_voted flag in one transaction.

        Returns:
            Number of votes deleted
        """
        async with self.db.transaction() as conn:
            # EXCLUSIVE conflicts with the row locks a cast takes, so no
            # cast can commit between the two statements below.
            await conn.execute("LOCK TABLE voters, votes IN EXCLUSIVE MODE")
            deleted = await conn.fetchval(
                "WITH removed AS (DELETE FROM votes RETURNING 1) "
                "SELECT COUNT(*) FROM removed"
            )
            await conn.execute(
                "UPDATE voters SET has_voted = FALSE WHERE has_voted"
            )

        logger.info(f"Election reset: {deleted} votes deleted")
        return deleted

    async def count_votes_for_voter(self, voter_id: str) -> int:
        async with self.db.connection() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM votes WHERE voter_id = $1", voter_id
            )

    async def count_votes_for_candidate(self, candidate_id: int) -> int:
        async with self.db.connection() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM votes WHERE candidate_id = $1", candidate_id
            )

"""Tally engine: per-candidate vote counts from one consistent snapshot."""
import logging
from typing import Iterable, List

from .database import Database
from .domain import TallyEntry

logger = logging.getLogger(__name__)

TALLY_QUERY = """
    SELECT
        c.id AS candidate_id,
        c.name,
        c.party,
        COALESCE(v.vote_count, 0) AS vote_count
    FROM candidates c
    LEFT JOIN (
        SELECT candidate_id, COUNT(*) AS vote_count
        FROM votes
        GROUP BY candidate_id
    ) v ON v.candidate_id = c.id
"""


def rank_results(entries: Iterable[TallyEntry]) -> List[TallyEntry]:
    """Order by vote count descending, then name ascending."""
    return sorted(entries, key=lambda e: (-e.vote_count, e.name, e.candidate_id))


def total_votes(results: Iterable[TallyEntry]) -> int:
    return sum(entry.vote_count for entry in results)


class TallyEngine:
    """Read-only aggregation over the election tables."""

    def __init__(self, database: Database):
        self.db = database

    async def compute_results(self) -> List[TallyEntry]:
        """
        Count votes for every candidate, zero-vote candidates included.

        The query runs in a read-only REPEATABLE READ transaction so the
        result never mixes states from before and after a concurrent reset.
        """
        async with self.db.transaction(isolation="repeatable_read", readonly=True) as conn:
            rows = await conn.fetch(TALLY_QUERY)

        results = rank_results(TallyEntry.from_row(row) for row in rows)
        logger.debug(f"Tally computed: {len(results)} candidates, {total_votes(results)} votes")
        return results

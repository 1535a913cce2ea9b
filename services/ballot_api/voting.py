"""Vote casting: validation plus the retried atomic commit."""
import asyncio
import logging
from typing import Optional

from .config import Settings, settings as default_settings
from .credentials import validate_voter_id
from .database import TransactionConflict
from .domain import CastOutcome
from .election_store import ElectionStore, validate_candidate_id
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


class VoteCastingService:
    """Casts votes against the ElectionStore.

    Identifiers are validated before storage is touched. A transaction
    conflict (serialization failure, deadlock) rolls back completely, so
    the whole commit is retried up to VOTE_MAX_RETRIES times; the unique
    constraint on votes.voter_id keeps a retry from ever adding a second
    vote.
    """

    def __init__(self, store: ElectionStore, config: Optional[Settings] = None):
        self.store = store
        self.settings = config or default_settings

    async def cast_vote(self, voter_id, candidate_id) -> CastOutcome:
        """
        Cast one vote.

        Args:
            voter_id: Externally issued voter id
            candidate_id: Candidate id

        Returns:
            CastOutcome.COMMITTED, ALREADY_VOTED, UNKNOWN_VOTER or
            UNKNOWN_CANDIDATE

        Raises:
            ValidationFailed: malformed identifiers
            StoreUnavailable: storage failure, or conflicts outlasting retries
        """
        voter_id = validate_voter_id(voter_id)
        candidate_id = validate_candidate_id(candidate_id)

        attempts = max(1, self.settings.VOTE_MAX_RETRIES + 1)
        for attempt in range(1, attempts + 1):
            try:
                outcome = await self.store.record_vote(voter_id, candidate_id)
                break
            except TransactionConflict:
                if attempt == attempts:
                    logger.error(
                        f"Vote for voter {voter_id} still conflicting after "
                        f"{attempt} attempts"
                    )
                    raise StoreUnavailable()
                logger.info(
                    f"Retrying vote for voter {voter_id} "
                    f"(attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(self.settings.VOTE_RETRY_DELAY * attempt)

        if outcome is CastOutcome.COMMITTED:
            logger.info(f"Vote cast: voter={voter_id}, candidate={candidate_id}")
        else:
            logger.info(
                f"Vote rejected: voter={voter_id}, candidate={candidate_id}, "
                f"outcome={outcome.value}"
            )
        return outcome

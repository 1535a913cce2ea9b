"""Unit tests for VoteCastingService: validation, retries and race safety."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ballot_api.database import TransactionConflict
from ballot_api.domain import CastOutcome
from ballot_api.errors import StoreUnavailable, ValidationFailed
from ballot_api.voting import VoteCastingService


class InMemoryVoteStore:
    """record_vote stand-in holding the unique voter_id -> candidate_id map.

    The await inside the critical section hands control to other tasks,
    so concurrent callers really interleave.
    """

    def __init__(self, voters, candidates):
        self.voters = set(voters)
        self.candidates = set(candidates)
        self.votes = {}
        self._lock = asyncio.Lock()

    async def record_vote(self, voter_id, candidate_id):
        async with self._lock:
            await asyncio.sleep(0)
            if candidate_id not in self.candidates:
                return CastOutcome.UNKNOWN_CANDIDATE
            if voter_id not in self.voters:
                return CastOutcome.UNKNOWN_VOTER
            if voter_id in self.votes:
                return CastOutcome.ALREADY_VOTED
            self.votes[voter_id] = candidate_id
            return CastOutcome.COMMITTED


@pytest.fixture
def mock_store():
    store = AsyncMock()
    store.record_vote.return_value = CastOutcome.COMMITTED
    return store


@pytest.mark.asyncio
class TestCastVote:
    """Tests for VoteCastingService.cast_vote."""

    async def test_committed(self, mock_store, fast_settings):
        service = VoteCastingService(mock_store, fast_settings)

        outcome = await service.cast_vote("V001", 2)

        assert outcome is CastOutcome.COMMITTED
        mock_store.record_vote.assert_awaited_once_with("V001", 2)

    async def test_identifiers_normalised_before_storage(self, mock_store, fast_settings):
        service = VoteCastingService(mock_store, fast_settings)

        await service.cast_vote(" V001 ", "2")

        mock_store.record_vote.assert_awaited_once_with("V001", 2)

    @pytest.mark.parametrize("voter_id,candidate_id", [
        ("", 1),
        (None, 1),
        ("V001", 0),
        ("V001", "two"),
        ("V001", 2 ** 40),
        ("V002\x00", 1),
    ])
    async def test_malformed_identifiers_never_touch_storage(
        self, mock_store, fast_settings, voter_id, candidate_id
    ):
        service = VoteCastingService(mock_store, fast_settings)

        with pytest.raises(ValidationFailed):
            await service.cast_vote(voter_id, candidate_id)

        mock_store.record_vote.assert_not_awaited()

    async def test_conflict_is_retried(self, mock_store, fast_settings):
        mock_store.record_vote.side_effect = [TransactionConflict(), CastOutcome.COMMITTED]
        service = VoteCastingService(mock_store, fast_settings)

        outcome = await service.cast_vote("V001", 2)

        assert outcome is CastOutcome.COMMITTED
        assert mock_store.record_vote.await_count == 2

    async def test_retry_after_conflict_reports_already_voted(self, mock_store, fast_settings):
        # A concurrent cast won while this one was being rolled back
        mock_store.record_vote.side_effect = [TransactionConflict(), CastOutcome.ALREADY_VOTED]
        service = VoteCastingService(mock_store, fast_settings)

        assert await service.cast_vote("V001", 2) is CastOutcome.ALREADY_VOTED

    async def test_persistent_conflict_becomes_store_unavailable(self, mock_store, fast_settings):
        mock_store.record_vote.side_effect = TransactionConflict()
        service = VoteCastingService(mock_store, fast_settings)

        with pytest.raises(StoreUnavailable):
            await service.cast_vote("V001", 2)

        assert mock_store.record_vote.await_count == fast_settings.VOTE_MAX_RETRIES + 1

    async def test_store_unavailable_is_not_retried(self, mock_store, fast_settings):
        mock_store.record_vote.side_effect = StoreUnavailable()
        service = VoteCastingService(mock_store, fast_settings)

        with pytest.raises(StoreUnavailable):
            await service.cast_vote("V001", 2)

        assert mock_store.record_vote.await_count == 1


@pytest.mark.asyncio
async def test_concurrent_casts_commit_exactly_once(fast_settings):
    store = InMemoryVoteStore(voters={"V001"}, candidates={1, 2, 3})
    service = VoteCastingService(store, fast_settings)

    outcomes = await asyncio.gather(
        *(service.cast_vote("V001", 1 + i % 3) for i in range(20))
    )

    assert outcomes.count(CastOutcome.COMMITTED) == 1
    assert outcomes.count(CastOutcome.ALREADY_VOTED) == 19
    assert len(store.votes) == 1


@pytest.mark.parametrize("outcome,error_name", [
    (CastOutcome.ALREADY_VOTED, "AlreadyVoted"),
    (CastOutcome.UNKNOWN_VOTER, "UnknownVoter"),
    (CastOutcome.UNKNOWN_CANDIDATE, "UnknownCandidate"),
])
def test_failed_outcomes_map_to_errors(outcome, error_name):
    assert type(outcome.to_error()).__name__ == error_name


def test_committed_outcome_has_no_error():
    assert CastOutcome.COMMITTED.to_error() is None

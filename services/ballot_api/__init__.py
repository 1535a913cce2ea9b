"""
Ballot service: one-vote-per-voter election backend.

This package contains:
- CredentialStore: voter/admin credential verification and voter lifecycle
- ElectionStore: candidates, voters and the atomic vote commit
- VoteCastingService: validated, retried vote casting
- TallyEngine: ranked per-candidate results
"""

from .domain import CastOutcome, Candidate, VoterSummary, AdminSummary, TallyEntry
from .errors import (
    BallotError,
    ValidationFailed,
    InvalidCredentials,
    NotFound,
    UnknownVoter,
    UnknownCandidate,
    DuplicateId,
    AlreadyVoted,
    StoreUnavailable,
)

__all__ = [
    'CastOutcome',
    'Candidate',
    'VoterSummary',
    'AdminSummary',
    'TallyEntry',
    'BallotError',
    'ValidationFailed',
    'InvalidCredentials',
    'NotFound',
    'UnknownVoter',
    'UnknownCandidate',
    'DuplicateId',
    'AlreadyVoted',
    'StoreUnavailable',
]

__version__ = '1.0.0'

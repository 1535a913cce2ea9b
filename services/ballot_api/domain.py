"""
Records and outcomes shared by the ballot service components.

This module contains:
- CastOutcome: result of a vote-casting attempt
- Candidate, VoterSummary, AdminSummary, TallyEntry: read models built
  from database rows
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .errors import AlreadyVoted, BallotError, UnknownCandidate, UnknownVoter

# Candidate ids are PostgreSQL INTEGER (SERIAL) values.
MAX_CANDIDATE_ID = 2147483647


class CastOutcome(str, Enum):
    """Result of a single cast attempt."""
    COMMITTED = "committed"
    ALREADY_VOTED = "already_voted"
    UNKNOWN_VOTER = "unknown_voter"
    UNKNOWN_CANDIDATE = "unknown_candidate"

    def to_error(self) -> Optional[BallotError]:
        """Return the error matching a failed outcome, None when committed."""
        error_types = {
            CastOutcome.ALREADY_VOTED: AlreadyVoted,
            CastOutcome.UNKNOWN_VOTER: UnknownVoter,
            CastOutcome.UNKNOWN_CANDIDATE: UnknownCandidate,
        }
        error_type = error_types.get(self)
        return error_type() if error_type else None


@dataclass
class Candidate:
    id: int
    name: str
    party: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> 'Candidate':
        return cls(
            id=row["id"],
            name=row["name"],
            party=row["party"],
            created_at=row.get("created_at"),
        )


@dataclass
class VoterSummary:
    """Voter as exposed to callers: never carries the password hash."""
    id: str
    name: str
    has_voted: bool
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> 'VoterSummary':
        return cls(
            id=row["id"],
            name=row["name"],
            has_voted=bool(row["has_voted"]),
            created_at=row.get("created_at"),
        )


@dataclass
class AdminSummary:
    username: str


@dataclass
class TallyEntry:
    """Vote count for one candidate."""
    candidate_id: int
    name: str
    party: str
    vote_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> 'TallyEntry':
        return cls(
            candidate_id=row["candidate_id"],
            name=row["name"],
            party=row["party"],
            vote_count=int(row["vote_count"]),
        )

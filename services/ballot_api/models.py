"""Pydantic models for request/response validation.

Field names are snake_case in Python and camelCase on the wire
(``voterId``, ``hasVoted``, ``voteCount``), matching the voting front-end.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel

from .domain import MAX_CANDIDATE_ID


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


def _required_text(value: str, label: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"{label} cannot be empty")
    if "\x00" in value:
        raise ValueError(f"{label} must not contain NUL characters")
    return value.strip()


# Requests

class VoterLoginRequest(CamelModel):
    """Voter login request model."""

    voter_id: str = Field(..., description="Voter identifier")
    password: str = Field(..., description="Voter password")

    class Config:
        json_schema_extra = {
            "example": {"voterId": "V001", "password": "password123"}
        }


class AdminLoginRequest(CamelModel):
    """Admin login request model."""

    username: str = Field(..., description="Admin username")
    password: str = Field(..., description="Admin password")


class VoteRequest(CamelModel):
    """Vote submission request model."""

    voter_id: str = Field(..., max_length=50, description="Voter identifier")
    candidate_id: int = Field(..., gt=0, le=MAX_CANDIDATE_ID, description="Candidate ID")

    @validator("voter_id")
    def validate_voter_id(cls, v):
        """Validate voter_id is not empty."""
        return _required_text(v, "Voter ID")

    class Config:
        json_schema_extra = {
            "example": {"voterId": "V001", "candidateId": 2}
        }


class AddVoterRequest(CamelModel):
    """Admin request to register a voter."""

    id: str = Field(..., max_length=50, description="Externally issued voter ID")
    name: str = Field(..., max_length=255, description="Voter display name")
    password: str = Field(..., min_length=1, description="Initial password")

    @validator("id")
    def validate_id(cls, v):
        return _required_text(v, "Voter ID")

    @validator("name")
    def validate_name(cls, v):
        return _required_text(v, "Name")


class AddCandidateRequest(CamelModel):
    """Admin request to add a candidate."""

    name: str = Field(..., max_length=255, description="Candidate name")
    party: str = Field(..., max_length=255, description="Party affiliation")

    @validator("name")
    def validate_name(cls, v):
        return _required_text(v, "Name")

    @validator("party")
    def validate_party(cls, v):
        return _required_text(v, "Party")


# Responses

class VoterOut(CamelModel):
    """Voter summary; never carries the password hash."""

    id: str
    name: str
    has_voted: bool
    created_at: Optional[datetime] = None


class AdminOut(CamelModel):
    username: str


class VoterLoginResponse(CamelModel):
    success: bool = True
    voter: VoterOut


class AdminLoginResponse(CamelModel):
    success: bool = True
    admin: AdminOut


class CandidateOut(CamelModel):
    id: int
    name: str
    party: str
    created_at: Optional[datetime] = None


class TallyEntryOut(CamelModel):
    """One ranked row of the election results."""

    candidate_id: int = Field(..., description="Candidate ID")
    name: str = Field(..., description="Candidate name")
    party: str = Field(..., description="Party affiliation")
    vote_count: int = Field(..., description="Votes received")

    class Config:
        json_schema_extra = {
            "example": {
                "candidateId": 2,
                "name": "Robert Brown",
                "party": "Republican Party",
                "voteCount": 17
            }
        }


class MessageResponse(CamelModel):
    """Confirmation of a successful mutation."""

    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Health check timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "services": {"postgresql": "connected"},
                "timestamp": "2024-01-15T10:30:00"
            }
        }


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict = Field(default_factory=dict, description="Additional error details")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "ValidationError",
                "message": "Invalid request",
                "details": {"voterId": ["Voter ID cannot be empty"]}
            }
        }

"""Error taxonomy for the ballot service.

Storage faults are translated into these types before they leave the
storage layer; route handlers map them onto HTTP status codes.
"""


class BallotError(Exception):
    """Base class for all ballot service errors."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationFailed(BallotError):
    """Missing or malformed identifiers, rejected before touching storage."""

    status_code = 400
    message = "Invalid request"


class InvalidCredentials(BallotError):
    """Unknown identity or wrong password; the two are never distinguished."""

    status_code = 401
    message = "Invalid credentials"


class NotFound(BallotError):
    status_code = 404
    message = "Not found"


class UnknownVoter(NotFound):
    message = "Unknown voter"


class UnknownCandidate(NotFound):
    message = "Unknown candidate"


class DuplicateId(BallotError):
    status_code = 409
    message = "Voter ID already exists"


class AlreadyVoted(BallotError):
    status_code = 409
    message = "You have already voted"


class StoreUnavailable(BallotError):
    """Transient storage failure. The whole operation is safe to retry."""

    status_code = 500
    message = "Internal server error"

"""
FastAPI application for the ballot service.

Voters log in and cast one vote each; administrators manage voters and
candidates, read the tally and reset the election.
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import Settings, settings
from .credentials import CredentialStore
from .database import Database
from .domain import MAX_CANDIDATE_ID, CastOutcome
from .election_store import ElectionStore
from .errors import BallotError
from .models import (
    AddCandidateRequest,
    AddVoterRequest,
    AdminLoginRequest,
    AdminLoginResponse,
    AdminOut,
    CandidateOut,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    TallyEntryOut,
    VoteRequest,
    VoterLoginRequest,
    VoterLoginResponse,
    VoterOut,
)
from .seed import seed_database
from .tally import TallyEngine
from .voting import VoteCastingService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
votes_cast = Counter(
    "votes_cast_total",
    "Vote casting attempts by outcome",
    ["outcome"]
)
login_attempts = Counter(
    "login_attempts_total",
    "Login attempts by role and result",
    ["role", "result"]
)
admin_actions = Counter(
    "admin_actions_total",
    "Administrative mutations performed",
    ["action"]
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)

# Rate limiter; limits are read per request from the most recently built app.
limiter = Limiter(key_func=get_remote_address)
rate_limits = {
    "login": settings.LOGIN_RATE_LIMIT,
    "vote": settings.VOTE_RATE_LIMIT,
}


def login_rate_limit() -> str:
    return rate_limits["login"]


def vote_rate_limit() -> str:
    return rate_limits["vote"]


def attach_services(app: FastAPI, database: Database, config: Settings):
    """Build the service graph around one storage handle."""
    credentials = CredentialStore(database)
    store = ElectionStore(database, credentials)
    app.state.database = database
    app.state.credentials = credentials
    app.state.store = store
    app.state.voting = VoteCastingService(store, config)
    app.state.tally = TallyEngine(database)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    config: Settings = app.state.settings
    logger.info(f"Starting {config.SERVICE_NAME} service...")

    database = Database(config)
    try:
        await database.initialize()
        await database.create_schema()
        attach_services(app, database, config)

        if config.SEED_ON_STARTUP:
            await seed_database(database, app.state.credentials, config)

        logger.info(f"{config.SERVICE_NAME} started successfully")

    except Exception as e:
        logger.error(f"Failed to start {config.SERVICE_NAME}: {e}")
        await database.close()
        raise

    yield

    logger.info(f"Shutting down {config.SERVICE_NAME} service...")
    await database.close()
    logger.info(f"{config.SERVICE_NAME} shut down successfully")


# Dependencies

def get_database(request: Request) -> Database:
    return request.app.state.database


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_store(request: Request) -> ElectionStore:
    return request.app.state.store


def get_voting(request: Request) -> VoteCastingService:
    return request.app.state.voting


def get_tally(request: Request) -> TallyEngine:
    return request.app.state.tally


# Exception handlers

async def ballot_error_handler(request: Request, exc: BallotError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}")
    body = ErrorResponse(error=type(exc).__name__, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        details.setdefault(field or "body", []).append(error["msg"])
    body = ErrorResponse(error="ValidationError", message="Invalid request", details=details)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    body = ErrorResponse(error="ServerError", message="Internal server error")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())


router = APIRouter(prefix="/api")

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


# Voter endpoints

@router.post("/login", response_model=VoterLoginResponse, responses={401: {"model": ErrorResponse}, **ERROR_RESPONSES})
@limiter.limit(login_rate_limit)
async def voter_login(
    request: Request,
    body: VoterLoginRequest,
    credentials: CredentialStore = Depends(get_credentials),
) -> VoterLoginResponse:
    """Authenticate a voter and return their summary."""
    try:
        voter = await credentials.verify_voter(body.voter_id, body.password)
    except BallotError:
        login_attempts.labels(role="voter", result="rejected").inc()
        raise

    login_attempts.labels(role="voter", result="accepted").inc()
    return VoterLoginResponse(voter=VoterOut(**voter.to_dict()))


@router.get("/candidates", response_model=List[CandidateOut], responses=ERROR_RESPONSES)
async def list_candidates(store: ElectionStore = Depends(get_store)):
    """List candidates sorted by name."""
    candidates = await store.list_candidates()
    return [CandidateOut(**candidate.to_dict()) for candidate in candidates]


@router.post(
    "/vote",
    response_model=MessageResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown voter or candidate"},
        409: {"model": ErrorResponse, "description": "Voter has already voted"},
        429: {"description": "Rate limit exceeded"},
        **ERROR_RESPONSES,
    },
)
@limiter.limit(vote_rate_limit)
async def cast_vote(
    request: Request,
    vote: VoteRequest,
    voting: VoteCastingService = Depends(get_voting),
) -> MessageResponse:
    """
    Cast a vote.

    - **voterId**: Voter identifier
    - **candidateId**: Candidate ID

    Exactly one vote per voter is ever committed; later attempts answer 409.
    """
    try:
        outcome = await voting.cast_vote(vote.voter_id, vote.candidate_id)
    except BallotError as e:
        votes_cast.labels(outcome=type(e).__name__).inc()
        raise

    votes_cast.labels(outcome=outcome.value).inc()
    if outcome is not CastOutcome.COMMITTED:
        raise outcome.to_error()

    return MessageResponse(message="Vote cast successfully")


@router.get("/results", response_model=List[TallyEntryOut], responses=ERROR_RESPONSES)
async def get_results(tally: TallyEngine = Depends(get_tally)):
    """Vote counts per candidate, highest first, ties by name."""
    results = await tally.compute_results()
    return [TallyEntryOut(**entry.to_dict()) for entry in results]


# Admin endpoints

@router.post("/admin/login", response_model=AdminLoginResponse, responses={401: {"model": ErrorResponse}, **ERROR_RESPONSES})
@limiter.limit(login_rate_limit)
async def admin_login(
    request: Request,
    body: AdminLoginRequest,
    credentials: CredentialStore = Depends(get_credentials),
) -> AdminLoginResponse:
    try:
        admin = await credentials.verify_admin(body.username, body.password)
    except BallotError:
        login_attempts.labels(role="admin", result="rejected").inc()
        raise

    login_attempts.labels(role="admin", result="accepted").inc()
    return AdminLoginResponse(admin=AdminOut(username=admin.username))


@router.get("/admin/voters", response_model=List[VoterOut], responses=ERROR_RESPONSES)
async def list_voters(store: ElectionStore = Depends(get_store)):
    voters = await store.list_voters()
    return [VoterOut(**voter.to_dict()) for voter in voters]


@router.post(
    "/admin/voters",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Voter ID already exists"}, **ERROR_RESPONSES},
)
async def add_voter(body: AddVoterRequest, store: ElectionStore = Depends(get_store)):
    await store.add_voter(body.id, body.name, body.password)
    admin_actions.labels(action="add_voter").inc()
    return MessageResponse(message="Voter added successfully")


@router.delete(
    "/admin/voters/{voter_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "Voter not found"}, **ERROR_RESPONSES},
)
async def remove_voter(voter_id: str, store: ElectionStore = Depends(get_store)):
    await store.remove_voter(voter_id)
    admin_actions.labels(action="remove_voter").inc()
    return MessageResponse(message="Voter removed successfully")


@router.post(
    "/admin/candidates",
    response_model=CandidateOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def add_candidate(body: AddCandidateRequest, store: ElectionStore = Depends(get_store)):
    candidate = await store.add_candidate(body.name, body.party)
    admin_actions.labels(action="add_candidate").inc()
    return CandidateOut(**candidate.to_dict())


@router.delete(
    "/admin/candidates/{candidate_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "Candidate not found"}, **ERROR_RESPONSES},
)
async def remove_candidate(
    candidate_id: int = Path(..., gt=0, le=MAX_CANDIDATE_ID),
    store: ElectionStore = Depends(get_store),
):
    await store.remove_candidate(candidate_id)
    admin_actions.labels(action="remove_candidate").inc()
    return MessageResponse(message="Candidate removed successfully")


@router.post("/admin/reset", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def reset_election(store: ElectionStore = Depends(get_store)):
    await store.reset_election()
    admin_actions.labels(action="reset").inc()
    return MessageResponse(message="Election reset successfully")


# Service endpoints

@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "Service unhealthy"}},
)
async def health_check(request: Request) -> JSONResponse:
    """Check health of the service and its database."""
    database: Optional[Database] = getattr(request.app.state, "database", None)
    healthy = database is not None and await database.check_health()

    response = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        services={"postgresql": "connected" if healthy else "disconnected"},
        timestamp=datetime.utcnow()
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json")
    )


@router.get("")
async def api_info(request: Request):
    """API information."""
    config: Settings = request.app.state.settings
    return {
        "service": config.SERVICE_NAME,
        "version": config.API_VERSION,
        "status": "running",
        "endpoints": {
            "login": "/api/login",
            "candidates": "/api/candidates",
            "vote": "/api/vote",
            "results": "/api/results",
            "admin": "/api/admin",
            "health": "/api/health",
            "metrics": "/metrics"
        }
    }


async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


async def prometheus_middleware(request: Request, call_next):
    """Middleware to track request duration."""
    start = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    request_duration.labels(
        method=request.method,
        endpoint=getattr(route, "path", request.url.path),
        status=response.status_code
    ).observe(time.perf_counter() - start)
    return response


def create_app(config: Optional[Settings] = None, use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to run with; defaults to the environment settings
        use_lifespan: open the database on startup; tests that inject their
            own services pass False

    Returns:
        Configured FastAPI app
    """
    config = config or settings
    app = FastAPI(
        title="Ballot API",
        description="Voter login, one-vote-per-voter casting, tallies and election administration",
        version=config.API_VERSION,
        lifespan=lifespan if use_lifespan else None
    )
    app.state.settings = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=config.CORS_ALLOW_METHODS,
        allow_headers=config.CORS_ALLOW_HEADERS,
    )
    app.middleware("http")(prometheus_middleware)

    rate_limits["login"] = config.LOGIN_RATE_LIMIT
    rate_limits["vote"] = config.VOTE_RATE_LIMIT
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(BallotError, ballot_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)
    app.add_api_route("/metrics", metrics, methods=["GET"], include_in_schema=False)

    # Mounted last so API routes take precedence over static files.
    if config.STATIC_DIR and os.path.isdir(config.STATIC_DIR):
        app.mount("/", StaticFiles(directory=config.STATIC_DIR, html=True), name="static")
        logger.info(f"Serving static files from {config.STATIC_DIR}")

    return app


app = create_app()


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "ballot_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()

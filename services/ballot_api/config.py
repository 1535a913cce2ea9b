"""Configuration management for the Ballot API service."""
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    SERVICE_NAME: str = "ballot-api"
    API_VERSION: str = "v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # PostgreSQL configuration
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "voting_system"
    POSTGRES_USER: str = "voting_user"
    POSTGRES_PASSWORD: str = "1234"

    # Connection pool and timeouts
    POSTGRES_POOL_MIN_SIZE: int = 2
    POSTGRES_POOL_MAX_SIZE: int = 10
    POSTGRES_ACQUIRE_TIMEOUT: float = 5.0
    POSTGRES_COMMAND_TIMEOUT: float = 10.0
    POSTGRES_LOCK_TIMEOUT_MS: int = 3000
    POSTGRES_STATEMENT_TIMEOUT_MS: int = 8000

    # Vote casting retry on transaction conflicts
    VOTE_MAX_RETRIES: int = 3
    VOTE_RETRY_DELAY: float = 0.05

    # Password hashing
    PASSWORD_SCHEMES: list = ["pbkdf2_sha256"]

    # Rate limiting
    LOGIN_RATE_LIMIT: str = "30/minute"
    VOTE_RATE_LIMIT: str = "60/minute"

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Static front-end
    STATIC_DIR: Optional[str] = "public"

    # First-run seed data
    SEED_ON_STARTUP: bool = True
    SEED_ADMIN_USERNAME: str = "admin"
    SEED_ADMIN_PASSWORD: str = "admin123"
    SEED_VOTER_PASSWORD: str = "password123"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def postgres_dsn(self) -> str:
        """Generate PostgreSQL connection string."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()

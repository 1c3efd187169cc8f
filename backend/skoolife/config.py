"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Skoolife"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Database
    # If database_url_override is set (e.g., for Neon with SSL), it takes precedence
    database_url_override: str | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "skoolife"
    postgres_password: str = ""
    postgres_db: str = "skoolife"

    @computed_field
    @property
    def database_url(self) -> str:
        """Get async database URL. Uses override if provided, otherwise constructs from parts."""
        if self.database_url_override:
            url = self.database_url_override
            # Replace scheme for async driver
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            elif url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+asyncpg://", 1)
            # asyncpg doesn't accept query params via URL, SSL goes through connect_args
            if "?" in url:
                url = url.split("?")[0]
            return url
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @computed_field
    @property
    def database_requires_ssl(self) -> bool:
        """Check if the database connection requires SSL (for Neon, etc.)."""
        if self.database_url_override:
            return "sslmode=require" in self.database_url_override or "ssl=require" in self.database_url_override
        return False

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Get sync database URL (for Alembic)."""
        if self.database_url_override:
            url = self.database_url_override
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            elif url.startswith("postgresql+asyncpg://"):
                url = url.replace("postgresql+asyncpg://", "postgresql://", 1)
            return url
        return f"postgresql://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    # Auth / JWT
    jwt_secret_key: str  # Required - no default, must be set in .env
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Google OAuth
    google_client_id: str

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Set to true when frontend and backend are on different domains
    # This uses samesite="none" + secure=True instead of samesite="lax"
    cookie_cross_domain: bool = False

    # Public origin of the web app, used to build invite links
    frontend_base_url: str = "http://localhost:5173"

    # Session dates/times are wall-clock values in this zone
    default_timezone: str = "Europe/Paris"

    # AWS S3 (study files)
    aws_access_key_id: str
    aws_secret_access_key: str
    aws_s3_bucket: str
    aws_s3_region: str = "eu-west-3"
    aws_s3_endpoint_url: str | None = None  # Set for MinIO/LocalStack (e.g. http://localhost:9000)
    max_upload_size_bytes: int = 20 * 1024 * 1024  # 20MB
    download_url_expiration_seconds: int = 3600

    # Session invites
    invite_lead_time_hours: int = 24

    # Stripe
    stripe_secret_key: str = ""
    stripe_product_student: str = ""
    stripe_product_major: str = ""
    stripe_portal_return_url: str = "http://localhost:5173/settings"
    subscription_cache_ttl_seconds: int = 60

    # Recurring events
    default_recurrence_weeks: int = 12
    # Longest span a single weekly series may cover
    max_recurrence_weeks: int = 52

    # Calendar import
    max_import_events: int = 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def sanitize_error(error: Exception, *, generic_message: str = "An internal error occurred.") -> str:
    """
    Return a user-safe error message.

    In development, returns the full exception string for debugging.
    In staging/production, returns a generic message to avoid leaking internals.
    """
    settings = get_settings()
    if settings.environment == "development":
        return str(error)
    return generic_message

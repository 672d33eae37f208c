"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Collaborator URLs are optional: unset means the logging fallback is used

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://regdesk:regdesk@db:5432/regdesk"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Stripe
    stripe_secret_key: str = "sk_test_placeholder"
    stripe_max_retries: int = 3
    stripe_base_delay_ms: int = 500
    stripe_max_delay_ms: int = 8_000

    # Waitlist
    waitlist_offer_hours: int = 48

    # Platform (appears on receipts as selling agent)
    platform_name: str = "RegDesk"
    platform_legal_name: str = "RegDesk AS"
    platform_org_number: str = "000000000"
    platform_website: str = "https://regdesk.example"
    platform_support_email: str = "support@regdesk.example"

    # Collaborators
    renderer_url: str | None = None
    notifications_url: str | None = None
    collaborator_timeout_seconds: float = 10.0

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()

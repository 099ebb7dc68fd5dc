"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Association Governance"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database (Turso)
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)

    # Membership authority (remote roster service). Local roster table is
    # used when no URL is configured.
    membership_authority_url: str | None = Field(default=None)
    membership_authority_token: str | None = Field(default=None)
    membership_timeout_seconds: float = Field(default=5.0, gt=0)
    membership_retry_attempts: int = Field(default=3, ge=1, le=10)
    initial_chairs: dict[str, str] = Field(
        default_factory=dict,
        description="org_id -> member_id seeded as CHAIR of the local roster at startup",
    )

    # Governance
    default_quorum_percentage: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Quorum percentage used when an organization has no rule",
    )
    audit_enabled: bool = Field(
        default=True,
        description="Persist governance events to the audit store",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

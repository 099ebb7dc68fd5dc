"""Base entity class for all domain models."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class BaseEntity(BaseModel):
    """Base class for all mutable domain entities.

    Provides:
    - Unique ID (UUID)
    - Created timestamp
    - Standard serialization config

    Append-only records (ballots, protocols) do not carry an updated_at.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_default=True,
        from_attributes=True,
    )

    id: UUID = Field(default_factory=uuid4, description="Unique entity identifier")
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When entity was created",
    )

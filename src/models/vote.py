"""Vote and ballot models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.models.base import BaseEntity, utc_now


class VoteStatus(str, Enum):
    """A vote moves OPEN -> CLOSED exactly once."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class VoteChoice(str, Enum):
    """What a member voted."""

    FOR = "FOR"
    AGAINST = "AGAINST"
    ABSTAIN = "ABSTAIN"


class VoteChannel(str, Enum):
    """Pathway a ballot arrived through."""

    LIVE = "LIVE"
    REMOTE = "REMOTE"


class Vote(BaseEntity):
    """A vote on one agenda item."""

    org_id: str = Field(min_length=1)
    meeting_id: UUID
    agenda_item_id: UUID
    resolution_id: UUID | None = Field(default=None)
    status: VoteStatus = Field(default=VoteStatus.OPEN)
    opened_at: datetime = Field(default_factory=utc_now)
    closed_at: datetime | None = Field(default=None)
    closed_by: str | None = Field(default=None)

    @property
    def is_open(self) -> bool:
        """Check if ballots may still be cast."""
        return self.status is VoteStatus.OPEN


class Ballot(BaseModel):
    """One member's recorded choice on one vote.

    Ballots are never updated or deleted, so the model is frozen.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    vote_id: UUID
    member_id: str = Field(min_length=1)
    choice: VoteChoice
    channel: VoteChannel
    cast_at: datetime = Field(default_factory=utc_now)


class CastEligibility(BaseModel):
    """Answer of the can-cast predicate, used to gate voting UIs."""

    allowed: bool
    reason: str | None = Field(
        default=None,
        description="Error code explaining why casting is refused",
    )

"""Meeting attendance records."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.base import utc_now
from src.models.vote import VoteChannel


class AttendanceMode(str, Enum):
    """How a member takes part in a meeting. Modes are mutually exclusive."""

    IN_PERSON = "IN_PERSON"
    WRITTEN_PROXY = "WRITTEN_PROXY"
    REMOTE = "REMOTE"

    @property
    def channel(self) -> VoteChannel:
        """Ballot channel this mode makes a member eligible for."""
        if self is AttendanceMode.REMOTE:
            return VoteChannel.REMOTE
        return VoteChannel.LIVE


def modes_for_channel(channel: VoteChannel) -> tuple[AttendanceMode, ...]:
    """Attendance modes that grant eligibility for a ballot channel."""
    return tuple(mode for mode in AttendanceMode if mode.channel is channel)


class AttendanceRecord(BaseModel):
    """A member's registered participation in one meeting."""

    model_config = ConfigDict(from_attributes=True)

    meeting_id: UUID
    member_id: str = Field(min_length=1)
    mode: AttendanceMode
    registered_at: datetime = Field(default_factory=utc_now)

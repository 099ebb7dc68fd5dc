"""Meeting aggregate: meetings, agenda items, resolutions and attachments."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field

from src.models.base import BaseEntity


class MeetingType(str, Enum):
    """Kind of meeting; decides whose presence counts toward quorum."""

    GA = "GA"
    GA_EXTRAORDINARY = "GA_EXTRAORDINARY"
    BOARD = "BOARD"

    @property
    def board_only(self) -> bool:
        """Board meetings count only board-level members as eligible."""
        return self is MeetingType.BOARD


class MeetingStatus(str, Enum):
    """Lifecycle status of a meeting."""

    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


LOCKED_MEETING_STATUSES = frozenset({MeetingStatus.COMPLETED, MeetingStatus.CANCELLED})


class ResolutionStatus(str, Enum):
    """Status of a draft decision as supplied by the agenda store."""

    DRAFT = "DRAFT"
    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Meeting(BaseEntity):
    """A formal meeting of an organization.

    Owns agenda items and attendance records. Once COMPLETED the meeting
    no longer accepts votes, ballots or attendance changes.
    """

    org_id: str = Field(min_length=1, description="Owning organization")
    title: str = Field(min_length=1, max_length=500, description="Meeting title")
    scheduled_at: datetime = Field(description="When the meeting takes place")
    location: str | None = Field(default=None, max_length=500)
    meeting_type: MeetingType = Field(default=MeetingType.GA)
    status: MeetingStatus = Field(default=MeetingStatus.SCHEDULED)
    published_at: datetime | None = Field(default=None)

    @property
    def is_locked(self) -> bool:
        """Check if the meeting is closed for voting purposes."""
        return self.status in LOCKED_MEETING_STATUSES


class Resolution(BaseEntity):
    """A proposed decision linked to an agenda item."""

    org_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=500)
    text: str | None = Field(default=None, description="Full resolution text")
    status: ResolutionStatus = Field(default=ResolutionStatus.PROPOSED)


class Attachment(BaseEntity):
    """File metadata for an agenda item. Bytes live in external storage."""

    agenda_item_id: UUID
    file_name: str = Field(min_length=1, max_length=255)
    storage_path: str = Field(min_length=1)
    mime_type: str | None = Field(default=None)
    size_bytes: int | None = Field(default=None, ge=0)


class AgendaItem(BaseEntity):
    """One numbered discussion item of a meeting.

    item_no is unique within the meeting and defines protocol order.
    """

    meeting_id: UUID
    item_no: int = Field(ge=1, description="Position in the agenda")
    title: str = Field(min_length=1, max_length=500)
    summary: str | None = Field(default=None, max_length=2000)
    details: str | None = Field(default=None)
    resolution_id: UUID | None = Field(default=None)

"""Typed governance events.

Every event names the organization and meeting it belongs to, so the
audit trail of a meeting can be read back in one query:
- VoteOpened / VoteClosed: vote lifecycle
- BallotCast: a ballot was recorded (choice included)
- AttendanceRegistered / AttendanceWithdrawn: attendance changes
- ProtocolDraftSaved / ProtocolFinalized: protocol versions stored
- ProtocolDocumentAttached: rendered document reference recorded
"""

from uuid import UUID

from pydantic import Field

from src.events.base import Event
from src.models.attendance import AttendanceMode
from src.models.vote import VoteChannel, VoteChoice


class GovernanceEvent(Event):
    """Common fields of all governance events."""

    org_id: str = Field(description="Owning organization")
    meeting_id: UUID = Field(description="Meeting the action belongs to")
    actor_id: str | None = Field(
        default=None, description="Member who performed the action"
    )


class VoteOpened(GovernanceEvent):
    """Emitted when a vote is opened on an agenda item."""

    aggregate_type: str = "Vote"
    agenda_item_id: UUID


class BallotCast(GovernanceEvent):
    """Emitted after a ballot is stored."""

    aggregate_type: str = "Vote"
    ballot_id: UUID
    choice: VoteChoice
    channel: VoteChannel


class VoteClosed(GovernanceEvent):
    """Emitted when a vote moves OPEN -> CLOSED."""

    aggregate_type: str = "Vote"
    ballot_count: int = Field(default=0, ge=0)


class AttendanceRegistered(GovernanceEvent):
    """Emitted when attendance is created or its mode switched."""

    aggregate_type: str = "Meeting"
    member_id: str
    mode: AttendanceMode
    switched: bool = Field(default=False, description="Mode changed, not created")


class AttendanceWithdrawn(GovernanceEvent):
    aggregate_type: str = "Meeting"
    member_id: str


class ProtocolDraftSaved(GovernanceEvent):
    aggregate_type: str = "MeetingProtocol"
    version: int
    snapshot_hash: str


class ProtocolFinalized(GovernanceEvent):
    """Emitted once per meeting when its protocol becomes FINAL."""

    aggregate_type: str = "MeetingProtocol"
    protocol_number: int
    version: int
    snapshot_hash: str


class ProtocolDocumentAttached(GovernanceEvent):
    aggregate_type: str = "MeetingProtocol"
    document_ref: str

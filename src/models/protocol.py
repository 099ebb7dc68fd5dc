"""Protocol snapshot and meeting protocol models.

A ProtocolSnapshot is a frozen, point-in-time read of a meeting. A
MeetingProtocol is a stored snapshot: DRAFT rows may be superseded by
newer versions, a FINAL row is the legal record and never changes.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from src.models.meeting import MeetingStatus, MeetingType, ResolutionStatus
from src.models.vote import VoteStatus


class Tally(BaseModel):
    """Counts of FOR / AGAINST / ABSTAIN ballots."""

    model_config = ConfigDict(frozen=True)

    votes_for: int = Field(default=0, ge=0)
    votes_against: int = Field(default=0, ge=0)
    votes_abstain: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        """All ballots counted in this tally."""
        return self.votes_for + self.votes_against + self.votes_abstain

    def __add__(self, other: "Tally") -> "Tally":
        return Tally(
            votes_for=self.votes_for + other.votes_for,
            votes_against=self.votes_against + other.votes_against,
            votes_abstain=self.votes_abstain + other.votes_abstain,
        )


class VoteOutcome(str, Enum):
    """Simple-majority result of a vote."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NO_VOTES = "NO_VOTES"


class VoteTallies(BaseModel):
    """Per-channel and combined tallies of one vote."""

    model_config = ConfigDict(frozen=True)

    vote_id: UUID
    live: Tally = Field(default_factory=Tally)
    remote: Tally = Field(default_factory=Tally)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def combined(self) -> Tally:
        """Element-wise sum of the live and remote tallies."""
        return self.live + self.remote


class AttendanceSummary(BaseModel):
    """Head counts by attendance mode."""

    model_config = ConfigDict(frozen=True)

    present_in_person: int = Field(default=0, ge=0)
    present_written: int = Field(default=0, ge=0)
    present_remote: int = Field(default=0, ge=0)
    total_active_members: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def present_total(self) -> int:
        """Members present in any mode."""
        return self.present_in_person + self.present_written + self.present_remote


class QuorumOutcome(BaseModel):
    """Result of comparing attendance against the quorum rule."""

    model_config = ConfigDict(frozen=True)

    present_in_person: int = Field(ge=0)
    present_written: int = Field(ge=0)
    present_remote: int = Field(ge=0)
    present_total: int = Field(ge=0)
    total_eligible: int = Field(ge=0)
    required_count: int = Field(ge=0)
    has_quorum: bool
    quorum_percentage: float = Field(
        ge=0.0, description="Share of eligible members present, in percent"
    )

    def attendance(self) -> AttendanceSummary:
        """Attendance part of the outcome."""
        return AttendanceSummary(
            present_in_person=self.present_in_person,
            present_written=self.present_written,
            present_remote=self.present_remote,
            total_active_members=self.total_eligible,
        )


class SnapshotMeeting(BaseModel):
    """Meeting header as captured in a snapshot."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    org_id: str
    title: str
    scheduled_at: datetime
    location: str | None = None
    meeting_type: MeetingType
    status: MeetingStatus
    published_at: datetime | None = None


class SnapshotResolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    title: str
    text: str | None = None
    status: ResolutionStatus


class SnapshotVote(BaseModel):
    """Vote state and tallies at snapshot time."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    status: VoteStatus
    opened_at: datetime
    closed_at: datetime | None = None
    tallies: Tally
    live_tallies: Tally
    remote_tallies: Tally
    outcome: VoteOutcome | None = Field(
        default=None, description="Only set once the vote is closed"
    )


class SnapshotAttachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    file_name: str
    storage_path: str
    mime_type: str | None = None
    size_bytes: int | None = None


class SnapshotAgendaItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_no: int
    title: str
    summary: str | None = None
    details: str | None = None
    resolution: SnapshotResolution | None = None
    vote: SnapshotVote | None = None
    attachments: tuple[SnapshotAttachment, ...] = ()


class ProtocolSnapshot(BaseModel):
    """Immutable point-in-time read of a meeting for its protocol."""

    model_config = ConfigDict(frozen=True)

    meeting: SnapshotMeeting
    attendance: AttendanceSummary
    quorum: QuorumOutcome
    agenda: tuple[SnapshotAgendaItem, ...] = ()
    generated_at: datetime


class ProtocolStatus(str, Enum):
    """DRAFT rows are regenerable; FINAL is terminal."""

    DRAFT = "DRAFT"
    FINAL = "FINAL"


class RenderedDocument(BaseModel):
    """Reference to the rendered protocol document held by external storage."""

    model_config = ConfigDict(frozen=True)

    document_ref: str = Field(min_length=1)
    attached_at: datetime
    attached_by: str | None = None


class MeetingProtocol(BaseModel):
    """A stored protocol version for a meeting."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    org_id: str
    meeting_id: UUID
    protocol_number: int | None = Field(
        default=None, description="Assigned on finalization only"
    )
    version: int = Field(ge=1)
    status: ProtocolStatus
    snapshot: ProtocolSnapshot
    snapshot_hash: str
    created_by: str | None = None
    created_at: datetime
    finalized_by: str | None = None
    finalized_at: datetime | None = None
    document: RenderedDocument | None = None

    @model_validator(mode="after")
    def number_only_when_final(self) -> "MeetingProtocol":
        """FINAL rows carry their protocol number; DRAFT rows have none."""
        if (self.protocol_number is not None) != (self.status is ProtocolStatus.FINAL):
            msg = "protocol_number is set exactly when the protocol is FINAL"
            raise ValueError(msg)
        return self

    @property
    def is_final(self) -> bool:
        return self.status is ProtocolStatus.FINAL

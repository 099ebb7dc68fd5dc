"""Typed governance outcomes.

Eligibility and state-machine violations are expected results that
callers branch on, so each carries a stable machine-readable code.
Storage failures are not represented here; they propagate untouched.
"""

from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from src.models.protocol import MeetingProtocol


class GovernanceError(Exception):
    """Base class for all governance outcomes."""

    code = "GOVERNANCE_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFoundError(GovernanceError):
    code = "NOT_FOUND"


class VoteNotFoundError(NotFoundError):
    code = "VOTE_NOT_FOUND"

    def __init__(self, vote_id: UUID):
        super().__init__(f"Vote {vote_id} not found")
        self.vote_id = vote_id


class MeetingNotFoundError(NotFoundError):
    code = "MEETING_NOT_FOUND"

    def __init__(self, meeting_id: UUID):
        super().__init__(f"Meeting {meeting_id} not found")
        self.meeting_id = meeting_id


class AgendaItemNotFoundError(NotFoundError):
    code = "AGENDA_ITEM_NOT_FOUND"

    def __init__(self, agenda_item_id: UUID):
        super().__init__(f"Agenda item {agenda_item_id} not found")
        self.agenda_item_id = agenda_item_id


class ProtocolNotFoundError(NotFoundError):
    code = "PROTOCOL_NOT_FOUND"

    def __init__(self, protocol_id: UUID):
        super().__init__(f"Protocol {protocol_id} not found")
        self.protocol_id = protocol_id


class NotEligibleError(GovernanceError):
    """Member lacks an active membership with voting rights."""

    code = "NOT_ELIGIBLE"


class NotAuthorizedError(GovernanceError):
    """Caller lacks chair/board authority."""

    code = "NOT_AUTHORIZED"


class AlreadyVotedError(GovernanceError):
    """A ballot already exists for this (vote, member)."""

    code = "ALREADY_VOTED"

    def __init__(self, vote_id: UUID, member_id: str):
        super().__init__(f"Member {member_id} already voted on {vote_id}")
        self.vote_id = vote_id
        self.member_id = member_id


class VoteClosedError(GovernanceError):
    code = "VOTE_CLOSED"

    def __init__(self, vote_id: UUID):
        super().__init__(f"Vote {vote_id} is closed")
        self.vote_id = vote_id


class ChannelMismatchError(GovernanceError):
    """Ballot channel contradicts the member's attendance mode."""

    code = "CHANNEL_MISMATCH"


class AttendanceConflictError(GovernanceError):
    """Attendance change would contradict ballots already cast."""

    code = "ATTENDANCE_CONFLICT"


class MeetingLockedError(GovernanceError):
    """Meeting is COMPLETED or CANCELLED."""

    code = "MEETING_LOCKED"


class DuplicateVoteError(GovernanceError):
    code = "VOTE_ALREADY_EXISTS"


class VotesStillOpenError(GovernanceError):
    code = "VOTE_NOT_CLOSED"

    def __init__(self, open_vote_ids: list[UUID]):
        super().__init__(f"{len(open_vote_ids)} vote(s) still open")
        self.open_vote_ids = open_vote_ids


class AlreadyFinalizedError(GovernanceError):
    """A FINAL protocol exists; carries it so callers can surface it."""

    code = "ALREADY_FINALIZED"

    def __init__(self, protocol: "MeetingProtocol"):
        super().__init__(
            f"Meeting {protocol.meeting_id} already has final protocol "
            f"#{protocol.protocol_number}"
        )
        self.protocol = protocol


class ProtocolNotFinalError(GovernanceError):
    code = "PROTOCOL_NOT_FINAL"


class DocumentAlreadyAttachedError(GovernanceError):
    code = "DOCUMENT_ALREADY_ATTACHED"


class QuorumUnavailableError(GovernanceError):
    """Membership counts could not be obtained."""

    code = "QUORUM_UNAVAILABLE"

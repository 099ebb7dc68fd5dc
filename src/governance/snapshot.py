"""Protocol snapshot builder.

Read-only: assembles the meeting header, attendance, quorum and the
agenda (resolutions, vote tallies, attachments) into one immutable
ProtocolSnapshot. Nothing is persisted here.
"""

from uuid import UUID

from src.governance.errors import MeetingNotFoundError
from src.governance.quorum import QuorumCalculator
from src.governance.tally import TallyReconciler, majority_outcome
from src.models.base import utc_now
from src.models.meeting import AgendaItem, Attachment, Meeting, Resolution
from src.models.protocol import (
    ProtocolSnapshot,
    SnapshotAgendaItem,
    SnapshotAttachment,
    SnapshotMeeting,
    SnapshotResolution,
    SnapshotVote,
)
from src.models.vote import Vote
from src.repositories.meeting_repo import MeetingRepository
from src.repositories.vote_repo import VoteRepository


class ProtocolSnapshotBuilder:
    """Builds point-in-time protocol snapshots of a meeting."""

    def __init__(
        self,
        meetings: MeetingRepository,
        votes: VoteRepository,
        tally: TallyReconciler,
        quorum: QuorumCalculator,
    ):
        self._meetings = meetings
        self._votes = votes
        self._tally = tally
        self._quorum = quorum

    async def build(self, meeting_id: UUID) -> ProtocolSnapshot:
        """Snapshot the meeting's current state.

        Raises:
            MeetingNotFoundError: Unknown meeting
            QuorumUnavailableError: Membership counts unavailable
        """
        meeting = await self._meetings.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)

        items = await self._meetings.list_agenda_items(meeting.id)
        votes = {
            vote.agenda_item_id: vote
            for vote in await self._votes.list_votes_for_meeting(meeting.id)
        }
        resolutions = await self._meetings.get_resolutions(
            [item.resolution_id for item in items if item.resolution_id]
        )
        attachments = await self._meetings.list_attachments(meeting.id)

        # Attendance and quorum are computed once for the whole meeting
        quorum = await self._quorum.calculate(meeting)

        agenda = []
        for item in items:
            vote = votes.get(item.id)
            agenda.append(
                SnapshotAgendaItem(
                    item_no=item.item_no,
                    title=item.title,
                    summary=item.summary,
                    details=item.details,
                    resolution=_resolution(item, resolutions),
                    vote=await self._snapshot_vote(vote) if vote else None,
                    attachments=tuple(
                        _attachment(a) for a in attachments.get(item.id, [])
                    ),
                )
            )

        return ProtocolSnapshot(
            meeting=_meeting_header(meeting),
            attendance=quorum.attendance(),
            quorum=quorum,
            agenda=tuple(agenda),
            generated_at=utc_now(),
        )

    async def _snapshot_vote(self, vote: Vote) -> SnapshotVote:
        tallies = await self._tally.tally(vote.id)
        return SnapshotVote(
            id=vote.id,
            status=vote.status,
            opened_at=vote.opened_at,
            closed_at=vote.closed_at,
            tallies=tallies.combined,
            live_tallies=tallies.live,
            remote_tallies=tallies.remote,
            outcome=None if vote.is_open else majority_outcome(tallies.combined),
        )


def _meeting_header(meeting: Meeting) -> SnapshotMeeting:
    return SnapshotMeeting(
        id=meeting.id,
        org_id=meeting.org_id,
        title=meeting.title,
        scheduled_at=meeting.scheduled_at,
        location=meeting.location,
        meeting_type=meeting.meeting_type,
        status=meeting.status,
        published_at=meeting.published_at,
    )


def _resolution(
    item: AgendaItem,
    resolutions: dict[UUID, Resolution],
) -> SnapshotResolution | None:
    resolution = resolutions.get(item.resolution_id) if item.resolution_id else None
    if resolution is None:
        return None
    return SnapshotResolution(
        id=resolution.id,
        title=resolution.title,
        text=resolution.text,
        status=resolution.status,
    )


def _attachment(attachment: Attachment) -> SnapshotAttachment:
    return SnapshotAttachment(
        id=attachment.id,
        file_name=attachment.file_name,
        storage_path=attachment.storage_path,
        mime_type=attachment.mime_type,
        size_bytes=attachment.size_bytes,
    )

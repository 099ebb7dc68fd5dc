"""Vote ledger: opening, casting on and closing votes.

A vote moves OPEN -> CLOSED exactly once. Ballots are written by a
single conditional insert guarded by UNIQUE(vote_id, member_id), so a
member's ballot is stored exactly once no matter how many concurrent
submissions arrive. The same precondition routine backs both
cast_ballot and can_cast_vote.
"""

from uuid import UUID

import structlog

from src.events.types import BallotCast, VoteClosed, VoteOpened
from src.governance.audit import AuditTrail
from src.governance.eligibility import (
    VotingEligibility,
    require_chair,
    require_voting_rights,
)
from src.governance.errors import (
    AgendaItemNotFoundError,
    AlreadyVotedError,
    ChannelMismatchError,
    DuplicateVoteError,
    GovernanceError,
    MeetingLockedError,
    MeetingNotFoundError,
    VoteClosedError,
    VoteNotFoundError,
)
from src.models.attendance import modes_for_channel
from src.models.base import utc_now
from src.models.meeting import Meeting
from src.models.vote import (
    Ballot,
    CastEligibility,
    Vote,
    VoteChannel,
    VoteChoice,
    VoteStatus,
)
from src.repositories.attendance_repo import AttendanceRepository
from src.repositories.meeting_repo import MeetingRepository
from src.repositories.vote_repo import VoteRepository

logger = structlog.get_logger()


class VoteLedger:
    """Owns the OPEN -> CLOSED vote state machine and ballot recording."""

    def __init__(
        self,
        votes: VoteRepository,
        meetings: MeetingRepository,
        attendance: AttendanceRepository,
        eligibility: VotingEligibility,
        audit: AuditTrail | None = None,
    ):
        """Initialize the ledger.

        Args:
            votes: Vote and ballot storage
            meetings: Agenda store
            attendance: Attendance registry storage
            eligibility: Membership authority answering standing lookups
            audit: Optional audit trail for emitted events
        """
        self._votes = votes
        self._meetings = meetings
        self._attendance = attendance
        self._eligibility = eligibility
        self._audit = audit or AuditTrail(None)

    async def get_vote(self, vote_id: UUID) -> Vote:
        """Get a vote or raise VoteNotFoundError."""
        vote = await self._votes.get_vote(vote_id)
        if vote is None:
            raise VoteNotFoundError(vote_id)
        return vote

    async def open_vote(self, agenda_item_id: UUID, actor_id: str) -> Vote:
        """Open the vote of an agenda item.

        Raises:
            AgendaItemNotFoundError: Unknown agenda item
            NotAuthorizedError: Actor lacks chair/board authority
            MeetingLockedError: Meeting is COMPLETED or CANCELLED
            DuplicateVoteError: The item already has a vote
        """
        item = await self._meetings.get_agenda_item(agenda_item_id)
        if item is None:
            raise AgendaItemNotFoundError(agenda_item_id)
        meeting = await self._require_meeting(item.meeting_id)
        await require_chair(self._eligibility, meeting.org_id, actor_id)
        if meeting.is_locked:
            raise MeetingLockedError(f"Meeting {meeting.id} is {meeting.status.value}")

        vote = Vote(
            org_id=meeting.org_id,
            meeting_id=meeting.id,
            agenda_item_id=item.id,
            resolution_id=item.resolution_id,
        )
        if not await self._votes.create_vote(vote):
            current = await self._require_meeting(meeting.id)
            if current.is_locked:
                raise MeetingLockedError(f"Meeting {current.id} is {current.status.value}")
            raise DuplicateVoteError(f"Agenda item {item.id} already has a vote")

        logger.info(
            "vote opened",
            vote_id=str(vote.id),
            meeting_id=str(meeting.id),
            item_no=item.item_no,
            actor_id=actor_id,
        )
        await self._audit.record(
            VoteOpened(
                aggregate_id=vote.id,
                org_id=vote.org_id,
                meeting_id=vote.meeting_id,
                actor_id=actor_id,
                agenda_item_id=item.id,
            )
        )
        return vote

    async def _require_meeting(self, meeting_id: UUID) -> Meeting:
        meeting = await self._meetings.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        return meeting

    async def _check_cast(self, vote: Vote, member_id: str, channel: VoteChannel) -> None:
        """Evaluate every casting precondition in order.

        Raises:
            VoteClosedError: Vote CLOSED or meeting locked
            NotEligibleError: No active membership with voting rights
            ChannelMismatchError: Attendance mode does not grant the channel
            AlreadyVotedError: Member already has a ballot on the vote
        """
        meeting = await self._meetings.get_meeting(vote.meeting_id)
        if not vote.is_open or meeting is None or meeting.is_locked:
            raise VoteClosedError(vote.id)

        await require_voting_rights(self._eligibility, vote.org_id, member_id)

        record = await self._attendance.get(vote.meeting_id, member_id)
        if record is None:
            raise ChannelMismatchError(
                f"Member {member_id} has no attendance registered for this meeting"
            )
        if record.mode.channel is not channel:
            raise ChannelMismatchError(
                f"{record.mode.value} attendance does not allow {channel.value} ballots"
            )

        if await self._votes.get_ballot(vote.id, member_id) is not None:
            raise AlreadyVotedError(vote.id, member_id)

    async def can_cast_vote(
        self,
        vote_id: UUID,
        member_id: str,
        channel: VoteChannel,
    ) -> CastEligibility:
        """Answer whether cast_ballot would accept this ballot right now.

        Read-only. Uses the same checks as cast_ballot.
        """
        try:
            vote = await self.get_vote(vote_id)
            await self._check_cast(vote, member_id, channel)
        except GovernanceError as e:
            return CastEligibility(allowed=False, reason=e.code)
        return CastEligibility(allowed=True)

    async def cast_ballot(
        self,
        vote_id: UUID,
        member_id: str,
        choice: VoteChoice,
        channel: VoteChannel,
    ) -> Ballot:
        """Record a member's ballot exactly once.

        Raises:
            VoteNotFoundError, VoteClosedError, NotEligibleError,
            ChannelMismatchError, AlreadyVotedError
        """
        vote = await self.get_vote(vote_id)
        await self._check_cast(vote, member_id, channel)

        ballot = Ballot(
            vote_id=vote.id,
            member_id=member_id,
            choice=choice,
            channel=channel,
        )
        stored = await self._votes.insert_ballot(
            ballot, vote.meeting_id, modes_for_channel(channel)
        )
        if not stored:
            # A concurrent request changed state between the checks and the insert
            await self._explain_refused_ballot(vote.id, member_id)

        logger.info(
            "ballot cast",
            vote_id=str(vote.id),
            member_id=member_id,
            channel=channel.value,
        )
        await self._audit.record(
            BallotCast(
                aggregate_id=vote.id,
                org_id=vote.org_id,
                meeting_id=vote.meeting_id,
                actor_id=member_id,
                ballot_id=ballot.id,
                choice=choice,
                channel=channel,
            )
        )
        return ballot

    async def _explain_refused_ballot(self, vote_id: UUID, member_id: str) -> None:
        """Raise the outcome that made the atomic insert refuse a ballot."""
        if await self._votes.get_ballot(vote_id, member_id) is not None:
            raise AlreadyVotedError(vote_id, member_id)
        vote = await self.get_vote(vote_id)
        meeting = await self._meetings.get_meeting(vote.meeting_id)
        if not vote.is_open or meeting is None or meeting.is_locked:
            raise VoteClosedError(vote_id)
        raise ChannelMismatchError(f"Attendance of {member_id} changed before the ballot")

    async def close_vote(self, vote_id: UUID, actor_id: str) -> Vote:
        """Close a vote and settle its resolution. Closing a CLOSED vote is a no-op.

        Raises:
            VoteNotFoundError: Unknown vote
            NotAuthorizedError: Actor lacks chair/board authority
        """
        vote = await self.get_vote(vote_id)
        await require_chair(self._eligibility, vote.org_id, actor_id)
        if not vote.is_open:
            return vote

        if await self._votes.close_vote(vote.id, utc_now(), actor_id):
            ballot_count = await self._votes.count_ballots(vote.id)
            logger.info(
                "vote closed",
                vote_id=str(vote.id),
                ballot_count=ballot_count,
                actor_id=actor_id,
            )
            await self._audit.record(
                VoteClosed(
                    aggregate_id=vote.id,
                    org_id=vote.org_id,
                    meeting_id=vote.meeting_id,
                    actor_id=actor_id,
                    ballot_count=ballot_count,
                )
            )
        return await self.get_vote(vote.id)

    async def close_all_votes(self, meeting_id: UUID, actor_id: str) -> int:
        """Close every OPEN vote of a meeting.

        Returns:
            Number of votes this call closed
        """
        meeting = await self._require_meeting(meeting_id)
        await require_chair(self._eligibility, meeting.org_id, actor_id)

        closed = 0
        for vote in await self._votes.list_votes_for_meeting(meeting_id, VoteStatus.OPEN):
            if await self._votes.close_vote(vote.id, utc_now(), actor_id):
                closed += 1
                await self._audit.record(
                    VoteClosed(
                        aggregate_id=vote.id,
                        org_id=vote.org_id,
                        meeting_id=vote.meeting_id,
                        actor_id=actor_id,
                        ballot_count=await self._votes.count_ballots(vote.id),
                    )
                )
        logger.info("closed meeting votes", meeting_id=str(meeting_id), closed=closed)
        return closed

    async def list_votes(self, meeting_id: UUID) -> list[Vote]:
        await self._require_meeting(meeting_id)
        return await self._votes.list_votes_for_meeting(meeting_id)

    async def get_member_ballot(self, vote_id: UUID, member_id: str) -> Ballot | None:
        """Get the member's ballot on a vote, if cast."""
        vote = await self.get_vote(vote_id)
        return await self._votes.get_ballot(vote.id, member_id)

    async def pending_votes(self, meeting_id: UUID, member_id: str) -> list[Vote]:
        """OPEN votes of a meeting the member has not voted on yet."""
        await self._require_meeting(meeting_id)
        open_votes = await self._votes.list_votes_for_meeting(meeting_id, VoteStatus.OPEN)
        voted = await self._votes.voted_vote_ids(member_id, [v.id for v in open_votes])
        return [v for v in open_votes if v.id not in voted]

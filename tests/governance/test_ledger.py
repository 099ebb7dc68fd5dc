"""Tests for VoteLedger."""

import asyncio
from uuid import uuid4

import pytest
from starlette.datastructures import State

from src.governance.errors import (
    AlreadyVotedError,
    ChannelMismatchError,
    DuplicateVoteError,
    MeetingLockedError,
    NotAuthorizedError,
    NotEligibleError,
    VoteClosedError,
    VoteNotFoundError,
)
from src.models.attendance import AttendanceMode
from src.models.meeting import AgendaItem, Meeting, MeetingStatus, ResolutionStatus
from src.models.membership import MembershipStatus, Membership
from src.models.vote import VoteChannel, VoteChoice, VoteStatus
from tests.conftest import CHAIR_ID, MEMBER_IDS, ORG_ID

MEMBER = MEMBER_IDS[0]


async def attend(state: State, meeting: Meeting, member_id: str, mode: AttendanceMode) -> None:
    await state.attendance.register_attendance(meeting.id, member_id, mode)


class TestOpenVote:
    """Tests for opening votes."""

    async def test_open_vote_creates_open_vote(self, state: State, agenda_item: AgendaItem):
        vote = await state.ledger.open_vote(agenda_item.id, CHAIR_ID)

        assert vote.status is VoteStatus.OPEN
        assert vote.org_id == ORG_ID
        assert vote.resolution_id == agenda_item.resolution_id
        stored = await state.ledger.get_vote(vote.id)
        assert stored.agenda_item_id == agenda_item.id

    async def test_second_vote_on_item_is_rejected(self, state: State, agenda_item: AgendaItem):
        await state.ledger.open_vote(agenda_item.id, CHAIR_ID)

        with pytest.raises(DuplicateVoteError):
            await state.ledger.open_vote(agenda_item.id, CHAIR_ID)

    async def test_member_cannot_open_vote(self, state: State, agenda_item: AgendaItem):
        with pytest.raises(NotAuthorizedError):
            await state.ledger.open_vote(agenda_item.id, MEMBER)

    async def test_cancelled_meeting_rejects_new_votes(
        self, state: State, meeting: Meeting, agenda_item: AgendaItem
    ):
        await state.meeting_repo.transition_status(meeting.id, MeetingStatus.CANCELLED)

        with pytest.raises(MeetingLockedError):
            await state.ledger.open_vote(agenda_item.id, CHAIR_ID)


class TestCastBallot:
    """Tests for casting ballots."""

    async def test_live_ballot_then_repeat_is_already_voted(self, state, meeting, vote):
        """A LIVE member votes FOR; a second cast is AlreadyVoted, tallies unchanged."""
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)

        ballot = await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)
        assert ballot.choice is VoteChoice.FOR

        tallies = await state.tally.tally(vote.id)
        assert tallies.live.votes_for == 1
        assert tallies.combined.votes_for == 1

        with pytest.raises(AlreadyVotedError):
            await state.ledger.cast_ballot(
                vote.id, MEMBER, VoteChoice.AGAINST, VoteChannel.LIVE
            )

        assert await state.tally.tally(vote.id) == tallies
        stored = await state.ledger.get_member_ballot(vote.id, MEMBER)
        assert stored is not None
        assert stored.choice is VoteChoice.FOR

    async def test_concurrent_double_submission_stores_one_ballot(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.REMOTE)

        results = await asyncio.gather(
            *[
                state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.REMOTE)
                for _ in range(5)
            ],
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        already = [r for r in results if isinstance(r, AlreadyVotedError)]
        assert len(successes) == 1
        assert len(already) == 4
        assert await state.vote_repo.count_ballots(vote.id) == 1

    async def test_remote_attendance_cannot_cast_live(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.REMOTE)

        with pytest.raises(ChannelMismatchError):
            await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

        assert await state.vote_repo.count_ballots(vote.id) == 0

    async def test_written_proxy_casts_live(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.WRITTEN_PROXY)

        ballot = await state.ledger.cast_ballot(
            vote.id, MEMBER, VoteChoice.ABSTAIN, VoteChannel.LIVE
        )

        assert ballot.channel is VoteChannel.LIVE

    async def test_unregistered_member_is_channel_mismatch(self, state, vote):
        with pytest.raises(ChannelMismatchError):
            await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

    async def test_closed_vote_rejects_ballots(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)
        await state.ledger.close_vote(vote.id, CHAIR_ID)

        with pytest.raises(VoteClosedError):
            await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

        assert await state.vote_repo.count_ballots(vote.id) == 0

    async def test_suspended_member_is_not_eligible(self, state, roster, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)
        await roster.save_membership(
            Membership(org_id=ORG_ID, member_id=MEMBER, status=MembershipStatus.SUSPENDED)
        )

        with pytest.raises(NotEligibleError):
            await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

    async def test_member_without_voting_rights_is_not_eligible(
        self, state, roster, meeting, vote
    ):
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)
        await roster.save_membership(Membership(org_id=ORG_ID, member_id=MEMBER, can_vote=False))

        with pytest.raises(NotEligibleError):
            await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

    async def test_unknown_vote(self, state):
        with pytest.raises(VoteNotFoundError):
            await state.ledger.cast_ballot(uuid4(), MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

    async def test_closed_check_precedes_eligibility(self, state, vote):
        """Outsider on a closed vote sees VoteClosed first."""
        await state.ledger.close_vote(vote.id, CHAIR_ID)

        with pytest.raises(VoteClosedError):
            await state.ledger.cast_ballot(
                vote.id, "outsider", VoteChoice.FOR, VoteChannel.LIVE
            )


class TestCanCastVote:
    """can_cast_vote answers exactly what cast_ballot would do."""

    async def test_allowed(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)

        answer = await state.ledger.can_cast_vote(vote.id, MEMBER, VoteChannel.LIVE)

        assert answer.allowed is True
        assert answer.reason is None

    @pytest.mark.parametrize(
        ("mode", "channel", "reason"),
        [
            (AttendanceMode.REMOTE, VoteChannel.LIVE, "CHANNEL_MISMATCH"),
            (AttendanceMode.IN_PERSON, VoteChannel.REMOTE, "CHANNEL_MISMATCH"),
        ],
    )
    async def test_channel_mismatch(self, state, meeting, vote, mode, channel, reason):
        await attend(state, meeting, MEMBER, mode)

        answer = await state.ledger.can_cast_vote(vote.id, MEMBER, channel)

        assert answer.allowed is False
        assert answer.reason == reason

    async def test_matches_cast_after_voting(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)
        await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

        answer = await state.ledger.can_cast_vote(vote.id, MEMBER, VoteChannel.LIVE)

        assert answer.reason == "ALREADY_VOTED"

    async def test_unknown_vote(self, state):
        answer = await state.ledger.can_cast_vote(uuid4(), MEMBER, VoteChannel.LIVE)

        assert answer.allowed is False
        assert answer.reason == "VOTE_NOT_FOUND"

    async def test_outsider_not_eligible(self, state, vote):
        answer = await state.ledger.can_cast_vote(vote.id, "outsider", VoteChannel.LIVE)

        assert answer.reason == "NOT_ELIGIBLE"


class TestCloseVote:
    """Tests for closing votes."""

    async def test_close_is_idempotent(self, state, vote):
        first = await state.ledger.close_vote(vote.id, CHAIR_ID)
        second = await state.ledger.close_vote(vote.id, CHAIR_ID)

        assert first.status is VoteStatus.CLOSED
        assert first.closed_by == CHAIR_ID
        assert second.closed_at == first.closed_at

    async def test_member_cannot_close(self, state, vote):
        with pytest.raises(NotAuthorizedError):
            await state.ledger.close_vote(vote.id, MEMBER)

    async def test_close_all_votes(self, state, meeting, vote):
        second_item = await state.meeting_repo.add_agenda_item(meeting.id, title="Board election")
        await state.ledger.open_vote(second_item.id, CHAIR_ID)

        closed = await state.ledger.close_all_votes(meeting.id, CHAIR_ID)

        assert closed == 2
        votes = await state.ledger.list_votes(meeting.id)
        assert all(v.status is VoteStatus.CLOSED for v in votes)
        assert await state.ledger.close_all_votes(meeting.id, CHAIR_ID) == 0


class TestResolutionOutcome:
    """Closing a vote settles the linked resolution by simple majority."""

    async def cast(self, state, meeting, vote, choices):
        for member_id, choice in zip(MEMBER_IDS, choices):
            await attend(state, meeting, member_id, AttendanceMode.IN_PERSON)
            await state.ledger.cast_ballot(vote.id, member_id, choice, VoteChannel.LIVE)

    async def resolution_status(self, state, vote):
        resolutions = await state.meeting_repo.get_resolutions([vote.resolution_id])
        return resolutions[vote.resolution_id].status

    async def test_majority_for_approves(self, state, meeting, vote):
        await self.cast(state, meeting, vote, [VoteChoice.FOR] * 3)

        await state.ledger.close_vote(vote.id, CHAIR_ID)

        assert await self.resolution_status(state, vote) is ResolutionStatus.APPROVED

    async def test_tie_rejects(self, state, meeting, vote):
        await self.cast(
            state, meeting, vote, [VoteChoice.FOR, VoteChoice.AGAINST, VoteChoice.ABSTAIN]
        )

        await state.ledger.close_vote(vote.id, CHAIR_ID)

        assert await self.resolution_status(state, vote) is ResolutionStatus.REJECTED

    async def test_no_ballots_rejects(self, state, vote):
        await state.ledger.close_vote(vote.id, CHAIR_ID)

        assert await self.resolution_status(state, vote) is ResolutionStatus.REJECTED

    async def test_open_vote_leaves_resolution_proposed(self, state, meeting, vote):
        await self.cast(state, meeting, vote, [VoteChoice.FOR])

        assert await self.resolution_status(state, vote) is ResolutionStatus.PROPOSED

    async def test_close_all_votes_settles_resolutions(self, state, meeting, vote):
        await self.cast(state, meeting, vote, [VoteChoice.FOR, VoteChoice.FOR])

        await state.ledger.close_all_votes(meeting.id, CHAIR_ID)

        assert await self.resolution_status(state, vote) is ResolutionStatus.APPROVED


class TestPendingVotes:
    async def test_pending_excludes_voted_and_closed(self, state, meeting, vote):
        second_item = await state.meeting_repo.add_agenda_item(meeting.id, title="Statutes")
        second = await state.ledger.open_vote(second_item.id, CHAIR_ID)
        third_item = await state.meeting_repo.add_agenda_item(meeting.id, title="Dues")
        third = await state.ledger.open_vote(third_item.id, CHAIR_ID)
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)
        await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)
        await state.ledger.close_vote(third.id, CHAIR_ID)

        pending = await state.ledger.pending_votes(meeting.id, MEMBER)

        assert [v.id for v in pending] == [second.id]


class TestAuditTrail:
    async def test_ballot_emits_event(self, state, meeting, vote):
        await attend(state, meeting, MEMBER, AttendanceMode.IN_PERSON)
        await state.ledger.cast_ballot(vote.id, MEMBER, VoteChoice.FOR, VoteChannel.LIVE)

        events = [e async for e in state.event_store.get_events_for_meeting(meeting.id)]
        types = [e["event_type"] for e in events]

        assert types == ["VoteOpened", "AttendanceRegistered", "BallotCast"]
        assert events[-1]["data"]["choice"] == "FOR"

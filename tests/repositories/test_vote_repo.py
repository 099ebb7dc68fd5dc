"""Tests for VoteRepository storage rules."""

import pytest
from libsql_client import LibsqlError

from src.models.attendance import AttendanceMode, AttendanceRecord, modes_for_channel
from src.models.base import utc_now
from src.models.meeting import MeetingStatus, ResolutionStatus
from src.models.vote import Ballot, Vote, VoteChannel, VoteChoice, VoteStatus
from tests.conftest import CHAIR_ID, MEMBER_IDS, ORG_ID

MEMBER = MEMBER_IDS[0]


def live_ballot(vote, choice=VoteChoice.FOR, member_id=MEMBER) -> Ballot:
    return Ballot(vote_id=vote.id, member_id=member_id, choice=choice, channel=VoteChannel.LIVE)


async def attend(state, meeting, mode=AttendanceMode.IN_PERSON, member_id=MEMBER):
    await state.attendance_repo.register(
        AttendanceRecord(meeting_id=meeting.id, member_id=member_id, mode=mode)
    )


class TestCreateVote:
    async def test_one_vote_per_agenda_item(self, state, meeting, agenda_item):
        vote = Vote(org_id=ORG_ID, meeting_id=meeting.id, agenda_item_id=agenda_item.id)
        other = Vote(org_id=ORG_ID, meeting_id=meeting.id, agenda_item_id=agenda_item.id)

        assert await state.vote_repo.create_vote(vote) is True
        assert await state.vote_repo.create_vote(other) is False
        stored = await state.vote_repo.get_vote_for_agenda_item(agenda_item.id)
        assert stored.id == vote.id

    async def test_locked_meeting(self, state, meeting, agenda_item):
        await state.meeting_repo.transition_status(meeting.id, MeetingStatus.CANCELLED)
        vote = Vote(org_id=ORG_ID, meeting_id=meeting.id, agenda_item_id=agenda_item.id)

        assert await state.vote_repo.create_vote(vote) is False


class TestCloseVote:
    async def test_close_once(self, state, vote):
        assert await state.vote_repo.close_vote(vote.id, utc_now(), CHAIR_ID) is True
        assert await state.vote_repo.close_vote(vote.id, utc_now(), CHAIR_ID) is False

        stored = await state.vote_repo.get_vote(vote.id)
        assert stored.status is VoteStatus.CLOSED
        assert stored.closed_by == CHAIR_ID

    async def test_closed_vote_never_reopens(self, state, vote):
        await state.vote_repo.close_vote(vote.id, utc_now(), CHAIR_ID)

        with pytest.raises(LibsqlError):
            await state.db.execute(
                "UPDATE votes SET status = 'OPEN' WHERE id = ?", [str(vote.id)]
            )

    async def test_close_settles_resolution(self, state, meeting, vote):
        live_modes = modes_for_channel(VoteChannel.LIVE)
        for member_id, choice in zip(MEMBER_IDS, [VoteChoice.AGAINST, VoteChoice.AGAINST]):
            await attend(state, meeting, member_id=member_id)
            await state.vote_repo.insert_ballot(
                live_ballot(vote, choice, member_id), meeting.id, live_modes
            )

        await state.vote_repo.close_vote(vote.id, utc_now(), CHAIR_ID)

        resolutions = await state.meeting_repo.get_resolutions([vote.resolution_id])
        assert resolutions[vote.resolution_id].status is ResolutionStatus.REJECTED


class TestInsertBallot:
    """The conditional insert enforces every storage-level rule."""

    async def test_inserts_once(self, state, meeting, vote):
        await attend(state, meeting)
        modes = modes_for_channel(VoteChannel.LIVE)

        assert await state.vote_repo.insert_ballot(live_ballot(vote), meeting.id, modes) is True
        assert (
            await state.vote_repo.insert_ballot(
                live_ballot(vote, VoteChoice.AGAINST), meeting.id, modes
            )
            is False
        )
        stored = await state.vote_repo.get_ballot(vote.id, MEMBER)
        assert stored.choice is VoteChoice.FOR

    async def test_refuses_wrong_channel(self, state, meeting, vote):
        await attend(state, meeting, AttendanceMode.REMOTE)

        stored = await state.vote_repo.insert_ballot(
            live_ballot(vote), meeting.id, modes_for_channel(VoteChannel.LIVE)
        )

        assert stored is False

    async def test_refuses_closed_vote(self, state, meeting, vote):
        await attend(state, meeting)
        await state.vote_repo.close_vote(vote.id, utc_now(), CHAIR_ID)

        stored = await state.vote_repo.insert_ballot(
            live_ballot(vote), meeting.id, modes_for_channel(VoteChannel.LIVE)
        )

        assert stored is False

    async def test_ballots_are_immutable(self, state, meeting, vote):
        await attend(state, meeting)
        await state.vote_repo.insert_ballot(
            live_ballot(vote), meeting.id, modes_for_channel(VoteChannel.LIVE)
        )

        with pytest.raises(LibsqlError):
            await state.db.execute("UPDATE ballots SET choice = 'AGAINST'")
        with pytest.raises(LibsqlError):
            await state.db.execute("DELETE FROM ballots")


class TestAggregation:
    async def test_count_by_channel_and_choice(self, state, meeting, vote):
        live_modes = modes_for_channel(VoteChannel.LIVE)
        for member_id in MEMBER_IDS[:3]:
            await attend(state, meeting, member_id=member_id)
            await state.vote_repo.insert_ballot(
                live_ballot(vote, member_id=member_id), meeting.id, live_modes
            )
        await attend(state, meeting, AttendanceMode.REMOTE, MEMBER_IDS[3])
        await state.vote_repo.insert_ballot(
            Ballot(
                vote_id=vote.id,
                member_id=MEMBER_IDS[3],
                choice=VoteChoice.ABSTAIN,
                channel=VoteChannel.REMOTE,
            ),
            meeting.id,
            modes_for_channel(VoteChannel.REMOTE),
        )

        counts = await state.vote_repo.count_by_channel_and_choice(vote.id)

        assert sorted(counts) == sorted(
            [
                (VoteChannel.LIVE, VoteChoice.FOR, 3),
                (VoteChannel.REMOTE, VoteChoice.ABSTAIN, 1),
            ]
        )
        assert await state.vote_repo.count_ballots(vote.id) == 4
        assert await state.vote_repo.voted_vote_ids(MEMBER_IDS[3], [vote.id]) == {vote.id}
        assert await state.vote_repo.voted_vote_ids(MEMBER_IDS[4], [vote.id]) == set()

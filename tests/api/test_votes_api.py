"""Integration tests for vote endpoints."""

from typing import Any
from uuid import uuid4

from httpx import AsyncClient

from tests.api.conftest import as_member
from tests.conftest import CHAIR_ID, MEMBER_IDS

MEMBER = MEMBER_IDS[0]


async def attend(client: AsyncClient, meeting: dict[str, Any], member_id: str, mode: str) -> None:
    response = await client.put(
        f"/meetings/{meeting['id']}/attendance/{member_id}",
        json={"mode": mode},
        headers=as_member(member_id),
    )
    assert response.status_code == 200


class TestOpenVote:
    async def test_member_cannot_open(self, seeded_client: AsyncClient, api_meeting):
        response = await seeded_client.post(
            "/votes",
            json={"agenda_item_id": api_meeting["item"]["id"]},
            headers=as_member(MEMBER),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "NOT_AUTHORIZED"

    async def test_duplicate_vote(self, seeded_client: AsyncClient, api_meeting, api_vote):
        response = await seeded_client.post(
            "/votes",
            json={"agenda_item_id": api_meeting["item"]["id"]},
            headers=as_member(CHAIR_ID),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "VOTE_ALREADY_EXISTS"

    async def test_missing_caller_header(self, seeded_client: AsyncClient, api_meeting):
        response = await seeded_client.post(
            "/votes", json={"agenda_item_id": api_meeting["item"]["id"]}
        )

        assert response.status_code == 422

    async def test_unknown_vote(self, seeded_client: AsyncClient):
        response = await seeded_client.get(f"/votes/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "VOTE_NOT_FOUND"


class TestCastBallot:
    """Integration tests for POST /votes/{id}/ballots."""

    async def test_cast_then_resubmit(self, seeded_client: AsyncClient, api_meeting, api_vote):
        """A resubmission is answered 200 already_voted and changes nothing."""
        await attend(seeded_client, api_meeting["meeting"], MEMBER, "IN_PERSON")
        url = f"/votes/{api_vote['id']}/ballots"

        first = await seeded_client.post(
            url, json={"choice": "FOR", "channel": "LIVE"}, headers=as_member(MEMBER)
        )
        assert first.status_code == 201
        assert first.json()["status"] == "recorded"
        assert first.json()["ballot"]["choice"] == "FOR"

        again = await seeded_client.post(
            url, json={"choice": "AGAINST", "channel": "LIVE"}, headers=as_member(MEMBER)
        )
        assert again.status_code == 200
        assert again.json()["status"] == "already_voted"

        tally = (await seeded_client.get(f"/votes/{api_vote['id']}/tally")).json()
        assert tally["combined"]["votes_for"] == 1
        assert tally["combined"]["votes_against"] == 0
        assert tally["outcome"] is None

        mine = await seeded_client.get(
            f"/votes/{api_vote['id']}/ballots/me", headers=as_member(MEMBER)
        )
        assert mine.json()["choice"] == "FOR"

    async def test_channel_mismatch(self, seeded_client: AsyncClient, api_meeting, api_vote):
        await attend(seeded_client, api_meeting["meeting"], MEMBER, "REMOTE")

        response = await seeded_client.post(
            f"/votes/{api_vote['id']}/ballots",
            json={"choice": "FOR", "channel": "LIVE"},
            headers=as_member(MEMBER),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "CHANNEL_MISMATCH"

    async def test_closed_vote(self, seeded_client: AsyncClient, api_meeting, api_vote):
        await attend(seeded_client, api_meeting["meeting"], MEMBER, "IN_PERSON")
        await seeded_client.post(f"/votes/{api_vote['id']}/close", headers=as_member(CHAIR_ID))

        response = await seeded_client.post(
            f"/votes/{api_vote['id']}/ballots",
            json={"choice": "FOR", "channel": "LIVE"},
            headers=as_member(MEMBER),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "VOTE_CLOSED"

    async def test_outsider_not_eligible(self, seeded_client: AsyncClient, api_vote):
        response = await seeded_client.post(
            f"/votes/{api_vote['id']}/ballots",
            json={"choice": "FOR", "channel": "REMOTE"},
            headers=as_member("outsider"),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "NOT_ELIGIBLE"

    async def test_no_ballot_yet(self, seeded_client: AsyncClient, api_vote):
        response = await seeded_client.get(
            f"/votes/{api_vote['id']}/ballots/me", headers=as_member(MEMBER)
        )

        assert response.status_code == 404


class TestEligibility:
    async def test_eligibility_reflects_attendance(
        self, seeded_client: AsyncClient, api_meeting, api_vote
    ):
        await attend(seeded_client, api_meeting["meeting"], MEMBER, "REMOTE")
        url = f"/votes/{api_vote['id']}/eligibility"

        remote = await seeded_client.get(url, params={"channel": "REMOTE"}, headers=as_member(MEMBER))
        live = await seeded_client.get(url, params={"channel": "LIVE"}, headers=as_member(MEMBER))

        assert remote.json() == {"allowed": True, "reason": None}
        assert live.json() == {"allowed": False, "reason": "CHANNEL_MISMATCH"}


class TestCloseVote:
    async def test_close_reports_outcome(self, seeded_client: AsyncClient, api_meeting, api_vote):
        await attend(seeded_client, api_meeting["meeting"], MEMBER, "IN_PERSON")
        await attend(seeded_client, api_meeting["meeting"], MEMBER_IDS[1], "REMOTE")
        await seeded_client.post(
            f"/votes/{api_vote['id']}/ballots",
            json={"choice": "FOR", "channel": "LIVE"},
            headers=as_member(MEMBER),
        )
        await seeded_client.post(
            f"/votes/{api_vote['id']}/ballots",
            json={"choice": "FOR", "channel": "REMOTE"},
            headers=as_member(MEMBER_IDS[1]),
        )

        closed = await seeded_client.post(
            f"/votes/{api_vote['id']}/close", headers=as_member(CHAIR_ID)
        )
        again = await seeded_client.post(
            f"/votes/{api_vote['id']}/close", headers=as_member(CHAIR_ID)
        )
        tally = (await seeded_client.get(f"/votes/{api_vote['id']}/tally")).json()

        assert closed.status_code == 200
        assert closed.json()["status"] == "CLOSED"
        assert again.json()["closed_at"] == closed.json()["closed_at"]
        assert tally["live"]["votes_for"] == 1
        assert tally["remote"]["votes_for"] == 1
        assert tally["combined"]["total"] == 2
        assert tally["outcome"] == "APPROVED"
        detail = await seeded_client.get(f"/meetings/{api_meeting['meeting']['id']}")
        assert detail.json()["resolutions"][0]["status"] == "APPROVED"


class TestVoteAudit:
    async def test_vote_audit_trail(self, seeded_client: AsyncClient, api_meeting, api_vote):
        await attend(seeded_client, api_meeting["meeting"], MEMBER, "REMOTE")
        await seeded_client.post(
            f"/votes/{api_vote['id']}/ballots",
            json={"choice": "AGAINST", "channel": "REMOTE"},
            headers=as_member(MEMBER),
        )
        await seeded_client.post(f"/votes/{api_vote['id']}/close", headers=as_member(CHAIR_ID))

        response = await seeded_client.get(f"/votes/{api_vote['id']}/audit")

        assert response.status_code == 200
        assert [e["event_type"] for e in response.json()] == [
            "VoteOpened",
            "BallotCast",
            "VoteClosed",
        ]

    async def test_unknown_vote(self, seeded_client: AsyncClient):
        response = await seeded_client.get(f"/votes/{uuid4()}/audit")

        assert response.status_code == 404

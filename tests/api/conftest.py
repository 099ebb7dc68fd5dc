"""Fixtures for API tests: a seeded roster and a meeting with one agenda item."""

from typing import Any

import pytest
from httpx import AsyncClient

from src.main import app, seed_initial_chairs
from tests.conftest import CHAIR_ID, MEMBER_IDS, ORG_ID


def as_member(member_id: str) -> dict[str, str]:
    """Caller identity header."""
    return {"X-Member-Id": member_id}


@pytest.fixture
async def seeded_client(client: AsyncClient) -> AsyncClient:
    """Client whose org roster holds one chair and nine members.

    The chair is seeded the way INITIAL_CHAIRS does it at startup; the
    chair then adds the members through the API.
    """
    await seed_initial_chairs(app.state.membership_repo, {ORG_ID: CHAIR_ID})
    for member_id in MEMBER_IDS:
        response = await client.put(
            f"/orgs/{ORG_ID}/members/{member_id}",
            json={},
            headers=as_member(CHAIR_ID),
        )
        assert response.status_code == 200
    return client


@pytest.fixture
async def api_meeting(seeded_client: AsyncClient) -> dict[str, Any]:
    """Meeting with one agenda item carrying a resolution."""
    response = await seeded_client.post(
        "/meetings",
        json={
            "org_id": ORG_ID,
            "title": "Annual General Assembly",
            "scheduled_at": "2026-03-14T18:00:00Z",
            "location": "Community hall",
        },
        headers=as_member(CHAIR_ID),
    )
    assert response.status_code == 201
    meeting = response.json()

    response = await seeded_client.post(
        f"/meetings/{meeting['id']}/agenda",
        json={
            "title": "Budget",
            "resolution": {"title": "Approve the annual budget", "text": "Budget 2026"},
        },
        headers=as_member(CHAIR_ID),
    )
    assert response.status_code == 201
    return {"meeting": meeting, "item": response.json()}


@pytest.fixture
async def api_vote(seeded_client: AsyncClient, api_meeting: dict[str, Any]) -> dict[str, Any]:
    """OPEN vote on the meeting's agenda item."""
    response = await seeded_client.post(
        "/votes",
        json={"agenda_item_id": api_meeting["item"]["id"]},
        headers=as_member(CHAIR_ID),
    )
    assert response.status_code == 201
    return response.json()

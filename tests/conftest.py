"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import State

from src.db.turso import TursoClient
from src.main import app, init_app_state
from src.models.meeting import AgendaItem, Meeting, MeetingType, Resolution
from src.models.membership import MemberRole, Membership
from src.models.vote import Vote
from src.repositories.membership_repo import MembershipRepository

ORG_ID = "org-1"
CHAIR_ID = "chair-1"
# Together with the chair: 10 active members
MEMBER_IDS = [f"member-{i}" for i in range(1, 10)]


@pytest.fixture
async def db_client(tmp_path: Path) -> AsyncIterator[TursoClient]:
    """Create a temp file database client for testing."""
    db_path = tmp_path / "test_governance.db"
    client = TursoClient(url=f"file:{db_path}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def state(db_client: TursoClient) -> State:
    """Fully wired services on a throwaway app, backed by the local roster."""
    test_app = FastAPI()
    await init_app_state(test_app, db_client)
    return test_app.state


@pytest.fixture
async def roster(state: State) -> MembershipRepository:
    """Local roster seeded with one chair and nine members of ORG_ID."""
    repo: MembershipRepository = state.membership_repo
    await repo.save_membership(
        Membership(org_id=ORG_ID, member_id=CHAIR_ID, role=MemberRole.CHAIR)
    )
    for member_id in MEMBER_IDS:
        await repo.save_membership(Membership(org_id=ORG_ID, member_id=member_id))
    return repo


@pytest.fixture
async def meeting(state: State, roster: MembershipRepository) -> Meeting:
    """A scheduled general assembly of ORG_ID."""
    return await state.meeting_repo.create_meeting(
        Meeting(
            org_id=ORG_ID,
            title="Annual General Assembly",
            scheduled_at=datetime(2026, 3, 14, 18, 0, tzinfo=UTC),
            location="Community hall",
            meeting_type=MeetingType.GA,
        )
    )


@pytest.fixture
async def agenda_item(state: State, meeting: Meeting) -> AgendaItem:
    """First agenda item, carrying a resolution."""
    resolution = await state.meeting_repo.create_resolution(
        Resolution(org_id=ORG_ID, title="Approve the annual budget", text="Budget 2026")
    )
    return await state.meeting_repo.add_agenda_item(
        meeting.id,
        title="Budget",
        summary="Vote on the annual budget",
        resolution_id=resolution.id,
    )


@pytest.fixture
async def vote(state: State, agenda_item: AgendaItem) -> Vote:
    """OPEN vote on the first agenda item."""
    return await state.ledger.open_vote(agenda_item.id, CHAIR_ID)


@pytest.fixture
async def client(tmp_path: Path) -> AsyncIterator[AsyncClient]:
    """Create async test client for FastAPI app with database."""
    # Set up test database
    db_path = tmp_path / "test_api.db"
    db = TursoClient(url=f"file:{db_path}")
    await db.connect()
    await init_app_state(app, db)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Cleanup
    await db.close()
    app.state._state.clear()

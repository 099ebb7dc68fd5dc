"""Tests for event infrastructure."""

from pathlib import Path
from unittest.mock import patch
from uuid import uuid4

import pytest
from libsql_client import LibsqlError
from pydantic import ValidationError

from src.db.turso import TursoClient
from src.events import (
    AttendanceRegistered,
    BallotCast,
    Event,
    EventBus,
    EventStore,
    GovernanceEvent,
    VoteOpened,
)
from src.governance.audit import AuditTrail
from src.models.attendance import AttendanceMode
from src.models.vote import VoteChannel, VoteChoice


def ballot_cast(meeting_id=None) -> BallotCast:
    return BallotCast(
        aggregate_id=uuid4(),
        org_id="org-1",
        meeting_id=meeting_id or uuid4(),
        actor_id="member-1",
        ballot_id=uuid4(),
        choice=VoteChoice.FOR,
        channel=VoteChannel.LIVE,
    )


class TestEvent:
    """Tests for base Event class."""

    def test_creates_with_defaults(self) -> None:
        """Event generates event_id and timestamp."""

        class TestEvent(Event):
            message: str

        e = TestEvent(message="test")
        assert e.event_id is not None
        assert e.timestamp.tzinfo is not None
        assert e.event_type == "TestEvent"

    def test_is_immutable(self) -> None:
        """Events are frozen (immutable)."""
        e = ballot_cast()
        with pytest.raises(ValidationError):
            e.choice = VoteChoice.AGAINST  # type: ignore[misc]

    def test_to_store_dict(self) -> None:
        """Serialization keeps envelope fields out of data."""
        e = ballot_cast()
        d = e.to_store_dict()

        assert d["event_type"] == "BallotCast"
        assert d["aggregate_type"] == "Vote"
        assert d["aggregate_id"] == str(e.aggregate_id)
        assert d["data"]["choice"] == "FOR"
        assert d["data"]["meeting_id"] == str(e.meeting_id)
        assert "event_id" not in d["data"]


class TestEventBus:
    """Tests for EventBus pub/sub."""

    async def test_subscribe_and_publish(self) -> None:
        """Handlers receive published events of their type."""
        bus = EventBus()
        received: list[Event] = []

        async def handler(event: Event) -> None:
            received.append(event)

        bus.subscribe(BallotCast, handler)
        event = ballot_cast()
        await bus.publish(event)

        assert received == [event]

    async def test_base_class_subscription_receives_subclasses(self) -> None:
        bus = EventBus()
        received: list[str] = []
        bus.subscribe(GovernanceEvent, lambda e: received.append(e.event_type))

        await bus.publish(ballot_cast())
        await bus.publish(
            VoteOpened(org_id="org-1", meeting_id=uuid4(), agenda_item_id=uuid4())
        )

        assert received == ["BallotCast", "VoteOpened"]

    async def test_other_types_not_delivered(self) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(VoteOpened, received.append)

        await bus.publish(ballot_cast())

        assert received == []

    async def test_handler_error_isolated(self) -> None:
        """One failing handler doesn't prevent others."""
        bus = EventBus()
        received: list[Event] = []

        async def failing(event: Event) -> None:
            raise RuntimeError("boom")

        async def working(event: Event) -> None:
            received.append(event)

        bus.subscribe(BallotCast, failing)
        bus.subscribe(BallotCast, working)
        await bus.publish(ballot_cast())

        assert len(received) == 1


@pytest.fixture
async def event_store(tmp_path: Path) -> EventStore:
    """Event store on a temp file database."""
    client = TursoClient(url=f"file:{tmp_path / 'events.db'}")
    await client.connect()
    store = EventStore(client)
    await store.init_schema()
    yield store
    await client.close()


class TestEventStore:
    """Tests for the append-only audit store."""

    async def test_meeting_trail_in_order(self, event_store: EventStore) -> None:
        meeting_id = uuid4()
        first = VoteOpened(
            aggregate_id=uuid4(), org_id="org-1", meeting_id=meeting_id, agenda_item_id=uuid4()
        )
        second = ballot_cast(meeting_id)
        await event_store.append(first)
        await event_store.append(second)
        await event_store.append(ballot_cast())

        trail = [e async for e in event_store.get_events_for_meeting(meeting_id)]

        assert [e["event_id"] for e in trail] == [str(first.event_id), str(second.event_id)]
        assert trail[1]["aggregate_type"] == "Vote"

    async def test_pagination(self, event_store: EventStore) -> None:
        meeting_id = uuid4()
        for _ in range(3):
            await event_store.append(ballot_cast(meeting_id))

        page = [
            e async for e in event_store.get_events_for_meeting(meeting_id, limit=2, offset=2)
        ]

        assert len(page) == 1

    async def test_events_for_aggregate(self, event_store: EventStore) -> None:
        e = ballot_cast()
        await event_store.append(e)

        events = [x async for x in event_store.get_events_for_aggregate(e.aggregate_id)]

        assert len(events) == 1
        assert events[0]["data"]["actor_id"] == "member-1"

    async def test_aggregate_trail_excludes_other_aggregates(
        self, event_store: EventStore
    ) -> None:
        vote_id = uuid4()
        meeting_id = uuid4()
        opened = VoteOpened(
            aggregate_id=vote_id, org_id="org-1", meeting_id=meeting_id, agenda_item_id=uuid4()
        )
        await event_store.append(opened)
        await event_store.append(
            AttendanceRegistered(
                aggregate_id=meeting_id,
                org_id="org-1",
                meeting_id=meeting_id,
                member_id="member-1",
                mode=AttendanceMode.REMOTE,
            )
        )
        await event_store.append(
            BallotCast(
                aggregate_id=vote_id,
                org_id="org-1",
                meeting_id=meeting_id,
                actor_id="member-1",
                ballot_id=uuid4(),
                choice=VoteChoice.AGAINST,
                channel=VoteChannel.REMOTE,
            )
        )

        trail = [e async for e in event_store.get_events_for_aggregate(vote_id)]

        assert [e["event_type"] for e in trail] == ["VoteOpened", "BallotCast"]

    async def test_rows_are_append_only(self, event_store: EventStore) -> None:
        await event_store.append(ballot_cast())

        with pytest.raises(LibsqlError):
            await event_store.client.execute("UPDATE events SET event_type = 'x'")
        with pytest.raises(LibsqlError):
            await event_store.client.execute("DELETE FROM events")


class TestAuditTrail:
    """Audit recording is best effort."""

    async def test_persists_through_bus(self, event_store: EventStore) -> None:
        audit = AuditTrail(EventBus(store=event_store), persist=True)

        event = ballot_cast()
        await audit.record(event)

        stored = [e async for e in event_store.get_events_for_aggregate(event.aggregate_id)]
        assert [e["event_id"] for e in stored] == [str(event.event_id)]

    async def test_logs_events_without_persisting(self, event_store: EventStore) -> None:
        """With persistence off the event still reaches the structured log."""
        audit = AuditTrail(EventBus(store=event_store), persist=False)
        event = ballot_cast()

        with patch("src.governance.audit.logger") as mock_logger:
            await audit.record(event)

        mock_logger.info.assert_called_once()
        assert mock_logger.info.call_args.kwargs["event_type"] == "BallotCast"
        assert mock_logger.info.call_args.kwargs["event_id"] == str(event.event_id)
        stored = [e async for e in event_store.get_events_for_aggregate(event.aggregate_id)]
        assert stored == []

    async def test_store_failure_is_swallowed(self, event_store: EventStore) -> None:
        bus = EventBus(store=event_store)
        received: list[Event] = []
        bus.subscribe(BallotCast, received.append)
        await event_store.client.close()
        audit = AuditTrail(bus, persist=True)

        await audit.record(ballot_cast())

        assert received == []

    async def test_without_bus(self) -> None:
        await AuditTrail(None).record(ballot_cast())

"""Append-only audit store for governance events using Turso/libSQL.

Rows are never updated or deleted. Each row carries the organization
and meeting of its event so a meeting's audit trail is a single
indexed query.
"""

import json
import logging
from collections.abc import AsyncIterator
from uuid import UUID

from src.db.turso import TursoClient
from src.events.base import Event

logger = logging.getLogger(__name__)


class EventStore:
    """Append-only event store using Turso/libSQL.

    Features:
    - Append-only (guarded by triggers)
    - Event retrieval by meeting and by aggregate
    """

    def __init__(self, client: TursoClient):
        """Initialize event store.

        Args:
            client: Database client for persistence
        """
        self.client = client

    async def init_schema(self) -> None:
        """Create the events table if it doesn't exist."""
        await self.client.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT UNIQUE NOT NULL,
                event_type TEXT NOT NULL,
                aggregate_id TEXT,
                aggregate_type TEXT,
                org_id TEXT,
                meeting_id TEXT,
                event_data TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_events_aggregate
            ON events(aggregate_id, id)
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_events_meeting
            ON events(meeting_id, id)
            """,
                """
            CREATE TRIGGER IF NOT EXISTS events_no_update
            BEFORE UPDATE ON events
            BEGIN
                SELECT RAISE(ABORT, 'audit events are append-only');
            END
            """,
                """
            CREATE TRIGGER IF NOT EXISTS events_no_delete
            BEFORE DELETE ON events
            BEGIN
                SELECT RAISE(ABORT, 'audit events are append-only');
            END
            """,
            ]
        )
        logger.info("Event store schema initialized")

    async def append(self, event: Event) -> None:
        """Append an event to the store.

        Args:
            event: The event to store
        """
        store_dict = event.to_store_dict()
        data = store_dict["data"]

        await self.client.execute(
            """INSERT INTO events
               (event_id, event_type, aggregate_id, aggregate_type,
                org_id, meeting_id, event_data, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                store_dict["event_id"],
                store_dict["event_type"],
                store_dict["aggregate_id"],
                store_dict["aggregate_type"],
                data.get("org_id"),
                data.get("meeting_id"),
                json.dumps(data),
                store_dict["timestamp"],
            ],
        )
        logger.debug(f"Stored event {event.event_type} ({event.event_id})")

    async def get_events_for_aggregate(self, aggregate_id: UUID) -> AsyncIterator[dict]:
        """Retrieve events for an aggregate, oldest first.

        Yields:
            Event dictionaries
        """
        result = await self.client.execute(
            """SELECT event_id, event_type, event_data, timestamp
               FROM events
               WHERE aggregate_id = ?
               ORDER BY id ASC""",
            [str(aggregate_id)],
        )
        for row in result.rows:
            yield {
                "event_id": row[0],
                "event_type": row[1],
                "data": json.loads(row[2]),
                "timestamp": row[3],
            }

    async def get_events_for_meeting(
        self,
        meeting_id: UUID,
        limit: int = 500,
        offset: int = 0,
    ) -> AsyncIterator[dict]:
        """Retrieve a meeting's audit trail, oldest first.

        Args:
            meeting_id: Meeting whose events to read
            limit: Maximum events to return
            offset: Number of events to skip

        Yields:
            Event dictionaries
        """
        result = await self.client.execute(
            """SELECT event_id, event_type, aggregate_id, aggregate_type,
                      event_data, timestamp
               FROM events
               WHERE meeting_id = ?
               ORDER BY id ASC
               LIMIT ? OFFSET ?""",
            [str(meeting_id), limit, offset],
        )
        for row in result.rows:
            yield {
                "event_id": row[0],
                "event_type": row[1],
                "aggregate_id": row[2],
                "aggregate_type": row[3],
                "data": json.loads(row[4]),
                "timestamp": row[5],
            }

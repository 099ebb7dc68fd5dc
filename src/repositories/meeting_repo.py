"""Repository for meetings and their agenda.

Stands in for the agenda store collaborator: meetings, numbered agenda
items, linked resolutions and attachment metadata. Uses SQLite (via
TursoClient) for persistence.
"""

import logging
from collections import defaultdict
from typing import Any
from uuid import UUID

from src.db.turso import TursoClient
from src.models.base import utc_now
from src.models.meeting import (
    AgendaItem,
    Attachment,
    Meeting,
    MeetingStatus,
    MeetingType,
    Resolution,
    ResolutionStatus,
)
from src.repositories.codec import from_db_ts, to_db_ts

logger = logging.getLogger(__name__)

_LOCKED_SQL = "('COMPLETED', 'CANCELLED')"


class MeetingRepository:
    """Repository for meetings, agenda items, resolutions and attachments."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create meeting tables if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS meetings (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                title TEXT NOT NULL,
                scheduled_at TEXT NOT NULL,
                location TEXT,
                meeting_type TEXT NOT NULL,
                status TEXT NOT NULL,
                published_at TEXT,
                created_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_meetings_org
            ON meetings(org_id, scheduled_at)
            """,
                """
            CREATE TABLE IF NOT EXISTS resolutions (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                title TEXT NOT NULL,
                text TEXT,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """,
                """
            CREATE TABLE IF NOT EXISTS agenda_items (
                id TEXT PRIMARY KEY,
                meeting_id TEXT NOT NULL REFERENCES meetings(id),
                item_no INTEGER NOT NULL,
                title TEXT NOT NULL,
                summary TEXT,
                details TEXT,
                resolution_id TEXT REFERENCES resolutions(id),
                created_at TEXT NOT NULL,
                UNIQUE(meeting_id, item_no)
            )
            """,
                """
            CREATE TABLE IF NOT EXISTS agenda_attachments (
                id TEXT PRIMARY KEY,
                agenda_item_id TEXT NOT NULL REFERENCES agenda_items(id),
                file_name TEXT NOT NULL,
                storage_path TEXT NOT NULL,
                mime_type TEXT,
                size_bytes INTEGER,
                created_at TEXT NOT NULL
            )
            """,
            ]
        )

    # Meetings

    async def create_meeting(self, meeting: Meeting) -> Meeting:
        """Persist a new meeting."""
        await self._db.execute(
            """
            INSERT INTO meetings
                (id, org_id, title, scheduled_at, location, meeting_type,
                 status, published_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                str(meeting.id),
                meeting.org_id,
                meeting.title,
                to_db_ts(meeting.scheduled_at),
                meeting.location,
                meeting.meeting_type.value,
                meeting.status.value,
                to_db_ts(meeting.published_at),
                to_db_ts(meeting.created_at),
            ],
        )
        logger.debug(f"Created meeting {meeting.id} for org {meeting.org_id}")
        return meeting

    async def get_meeting(self, meeting_id: UUID) -> Meeting | None:
        """Get a meeting by ID.

        Returns:
            Meeting or None if not found
        """
        result = await self._db.execute(
            """
            SELECT id, org_id, title, scheduled_at, location, meeting_type,
                   status, published_at, created_at
            FROM meetings
            WHERE id = ?
            """,
            [str(meeting_id)],
        )
        if not result.rows:
            return None
        row = result.rows[0]
        return Meeting(
            id=UUID(row[0]),
            org_id=row[1],
            title=row[2],
            scheduled_at=from_db_ts(row[3]),
            location=row[4],
            meeting_type=MeetingType(row[5]),
            status=MeetingStatus(row[6]),
            published_at=from_db_ts(row[7]),
            created_at=from_db_ts(row[8]),
        )

    async def transition_status(
        self,
        meeting_id: UUID,
        status: MeetingStatus,
    ) -> bool:
        """Move an unlocked meeting to a new status.

        COMPLETED and CANCELLED meetings are never changed here.

        Returns:
            True if the meeting was updated
        """
        published_at = to_db_ts(utc_now()) if status is MeetingStatus.PUBLISHED else None
        result = await self._db.execute(
            f"""
            UPDATE meetings
            SET status = ?, published_at = COALESCE(published_at, ?)
            WHERE id = ? AND status NOT IN {_LOCKED_SQL}
            """,
            [status.value, published_at, str(meeting_id)],
        )
        return result.rows_affected > 0

    # Resolutions

    async def create_resolution(self, resolution: Resolution) -> Resolution:
        """Persist a resolution draft."""
        await self._db.execute(
            """
            INSERT INTO resolutions (id, org_id, title, text, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                str(resolution.id),
                resolution.org_id,
                resolution.title,
                resolution.text,
                resolution.status.value,
                to_db_ts(resolution.created_at),
            ],
        )
        return resolution

    async def get_resolutions(self, resolution_ids: list[UUID]) -> dict[UUID, Resolution]:
        """Fetch resolutions by ID in one query."""
        if not resolution_ids:
            return {}
        placeholders = ", ".join("?" for _ in resolution_ids)
        result = await self._db.execute(
            f"""
            SELECT id, org_id, title, text, status, created_at
            FROM resolutions
            WHERE id IN ({placeholders})
            """,
            [str(r) for r in resolution_ids],
        )
        return {
            UUID(row[0]): Resolution(
                id=UUID(row[0]),
                org_id=row[1],
                title=row[2],
                text=row[3],
                status=ResolutionStatus(row[4]),
                created_at=from_db_ts(row[5]),
            )
            for row in result.rows
        }

    # Agenda items

    async def add_agenda_item(
        self,
        meeting_id: UUID,
        title: str,
        summary: str | None = None,
        details: str | None = None,
        resolution_id: UUID | None = None,
    ) -> AgendaItem:
        """Append an agenda item, assigning the next item number.

        The number is computed inside the INSERT so concurrent appends
        cannot receive the same position.
        """
        item = AgendaItem(
            meeting_id=meeting_id,
            item_no=1,
            title=title,
            summary=summary,
            details=details,
            resolution_id=resolution_id,
        )
        await self._db.execute(
            """
            INSERT INTO agenda_items
                (id, meeting_id, item_no, title, summary, details,
                 resolution_id, created_at)
            SELECT ?, ?, COALESCE(MAX(item_no), 0) + 1, ?, ?, ?, ?, ?
            FROM agenda_items
            WHERE meeting_id = ?
            """,
            [
                str(item.id),
                str(meeting_id),
                item.title,
                item.summary,
                item.details,
                str(resolution_id) if resolution_id else None,
                to_db_ts(item.created_at),
                str(meeting_id),
            ],
        )
        stored = await self.get_agenda_item(item.id)
        if stored is None:
            msg = f"Agenda item {item.id} was not stored"
            raise RuntimeError(msg)
        return stored

    async def get_agenda_item(self, agenda_item_id: UUID) -> AgendaItem | None:
        """Get an agenda item by ID."""
        result = await self._db.execute(
            """
            SELECT id, meeting_id, item_no, title, summary, details,
                   resolution_id, created_at
            FROM agenda_items
            WHERE id = ?
            """,
            [str(agenda_item_id)],
        )
        return self._to_agenda_item(result.rows[0]) if result.rows else None

    async def list_agenda_items(self, meeting_id: UUID) -> list[AgendaItem]:
        """Get a meeting's agenda in item number order."""
        result = await self._db.execute(
            """
            SELECT id, meeting_id, item_no, title, summary, details,
                   resolution_id, created_at
            FROM agenda_items
            WHERE meeting_id = ?
            ORDER BY item_no ASC
            """,
            [str(meeting_id)],
        )
        return [self._to_agenda_item(row) for row in result.rows]

    @staticmethod
    def _to_agenda_item(row: Any) -> AgendaItem:
        return AgendaItem(
            id=UUID(row[0]),
            meeting_id=UUID(row[1]),
            item_no=row[2],
            title=row[3],
            summary=row[4],
            details=row[5],
            resolution_id=UUID(row[6]) if row[6] else None,
            created_at=from_db_ts(row[7]),
        )

    # Attachments

    async def add_attachment(self, attachment: Attachment) -> Attachment:
        """Record attachment metadata for an agenda item."""
        await self._db.execute(
            """
            INSERT INTO agenda_attachments
                (id, agenda_item_id, file_name, storage_path, mime_type,
                 size_bytes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                str(attachment.id),
                str(attachment.agenda_item_id),
                attachment.file_name,
                attachment.storage_path,
                attachment.mime_type,
                attachment.size_bytes,
                to_db_ts(attachment.created_at),
            ],
        )
        return attachment

    async def list_attachments(self, meeting_id: UUID) -> dict[UUID, list[Attachment]]:
        """Get attachment metadata for every agenda item of a meeting.

        Returns:
            Mapping of agenda item ID to its attachments, oldest first
        """
        result = await self._db.execute(
            """
            SELECT a.id, a.agenda_item_id, a.file_name, a.storage_path,
                   a.mime_type, a.size_bytes, a.created_at
            FROM agenda_attachments a
            JOIN agenda_items i ON i.id = a.agenda_item_id
            WHERE i.meeting_id = ?
            ORDER BY a.created_at ASC, a.file_name ASC
            """,
            [str(meeting_id)],
        )
        by_item: dict[UUID, list[Attachment]] = defaultdict(list)
        for row in result.rows:
            attachment = Attachment(
                id=UUID(row[0]),
                agenda_item_id=UUID(row[1]),
                file_name=row[2],
                storage_path=row[3],
                mime_type=row[4],
                size_bytes=row[5],
                created_at=from_db_ts(row[6]),
            )
            by_item[attachment.agenda_item_id].append(attachment)
        return dict(by_item)

"""Repository for meeting attendance records.

One row per (meeting, member). Mode switches and withdrawals are single
conditional statements that refuse to run once the member has a ballot
in the meeting, so they cannot race a ballot insert.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from src.db.turso import TursoClient
from src.models.attendance import AttendanceMode, AttendanceRecord
from src.repositories.codec import from_db_ts, to_db_ts

logger = logging.getLogger(__name__)

# Member has at least one ballot on a vote of the meeting
_HAS_BALLOT_SQL = """
    EXISTS (
        SELECT 1 FROM ballots b
        JOIN votes v ON v.id = b.vote_id
        WHERE v.meeting_id = ? AND b.member_id = ?
    )
"""

# Meeting still accepts attendance changes
_MEETING_OPEN_SQL = """
    EXISTS (
        SELECT 1 FROM meetings m
        WHERE m.id = ? AND m.status NOT IN ('COMPLETED', 'CANCELLED')
    )
"""


class RegistrationResult(str, Enum):
    """What a register call did."""

    CREATED = "created"
    UNCHANGED = "unchanged"
    SWITCHED = "switched"
    CONFLICT = "conflict"


class AttendanceRepository:
    """Repository for the meeting_attendance table."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create attendance table if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS meeting_attendance (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                meeting_id TEXT NOT NULL,
                member_id TEXT NOT NULL,
                mode TEXT NOT NULL,
                registered_at TEXT NOT NULL,
                UNIQUE(meeting_id, member_id)
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_attendance_meeting
            ON meeting_attendance(meeting_id, mode)
            """,
            ]
        )

    async def get(self, meeting_id: UUID, member_id: str) -> AttendanceRecord | None:
        """Get a member's attendance record for a meeting."""
        result = await self._db.execute(
            """
            SELECT meeting_id, member_id, mode, registered_at
            FROM meeting_attendance
            WHERE meeting_id = ? AND member_id = ?
            """,
            [str(meeting_id), member_id],
        )
        return self._to_record(result.rows[0]) if result.rows else None

    async def list_for_meeting(self, meeting_id: UUID) -> list[AttendanceRecord]:
        """Get all attendance records of a meeting, in registration order."""
        result = await self._db.execute(
            """
            SELECT meeting_id, member_id, mode, registered_at
            FROM meeting_attendance
            WHERE meeting_id = ?
            ORDER BY registered_at ASC, id ASC
            """,
            [str(meeting_id)],
        )
        return [self._to_record(row) for row in result.rows]

    async def register(self, record: AttendanceRecord) -> RegistrationResult:
        """Insert or switch a member's attendance mode.

        Args:
            record: Desired attendance

        Returns:
            RegistrationResult describing the effect
        """
        inserted = await self._db.execute(
            f"""
            INSERT INTO meeting_attendance (meeting_id, member_id, mode, registered_at)
            SELECT ?, ?, ?, ?
            WHERE {_MEETING_OPEN_SQL}
            ON CONFLICT(meeting_id, member_id) DO NOTHING
            """,
            [
                str(record.meeting_id),
                record.member_id,
                record.mode.value,
                to_db_ts(record.registered_at),
                str(record.meeting_id),
            ],
        )
        if inserted.rows_affected > 0:
            return RegistrationResult.CREATED

        switched = await self._db.execute(
            f"""
            UPDATE meeting_attendance
            SET mode = ?, registered_at = ?
            WHERE meeting_id = ? AND member_id = ? AND mode != ?
              AND NOT {_HAS_BALLOT_SQL}
              AND {_MEETING_OPEN_SQL}
            """,
            [
                record.mode.value,
                to_db_ts(record.registered_at),
                str(record.meeting_id),
                record.member_id,
                record.mode.value,
                str(record.meeting_id),
                record.member_id,
                str(record.meeting_id),
            ],
        )
        if switched.rows_affected > 0:
            return RegistrationResult.SWITCHED

        current = await self.get(record.meeting_id, record.member_id)
        if current is not None and current.mode is record.mode:
            return RegistrationResult.UNCHANGED
        return RegistrationResult.CONFLICT

    async def withdraw(self, meeting_id: UUID, member_id: str) -> bool:
        """Remove attendance unless the member already cast a ballot
        or the meeting is locked.

        Returns:
            True if a record was removed
        """
        result = await self._db.execute(
            f"""
            DELETE FROM meeting_attendance
            WHERE meeting_id = ? AND member_id = ?
              AND NOT {_HAS_BALLOT_SQL}
              AND {_MEETING_OPEN_SQL}
            """,
            [str(meeting_id), member_id, str(meeting_id), member_id, str(meeting_id)],
        )
        return result.rows_affected > 0

    async def count_by_mode(self, meeting_id: UUID) -> dict[AttendanceMode, int]:
        """Count attendance records per mode with one aggregation."""
        result = await self._db.execute(
            """
            SELECT mode, COUNT(*)
            FROM meeting_attendance
            WHERE meeting_id = ?
            GROUP BY mode
            """,
            [str(meeting_id)],
        )
        counts = dict.fromkeys(AttendanceMode, 0)
        for row in result.rows:
            counts[AttendanceMode(row[0])] = row[1]
        return counts

    @staticmethod
    def _to_record(row: Any) -> AttendanceRecord:
        return AttendanceRecord(
            meeting_id=UUID(row[0]),
            member_id=row[1],
            mode=AttendanceMode(row[2]),
            registered_at=from_db_ts(row[3]),
        )

"""Repository for meeting protocols.

Protocol rows are append-only. Storage enforces the lifecycle:

- UPDATE of any protocol row is rejected by trigger
- DELETE of a FINAL row is rejected by trigger
- a partial unique index allows one FINAL row per meeting
- UNIQUE(org_id, protocol_number) keeps numbers unique per organization
- rendered documents live in their own insert-only table, one per protocol
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from src.db.turso import TursoClient
from src.models.protocol import (
    MeetingProtocol,
    ProtocolSnapshot,
    ProtocolStatus,
    RenderedDocument,
)
from src.repositories.codec import from_db_ts, to_db_ts

logger = logging.getLogger(__name__)

_PROTOCOL_SELECT = """
    SELECT p.id, p.org_id, p.meeting_id, p.protocol_number, p.version, p.status,
           p.snapshot, p.snapshot_hash, p.created_by, p.created_at,
           p.finalized_by, p.finalized_at,
           d.document_ref, d.attached_at, d.attached_by
    FROM meeting_protocols p
    LEFT JOIN protocol_documents d ON d.protocol_id = p.id
"""

_NEXT_VERSION_SQL = """
    SELECT COALESCE(MAX(version), 0) + 1 AS next_version
    FROM meeting_protocols
    WHERE meeting_id = ?
"""


class ProtocolRepository:
    """Repository for protocol versions, numbering and rendered documents."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create protocol tables, indexes and guard triggers if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS meeting_protocols (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                meeting_id TEXT NOT NULL,
                protocol_number INTEGER,
                version INTEGER NOT NULL,
                status TEXT NOT NULL,
                snapshot TEXT NOT NULL,
                snapshot_hash TEXT NOT NULL,
                created_by TEXT,
                created_at TEXT NOT NULL,
                finalized_by TEXT,
                finalized_at TEXT,
                UNIQUE(meeting_id, version),
                UNIQUE(org_id, protocol_number)
            )
            """,
                """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_protocols_one_final
            ON meeting_protocols(meeting_id) WHERE status = 'FINAL'
            """,
                """
            CREATE TRIGGER IF NOT EXISTS protocols_no_update
            BEFORE UPDATE ON meeting_protocols
            BEGIN
                SELECT RAISE(ABORT, 'protocol rows are append-only');
            END
            """,
                """
            CREATE TRIGGER IF NOT EXISTS protocols_final_no_delete
            BEFORE DELETE ON meeting_protocols
            WHEN OLD.status = 'FINAL'
            BEGIN
                SELECT RAISE(ABORT, 'final protocols cannot be deleted');
            END
            """,
                """
            CREATE TABLE IF NOT EXISTS protocol_counters (
                org_id TEXT PRIMARY KEY,
                last_number INTEGER NOT NULL
            )
            """,
                """
            CREATE TABLE IF NOT EXISTS protocol_documents (
                protocol_id TEXT PRIMARY KEY REFERENCES meeting_protocols(id),
                document_ref TEXT NOT NULL,
                attached_at TEXT NOT NULL,
                attached_by TEXT
            )
            """,
                """
            CREATE TRIGGER IF NOT EXISTS protocol_documents_no_update
            BEFORE UPDATE ON protocol_documents
            BEGIN
                SELECT RAISE(ABORT, 'protocol documents are append-only');
            END
            """,
            ]
        )

    async def insert_draft(
        self,
        protocol_id: UUID,
        org_id: str,
        meeting_id: UUID,
        snapshot_json: str,
        snapshot_hash: str,
        created_by: str | None,
        created_at: datetime,
    ) -> bool:
        """Store a DRAFT version unless the meeting already has a FINAL one.

        Returns:
            True if the draft was stored
        """
        result = await self._db.execute(
            f"""
            INSERT INTO meeting_protocols
                (id, org_id, meeting_id, protocol_number, version, status,
                 snapshot, snapshot_hash, created_by, created_at)
            SELECT ?, ?, ?, NULL, next_version, 'DRAFT', ?, ?, ?, ?
            FROM ({_NEXT_VERSION_SQL})
            WHERE NOT EXISTS (
                SELECT 1 FROM meeting_protocols
                WHERE meeting_id = ? AND status = 'FINAL'
            )
            """,
            [
                str(protocol_id),
                org_id,
                str(meeting_id),
                snapshot_json,
                snapshot_hash,
                created_by,
                to_db_ts(created_at),
                str(meeting_id),
                str(meeting_id),
            ],
        )
        return result.rows_affected > 0

    async def insert_final(
        self,
        protocol_id: UUID,
        org_id: str,
        meeting_id: UUID,
        snapshot_json: str,
        snapshot_hash: str,
        finalized_by: str | None,
        finalized_at: datetime,
    ) -> bool:
        """Store the FINAL protocol, number it and complete the meeting.

        Runs as one transaction: the protocol row takes the org's next
        protocol number and the meeting's next version, the org counter
        advances to that number, and the meeting becomes COMPLETED. Nothing
        is written while an OPEN vote remains or when the meeting was
        cancelled. A concurrent FINAL for the same meeting violates the
        one-final index and rolls everything back.

        Returns:
            True if the FINAL protocol was stored, False if open votes
            remain or the meeting is cancelled

        Raises:
            LibsqlError: If a constraint (e.g. an existing FINAL) rejects it
        """
        results = await self._db.execute_batch(
            [
                (
                    f"""
                INSERT INTO meeting_protocols
                    (id, org_id, meeting_id, protocol_number, version, status,
                     snapshot, snapshot_hash, created_by, created_at,
                     finalized_by, finalized_at)
                SELECT ?, ?, ?,
                       COALESCE(
                           (SELECT last_number FROM protocol_counters WHERE org_id = ?),
                           0
                       ) + 1,
                       next_version, 'FINAL', ?, ?, ?, ?, ?, ?
                FROM ({_NEXT_VERSION_SQL})
                WHERE NOT EXISTS (
                    SELECT 1 FROM votes WHERE meeting_id = ? AND status = 'OPEN'
                )
                AND EXISTS (
                    SELECT 1 FROM meetings WHERE id = ? AND status != 'CANCELLED'
                )
                """,
                    [
                        str(protocol_id),
                        org_id,
                        str(meeting_id),
                        org_id,
                        snapshot_json,
                        snapshot_hash,
                        finalized_by,
                        to_db_ts(finalized_at),
                        finalized_by,
                        to_db_ts(finalized_at),
                        str(meeting_id),
                        str(meeting_id),
                        str(meeting_id),
                    ],
                ),
                (
                    """
                INSERT INTO protocol_counters (org_id, last_number)
                SELECT org_id, protocol_number FROM meeting_protocols WHERE id = ?
                ON CONFLICT(org_id) DO UPDATE SET last_number = excluded.last_number
                """,
                    [str(protocol_id)],
                ),
                (
                    """
                UPDATE meetings SET status = 'COMPLETED'
                WHERE id = ?
                  AND EXISTS (SELECT 1 FROM meeting_protocols WHERE id = ?)
                """,
                    [str(meeting_id), str(protocol_id)],
                ),
            ]
        )
        stored = results[0].rows_affected > 0
        if stored:
            logger.info(f"Finalized protocol {protocol_id} for meeting {meeting_id}")
        return stored

    async def get(self, protocol_id: UUID) -> MeetingProtocol | None:
        """Get a protocol version by ID."""
        result = await self._db.execute(
            _PROTOCOL_SELECT + " WHERE p.id = ?",
            [str(protocol_id)],
        )
        return self._to_protocol(result.rows[0]) if result.rows else None

    async def get_final_for_meeting(self, meeting_id: UUID) -> MeetingProtocol | None:
        """Get the meeting's FINAL protocol, if it has one."""
        result = await self._db.execute(
            _PROTOCOL_SELECT + " WHERE p.meeting_id = ? AND p.status = 'FINAL'",
            [str(meeting_id)],
        )
        return self._to_protocol(result.rows[0]) if result.rows else None

    async def list_for_meeting(self, meeting_id: UUID) -> list[MeetingProtocol]:
        """Get every stored version of a meeting's protocol, newest first."""
        result = await self._db.execute(
            _PROTOCOL_SELECT + " WHERE p.meeting_id = ? ORDER BY p.version DESC",
            [str(meeting_id)],
        )
        return [self._to_protocol(row) for row in result.rows]

    async def attach_document(
        self,
        protocol_id: UUID,
        document_ref: str,
        attached_by: str | None,
        attached_at: datetime,
    ) -> bool:
        """Record the rendered document of a FINAL protocol, once.

        Returns:
            True if attached, False if the protocol is not FINAL or
            already has a document
        """
        result = await self._db.execute(
            """
            INSERT INTO protocol_documents
                (protocol_id, document_ref, attached_at, attached_by)
            SELECT ?, ?, ?, ?
            WHERE EXISTS (
                SELECT 1 FROM meeting_protocols WHERE id = ? AND status = 'FINAL'
            )
            ON CONFLICT(protocol_id) DO NOTHING
            """,
            [
                str(protocol_id),
                document_ref,
                to_db_ts(attached_at),
                attached_by,
                str(protocol_id),
            ],
        )
        return result.rows_affected > 0

    async def last_protocol_number(self, org_id: str) -> int:
        """Highest protocol number handed out for an org (0 if none)."""
        result = await self._db.execute(
            "SELECT last_number FROM protocol_counters WHERE org_id = ?",
            [org_id],
        )
        return result.rows[0][0] if result.rows else 0

    @staticmethod
    def _to_protocol(row: Any) -> MeetingProtocol:
        document = None
        if row[12]:
            document = RenderedDocument(
                document_ref=row[12],
                attached_at=from_db_ts(row[13]),
                attached_by=row[14],
            )
        return MeetingProtocol(
            id=UUID(row[0]),
            org_id=row[1],
            meeting_id=UUID(row[2]),
            protocol_number=row[3],
            version=row[4],
            status=ProtocolStatus(row[5]),
            snapshot=ProtocolSnapshot.model_validate_json(row[6]),
            snapshot_hash=row[7],
            created_by=row[8],
            created_at=from_db_ts(row[9]),
            finalized_by=row[10],
            finalized_at=from_db_ts(row[11]),
            document=document,
        )

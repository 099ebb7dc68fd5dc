"""Repository for votes and ballots.

The ballots table is append-only: a UNIQUE(vote_id, member_id) constraint
makes a second ballot from the same member impossible, and triggers
reject every UPDATE or DELETE.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from src.db.turso import TursoClient
from src.models.attendance import AttendanceMode
from src.models.vote import Ballot, Vote, VoteChannel, VoteChoice, VoteStatus
from src.repositories.codec import from_db_id, from_db_ts, to_db_id, to_db_ts

logger = logging.getLogger(__name__)

_VOTE_COLUMNS = """id, org_id, meeting_id, agenda_item_id, resolution_id, status,
                   opened_at, closed_at, closed_by, created_at"""


class VoteRepository:
    """Repository for the vote ledger tables."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create votes and ballots tables if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS votes (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                meeting_id TEXT NOT NULL,
                agenda_item_id TEXT NOT NULL UNIQUE,
                resolution_id TEXT,
                status TEXT NOT NULL,
                opened_at TEXT NOT NULL,
                closed_at TEXT,
                closed_by TEXT,
                created_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_votes_meeting
            ON votes(meeting_id, status)
            """,
                """
            CREATE TABLE IF NOT EXISTS ballots (
                id TEXT PRIMARY KEY,
                vote_id TEXT NOT NULL REFERENCES votes(id),
                member_id TEXT NOT NULL,
                choice TEXT NOT NULL,
                channel TEXT NOT NULL,
                cast_at TEXT NOT NULL,
                UNIQUE(vote_id, member_id)
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_ballots_member
            ON ballots(member_id)
            """,
                """
            CREATE TRIGGER IF NOT EXISTS ballots_no_update
            BEFORE UPDATE ON ballots
            BEGIN
                SELECT RAISE(ABORT, 'ballots are immutable');
            END
            """,
                """
            CREATE TRIGGER IF NOT EXISTS ballots_no_delete
            BEFORE DELETE ON ballots
            BEGIN
                SELECT RAISE(ABORT, 'ballots are immutable');
            END
            """,
                """
            CREATE TRIGGER IF NOT EXISTS votes_never_reopen
            BEFORE UPDATE OF status ON votes
            WHEN OLD.status = 'CLOSED'
            BEGIN
                SELECT RAISE(ABORT, 'closed votes cannot change');
            END
            """,
            ]
        )

    # Votes

    async def create_vote(self, vote: Vote) -> bool:
        """Insert a vote unless the item already has one or the meeting is locked.

        Returns:
            True if the vote was created
        """
        result = await self._db.execute(
            """
            INSERT INTO votes
                (id, org_id, meeting_id, agenda_item_id, resolution_id, status,
                 opened_at, closed_at, closed_by, created_at)
            SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
            WHERE EXISTS (
                SELECT 1 FROM meetings
                WHERE id = ? AND status NOT IN ('COMPLETED', 'CANCELLED')
            )
            ON CONFLICT(agenda_item_id) DO NOTHING
            """,
            [
                str(vote.id),
                vote.org_id,
                str(vote.meeting_id),
                str(vote.agenda_item_id),
                to_db_id(vote.resolution_id),
                vote.status.value,
                to_db_ts(vote.opened_at),
                to_db_ts(vote.closed_at),
                vote.closed_by,
                to_db_ts(vote.created_at),
                str(vote.meeting_id),
            ],
        )
        return result.rows_affected > 0

    async def get_vote(self, vote_id: UUID) -> Vote | None:
        """Get a vote by ID."""
        result = await self._db.execute(
            f"SELECT {_VOTE_COLUMNS} FROM votes WHERE id = ?",
            [str(vote_id)],
        )
        return self._to_vote(result.rows[0]) if result.rows else None

    async def get_vote_for_agenda_item(self, agenda_item_id: UUID) -> Vote | None:
        """Get the vote attached to an agenda item, if any."""
        result = await self._db.execute(
            f"SELECT {_VOTE_COLUMNS} FROM votes WHERE agenda_item_id = ?",
            [str(agenda_item_id)],
        )
        return self._to_vote(result.rows[0]) if result.rows else None

    async def list_votes_for_meeting(
        self,
        meeting_id: UUID,
        status: VoteStatus | None = None,
    ) -> list[Vote]:
        """Get all votes of a meeting, optionally filtered by status."""
        sql = f"SELECT {_VOTE_COLUMNS} FROM votes WHERE meeting_id = ?"
        params: list[Any] = [str(meeting_id)]
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        result = await self._db.execute(sql + " ORDER BY opened_at ASC", params)
        return [self._to_vote(row) for row in result.rows]

    async def close_vote(
        self,
        vote_id: UUID,
        closed_at: datetime,
        closed_by: str | None,
    ) -> bool:
        """Close an OPEN vote and apply its outcome to the linked resolution.

        Both statements run in one batch. The resolution becomes APPROVED
        when FOR ballots outnumber AGAINST ballots, REJECTED otherwise.
        Ballots cannot change once the vote is CLOSED, so re-applying the
        outcome is idempotent.

        Returns:
            True if this call closed the vote, False if it was not OPEN
        """
        results = await self._db.execute_batch(
            [
                (
                    """
            UPDATE votes
            SET status = 'CLOSED', closed_at = ?, closed_by = ?
            WHERE id = ? AND status = 'OPEN'
            """,
                    [to_db_ts(closed_at), closed_by, str(vote_id)],
                ),
                (
                    """
            UPDATE resolutions
            SET status = CASE
                WHEN (SELECT COUNT(*) FROM ballots WHERE vote_id = ? AND choice = 'FOR')
                   > (SELECT COUNT(*) FROM ballots WHERE vote_id = ? AND choice = 'AGAINST')
                THEN 'APPROVED'
                ELSE 'REJECTED'
            END
            WHERE id = (
                SELECT resolution_id FROM votes WHERE id = ? AND status = 'CLOSED'
            )
            """,
                    [str(vote_id), str(vote_id), str(vote_id)],
                ),
            ]
        )
        return results[0].rows_affected > 0

    @staticmethod
    def _to_vote(row: Any) -> Vote:
        return Vote(
            id=UUID(row[0]),
            org_id=row[1],
            meeting_id=UUID(row[2]),
            agenda_item_id=UUID(row[3]),
            resolution_id=from_db_id(row[4]),
            status=VoteStatus(row[5]),
            opened_at=from_db_ts(row[6]),
            closed_at=from_db_ts(row[7]),
            closed_by=row[8],
            created_at=from_db_ts(row[9]),
        )

    # Ballots

    async def insert_ballot(
        self,
        ballot: Ballot,
        meeting_id: UUID,
        allowed_modes: Iterable[AttendanceMode],
    ) -> bool:
        """Atomically insert a ballot if every storage-level rule holds.

        One statement checks that the vote is OPEN, the meeting is not
        locked, the member's attendance mode grants the ballot's channel
        and that no ballot exists for (vote, member).

        Returns:
            True if the ballot was stored, False if any rule refused it
        """
        modes = [mode.value for mode in allowed_modes]
        mode_placeholders = ", ".join("?" for _ in modes)
        result = await self._db.execute(
            f"""
            INSERT INTO ballots (id, vote_id, member_id, choice, channel, cast_at)
            SELECT ?, ?, ?, ?, ?, ?
            WHERE EXISTS (
                SELECT 1 FROM votes v
                JOIN meetings m ON m.id = v.meeting_id
                WHERE v.id = ? AND v.status = 'OPEN'
                  AND m.status NOT IN ('COMPLETED', 'CANCELLED')
            )
            AND EXISTS (
                SELECT 1 FROM meeting_attendance a
                WHERE a.meeting_id = ? AND a.member_id = ?
                  AND a.mode IN ({mode_placeholders})
            )
            ON CONFLICT(vote_id, member_id) DO NOTHING
            """,
            [
                str(ballot.id),
                str(ballot.vote_id),
                ballot.member_id,
                ballot.choice.value,
                ballot.channel.value,
                to_db_ts(ballot.cast_at),
                str(ballot.vote_id),
                str(meeting_id),
                ballot.member_id,
                *modes,
            ],
        )
        return result.rows_affected > 0

    async def get_ballot(self, vote_id: UUID, member_id: str) -> Ballot | None:
        """Get a member's ballot on a vote."""
        result = await self._db.execute(
            """
            SELECT id, vote_id, member_id, choice, channel, cast_at
            FROM ballots
            WHERE vote_id = ? AND member_id = ?
            """,
            [str(vote_id), member_id],
        )
        if not result.rows:
            return None
        row = result.rows[0]
        return Ballot(
            id=UUID(row[0]),
            vote_id=UUID(row[1]),
            member_id=row[2],
            choice=VoteChoice(row[3]),
            channel=VoteChannel(row[4]),
            cast_at=from_db_ts(row[5]),
        )

    async def count_by_channel_and_choice(
        self,
        vote_id: UUID,
    ) -> list[tuple[VoteChannel, VoteChoice, int]]:
        """Aggregate a vote's ballots in a single query.

        Returns:
            (channel, choice, count) for every combination that occurs
        """
        result = await self._db.execute(
            """
            SELECT channel, choice, COUNT(*)
            FROM ballots
            WHERE vote_id = ?
            GROUP BY channel, choice
            """,
            [str(vote_id)],
        )
        return [(VoteChannel(row[0]), VoteChoice(row[1]), row[2]) for row in result.rows]

    async def count_ballots(self, vote_id: UUID) -> int:
        result = await self._db.execute(
            "SELECT COUNT(*) FROM ballots WHERE vote_id = ?",
            [str(vote_id)],
        )
        return result.rows[0][0]

    async def voted_vote_ids(self, member_id: str, vote_ids: list[UUID]) -> set[UUID]:
        """Which of the given votes the member already has a ballot on."""
        if not vote_ids:
            return set()
        placeholders = ", ".join("?" for _ in vote_ids)
        result = await self._db.execute(
            f"""
            SELECT vote_id FROM ballots
            WHERE member_id = ? AND vote_id IN ({placeholders})
            """,
            [member_id, *(str(v) for v in vote_ids)],
        )
        return {UUID(row[0]) for row in result.rows}

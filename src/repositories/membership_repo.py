"""Local membership roster.

Implements the membership authority contract (standing lookups, active
member counts and the org quorum rule) from tables kept in sync with the
membership system. Used when no remote authority is configured.
"""

from libsql_client import LibsqlError

from src.config import settings
from src.db.turso import TursoClient
from src.governance.errors import QuorumUnavailableError
from src.models.membership import (
    CHAIR_ROLES,
    MemberRole,
    Membership,
    MembershipStatus,
    MemberStanding,
    QuorumRule,
)


class MembershipRepository:
    """Repository for memberships and org-level quorum rules.

    Stores one row per (org, member). Uses SQLite (via TursoClient) for
    persistence.
    """

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create membership tables if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS memberships (
                org_id TEXT NOT NULL,
                member_id TEXT NOT NULL,
                status TEXT NOT NULL,
                role TEXT NOT NULL,
                can_vote INTEGER NOT NULL DEFAULT 1,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (org_id, member_id)
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_memberships_active
            ON memberships(org_id, status)
            """,
                """
            CREATE TABLE IF NOT EXISTS org_quorum_rules (
                org_id TEXT PRIMARY KEY,
                min_present INTEGER,
                required_percentage REAL,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """,
            ]
        )

    async def save_membership(self, membership: Membership) -> None:
        """Save a membership (upsert).

        Args:
            membership: Roster entry to store
        """
        await self._db.execute(
            """
            INSERT INTO memberships (org_id, member_id, status, role, can_vote)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(org_id, member_id)
            DO UPDATE SET
                status = excluded.status,
                role = excluded.role,
                can_vote = excluded.can_vote,
                updated_at = CURRENT_TIMESTAMP
            """,
            [
                membership.org_id,
                membership.member_id,
                membership.status.value,
                membership.role.value,
                1 if membership.can_vote else 0,
            ],
        )

    async def add_membership_if_absent(self, membership: Membership) -> bool:
        """Insert a roster entry unless the member is already on the roster.

        Returns:
            True if the entry was created
        """
        result = await self._db.execute(
            """
            INSERT INTO memberships (org_id, member_id, status, role, can_vote)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(org_id, member_id) DO NOTHING
            """,
            [
                membership.org_id,
                membership.member_id,
                membership.status.value,
                membership.role.value,
                1 if membership.can_vote else 0,
            ],
        )
        return result.rows_affected > 0

    async def get_membership(self, org_id: str, member_id: str) -> Membership | None:
        """Get a roster entry.

        Returns:
            Membership or None if the member is unknown to the org
        """
        result = await self._db.execute(
            """
            SELECT org_id, member_id, status, role, can_vote
            FROM memberships
            WHERE org_id = ? AND member_id = ?
            """,
            [org_id, member_id],
        )
        if not result.rows:
            return None
        row = result.rows[0]
        return Membership(
            org_id=row[0],
            member_id=row[1],
            status=MembershipStatus(row[2]),
            role=MemberRole(row[3]),
            can_vote=bool(row[4]),
        )

    async def get_standing(self, org_id: str, member_id: str) -> MemberStanding:
        """Current standing of a member; unknown members have none."""
        membership = await self.get_membership(org_id, member_id)
        if membership is None:
            return MemberStanding()
        active = membership.status is MembershipStatus.ACTIVE
        return MemberStanding(
            active=active,
            can_vote=active and membership.can_vote,
            role=membership.role,
        )

    async def count_active_members(self, org_id: str, *, board_only: bool = False) -> int:
        """Count ACTIVE memberships at this moment.

        Args:
            org_id: Organization identifier
            board_only: Count only members holding chair/board roles

        Raises:
            QuorumUnavailableError: If the roster cannot be read
        """
        sql = "SELECT COUNT(*) FROM memberships WHERE org_id = ? AND status = 'ACTIVE'"
        params: list = [org_id]
        if board_only:
            roles = sorted(role.value for role in CHAIR_ROLES)
            sql += f" AND role IN ({', '.join('?' for _ in roles)})"
            params.extend(roles)
        try:
            result = await self._db.execute(sql, params)
        except LibsqlError as e:
            raise QuorumUnavailableError(f"Membership roster unavailable: {e}") from e
        return result.rows[0][0]

    async def get_quorum_rule(self, org_id: str) -> QuorumRule:
        """Get the org's quorum rule, falling back to the configured default.

        Raises:
            QuorumUnavailableError: If the rule cannot be read
        """
        try:
            result = await self._db.execute(
                "SELECT min_present, required_percentage FROM org_quorum_rules WHERE org_id = ?",
                [org_id],
            )
        except LibsqlError as e:
            raise QuorumUnavailableError(f"Quorum rule unavailable: {e}") from e
        if not result.rows:
            return QuorumRule(required_percentage=settings.default_quorum_percentage)
        row = result.rows[0]
        return QuorumRule(min_present=row[0], required_percentage=row[1])

    async def save_quorum_rule(self, org_id: str, rule: QuorumRule) -> None:
        """Save an org's quorum rule (upsert)."""
        await self._db.execute(
            """
            INSERT INTO org_quorum_rules (org_id, min_present, required_percentage)
            VALUES (?, ?, ?)
            ON CONFLICT(org_id)
            DO UPDATE SET
                min_present = excluded.min_present,
                required_percentage = excluded.required_percentage,
                updated_at = CURRENT_TIMESTAMP
            """,
            [org_id, rule.min_present, rule.required_percentage],
        )

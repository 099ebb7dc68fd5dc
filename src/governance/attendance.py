"""Attendance registry.

A member holds one attendance mode per meeting. Re-registering the same
mode is a no-op; switching modes or withdrawing is allowed only while
the member has no ballot in the meeting, which the repository checks in
the same statement that applies the change.
"""

from uuid import UUID

import structlog

from src.events.types import AttendanceRegistered, AttendanceWithdrawn
from src.governance.audit import AuditTrail
from src.governance.eligibility import VotingEligibility, require_chair
from src.governance.errors import (
    AttendanceConflictError,
    MeetingLockedError,
    MeetingNotFoundError,
    NotEligibleError,
)
from src.models.attendance import AttendanceMode, AttendanceRecord
from src.models.meeting import Meeting
from src.repositories.attendance_repo import AttendanceRepository, RegistrationResult
from src.repositories.meeting_repo import MeetingRepository

logger = structlog.get_logger()


class AttendanceService:
    """Registers, switches and withdraws meeting attendance."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        meetings: MeetingRepository,
        eligibility: VotingEligibility,
        audit: AuditTrail | None = None,
    ):
        self._attendance = attendance
        self._meetings = meetings
        self._eligibility = eligibility
        self._audit = audit or AuditTrail(None)

    async def _check_actor(self, meeting: Meeting, member_id: str, actor_id: str | None) -> None:
        """Members manage their own attendance; chairs may manage anyone's."""
        if actor_id is not None and actor_id != member_id:
            await require_chair(self._eligibility, meeting.org_id, actor_id)

    async def _open_meeting(self, meeting_id: UUID) -> Meeting:
        meeting = await self._meetings.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        if meeting.is_locked:
            raise MeetingLockedError(f"Meeting {meeting.id} is {meeting.status.value}")
        return meeting

    async def register_attendance(
        self,
        meeting_id: UUID,
        member_id: str,
        mode: AttendanceMode,
        actor_id: str | None = None,
    ) -> AttendanceRecord:
        """Register (or switch) a member's attendance mode.

        Raises:
            MeetingNotFoundError: Unknown meeting
            MeetingLockedError: Meeting is COMPLETED or CANCELLED
            NotAuthorizedError: Actor is neither the member nor a chair
            NotEligibleError: Member has no active membership
            AttendanceConflictError: Switching after a ballot was cast
        """
        meeting = await self._open_meeting(meeting_id)
        await self._check_actor(meeting, member_id, actor_id)
        standing = await self._eligibility.get_standing(meeting.org_id, member_id)
        if not standing.active:
            raise NotEligibleError(f"Member {member_id} has no active membership")

        result = await self._attendance.register(
            AttendanceRecord(meeting_id=meeting.id, member_id=member_id, mode=mode)
        )
        if result is RegistrationResult.CONFLICT:
            # Either the meeting locked meanwhile or ballots pin the current mode
            await self._open_meeting(meeting.id)
            current = await self._attendance.get(meeting.id, member_id)
            held = current.mode.value if current else "none"
            raise AttendanceConflictError(
                f"Member {member_id} already voted while attending as {held}"
            )

        record = await self._attendance.get(meeting.id, member_id)
        if record is None:
            msg = f"Attendance of {member_id} missing after registration"
            raise RuntimeError(msg)

        if result is not RegistrationResult.UNCHANGED:
            logger.info(
                "attendance registered",
                meeting_id=str(meeting.id),
                member_id=member_id,
                mode=mode.value,
                result=result.value,
            )
            await self._audit.record(
                AttendanceRegistered(
                    aggregate_id=meeting.id,
                    org_id=meeting.org_id,
                    meeting_id=meeting.id,
                    actor_id=actor_id or member_id,
                    member_id=member_id,
                    mode=mode,
                    switched=result is RegistrationResult.SWITCHED,
                )
            )
        return record

    async def unregister_attendance(
        self,
        meeting_id: UUID,
        member_id: str,
        actor_id: str | None = None,
    ) -> bool:
        """Withdraw a member's attendance.

        Returns:
            True if a record was removed, False if none existed

        Raises:
            AttendanceConflictError: The member already voted in the meeting
        """
        meeting = await self._open_meeting(meeting_id)
        await self._check_actor(meeting, member_id, actor_id)
        if await self._attendance.withdraw(meeting.id, member_id):
            logger.info(
                "attendance withdrawn", meeting_id=str(meeting.id), member_id=member_id
            )
            await self._audit.record(
                AttendanceWithdrawn(
                    aggregate_id=meeting.id,
                    org_id=meeting.org_id,
                    meeting_id=meeting.id,
                    actor_id=actor_id or member_id,
                    member_id=member_id,
                )
            )
            return True

        if await self._attendance.get(meeting.id, member_id) is None:
            return False
        await self._open_meeting(meeting.id)
        raise AttendanceConflictError(
            f"Member {member_id} already voted and cannot withdraw attendance"
        )

    async def list_attendance(self, meeting_id: UUID) -> list[AttendanceRecord]:
        """All attendance records of a meeting."""
        meeting = await self._meetings.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        return await self._attendance.list_for_meeting(meeting.id)

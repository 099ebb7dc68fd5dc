"""Quorum calculation.

evaluate_quorum is a pure function of attendance counts, the number of
eligible members and the org's QuorumRule. QuorumCalculator gathers
those inputs fresh on every call: eligible members are counted at
computation time, never carried over from an earlier read.
"""

import math
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

import structlog

from src.adapters.base import MembershipAuthority
from src.models.attendance import AttendanceMode
from src.models.meeting import Meeting
from src.models.membership import QuorumRule
from src.models.protocol import QuorumOutcome
from src.repositories.attendance_repo import AttendanceRepository

logger = structlog.get_logger()

_HUNDRED = Decimal(100)
_TWO_PLACES = Decimal("0.01")


def required_count(rule: QuorumRule, total_eligible: int) -> int:
    """Head count needed for quorum under a rule."""
    if rule.min_present is not None:
        return rule.min_present
    # str() keeps the configured percentage exact (e.g. 33.3, not 33.29999...)
    pct = Decimal(str(rule.required_percentage))
    return math.ceil(Decimal(total_eligible) * pct / _HUNDRED)


def evaluate_quorum(
    counts: Mapping[AttendanceMode, int],
    total_eligible: int,
    rule: QuorumRule,
) -> QuorumOutcome:
    """Compare attendance against the quorum rule.

    Args:
        counts: Attendance records per mode (modes are mutually exclusive)
        total_eligible: ACTIVE members counted for this meeting
        rule: The organization's quorum rule

    Returns:
        QuorumOutcome with head counts, threshold and verdict
    """
    in_person = counts.get(AttendanceMode.IN_PERSON, 0)
    written = counts.get(AttendanceMode.WRITTEN_PROXY, 0)
    remote = counts.get(AttendanceMode.REMOTE, 0)
    present = in_person + written + remote
    required = required_count(rule, total_eligible)

    percentage = Decimal(0)
    if total_eligible > 0:
        percentage = (Decimal(present) * _HUNDRED / Decimal(total_eligible)).quantize(
            _TWO_PLACES, rounding=ROUND_HALF_UP
        )

    return QuorumOutcome(
        present_in_person=in_person,
        present_written=written,
        present_remote=remote,
        present_total=present,
        total_eligible=total_eligible,
        required_count=required,
        has_quorum=present >= required,
        quorum_percentage=float(percentage),
    )


class QuorumCalculator:
    """Gathers attendance, eligible members and rule, then evaluates quorum."""

    def __init__(self, attendance: AttendanceRepository, authority: MembershipAuthority):
        self._attendance = attendance
        self._authority = authority

    async def calculate(self, meeting: Meeting) -> QuorumOutcome:
        """Evaluate quorum for a meeting against current membership.

        Raises:
            QuorumUnavailableError: If membership counts cannot be obtained
        """
        counts = await self._attendance.count_by_mode(meeting.id)
        total_eligible = await self._authority.count_active_members(
            meeting.org_id, board_only=meeting.meeting_type.board_only
        )
        rule = await self._authority.get_quorum_rule(meeting.org_id)
        outcome = evaluate_quorum(counts, total_eligible, rule)
        logger.debug(
            "quorum evaluated",
            meeting_id=str(meeting.id),
            present=outcome.present_total,
            required=outcome.required_count,
            has_quorum=outcome.has_quorum,
        )
        return outcome

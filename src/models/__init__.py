"""Canonical data models for the governance core.

This module exports all domain models used throughout the application:
- BaseEntity: Base class with id, timestamps
- Meeting, AgendaItem, Resolution, Attachment: the meeting aggregate
- Vote, Ballot: the vote ledger
- AttendanceRecord: who takes part and how
- Membership, MemberStanding, QuorumRule: membership authority contract
- ProtocolSnapshot, MeetingProtocol: the protocol record
"""

from src.models.attendance import AttendanceMode, AttendanceRecord
from src.models.base import BaseEntity
from src.models.meeting import (
    AgendaItem,
    Attachment,
    Meeting,
    MeetingStatus,
    MeetingType,
    Resolution,
    ResolutionStatus,
)
from src.models.membership import (
    MemberRole,
    Membership,
    MembershipStatus,
    MemberStanding,
    QuorumRule,
)
from src.models.protocol import (
    AttendanceSummary,
    MeetingProtocol,
    ProtocolSnapshot,
    ProtocolStatus,
    QuorumOutcome,
    Tally,
    VoteOutcome,
    VoteTallies,
)
from src.models.vote import Ballot, CastEligibility, Vote, VoteChannel, VoteChoice, VoteStatus

__all__ = [
    # Base
    "BaseEntity",
    # Meeting
    "Meeting",
    "MeetingStatus",
    "MeetingType",
    "AgendaItem",
    "Attachment",
    "Resolution",
    "ResolutionStatus",
    # Voting
    "Vote",
    "VoteStatus",
    "VoteChoice",
    "VoteChannel",
    "Ballot",
    "CastEligibility",
    # Attendance
    "AttendanceMode",
    "AttendanceRecord",
    # Membership
    "Membership",
    "MembershipStatus",
    "MemberRole",
    "MemberStanding",
    "QuorumRule",
    # Protocol
    "Tally",
    "VoteTallies",
    "VoteOutcome",
    "AttendanceSummary",
    "QuorumOutcome",
    "ProtocolSnapshot",
    "ProtocolStatus",
    "MeetingProtocol",
]

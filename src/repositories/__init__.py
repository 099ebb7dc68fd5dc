"""Repository layer for data persistence.

Provides repository classes for persisting governance data to the
database. Repositories own their schema (initialize()) and encode the
storage-level guarantees: unique ballots, append-only protocols and
conditional state transitions.
"""

from src.repositories.attendance_repo import AttendanceRepository, RegistrationResult
from src.repositories.meeting_repo import MeetingRepository
from src.repositories.membership_repo import MembershipRepository
from src.repositories.protocol_repo import ProtocolRepository
from src.repositories.vote_repo import VoteRepository

__all__ = [
    "AttendanceRepository",
    "MeetingRepository",
    "MembershipRepository",
    "ProtocolRepository",
    "RegistrationResult",
    "VoteRepository",
]

"""Event infrastructure for the governance audit trail.

Provides:
- Event: Base class for all domain events
- EventBus: In-process pub/sub for event routing
- EventStore: Append-only event persistence
"""

from src.events.base import Event
from src.events.bus import EventBus
from src.events.store import EventStore
from src.events.types import (
    AttendanceRegistered,
    AttendanceWithdrawn,
    BallotCast,
    GovernanceEvent,
    ProtocolDocumentAttached,
    ProtocolDraftSaved,
    ProtocolFinalized,
    VoteClosed,
    VoteOpened,
)

__all__ = [
    # Base
    "Event",
    "GovernanceEvent",
    # Infrastructure
    "EventBus",
    "EventStore",
    # Event types
    "VoteOpened",
    "BallotCast",
    "VoteClosed",
    "AttendanceRegistered",
    "AttendanceWithdrawn",
    "ProtocolDraftSaved",
    "ProtocolFinalized",
    "ProtocolDocumentAttached",
]

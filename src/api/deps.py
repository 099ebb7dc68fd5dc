"""FastAPI dependencies resolving services from app state."""

from typing import Annotated

from fastapi import Header, HTTPException, Request

from src.adapters.base import MembershipAuthority
from src.events.store import EventStore
from src.governance.attendance import AttendanceService
from src.governance.finalizer import ProtocolFinalizer
from src.governance.ledger import VoteLedger
from src.governance.quorum import QuorumCalculator
from src.governance.tally import TallyReconciler
from src.repositories.meeting_repo import MeetingRepository
from src.repositories.membership_repo import MembershipRepository

# Caller identity, set by the authenticating gateway in front of the API
CallerId = Annotated[str, Header(alias="X-Member-Id", min_length=1)]


def get_ledger(request: Request) -> VoteLedger:
    """Dependency to get VoteLedger from app state."""
    return request.app.state.ledger


def get_tally(request: Request) -> TallyReconciler:
    return request.app.state.tally


def get_quorum(request: Request) -> QuorumCalculator:
    return request.app.state.quorum


def get_attendance(request: Request) -> AttendanceService:
    return request.app.state.attendance


def get_finalizer(request: Request) -> ProtocolFinalizer:
    return request.app.state.finalizer


def get_meeting_repo(request: Request) -> MeetingRepository:
    return request.app.state.meeting_repo


def get_authority(request: Request) -> MembershipAuthority:
    """Dependency to get the configured membership authority."""
    return request.app.state.membership_authority


def get_event_store(request: Request) -> EventStore:
    return request.app.state.event_store


def get_roster(request: Request) -> MembershipRepository:
    """Dependency to get the local roster.

    Raises:
        HTTPException: 409 when a remote membership authority is in use
    """
    roster = getattr(request.app.state, "membership_repo", None)
    if roster is None or request.app.state.membership_authority is not roster:
        raise HTTPException(
            status_code=409,
            detail="Membership is managed by a remote authority",
        )
    return roster

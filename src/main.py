"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.adapters.base import MembershipAuthority
from src.api.errors import register_exception_handlers
from src.api.router import api_router
from src.config import settings
from src.db.turso import TursoClient
from src.events.bus import EventBus
from src.events.store import EventStore
from src.governance.attendance import AttendanceService
from src.governance.audit import AuditTrail
from src.governance.finalizer import ProtocolFinalizer
from src.governance.ledger import VoteLedger
from src.governance.quorum import QuorumCalculator
from src.governance.snapshot import ProtocolSnapshotBuilder
from src.governance.tally import TallyReconciler
from src.models.membership import MemberRole, Membership
from src.repositories.attendance_repo import AttendanceRepository
from src.repositories.meeting_repo import MeetingRepository
from src.repositories.membership_repo import MembershipRepository
from src.repositories.protocol_repo import ProtocolRepository
from src.repositories.vote_repo import VoteRepository

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _select_membership_authority(roster: MembershipRepository) -> MembershipAuthority:
    """Use the remote authority when configured, else the local roster."""
    if settings.membership_authority_url:
        from src.adapters.membership_adapter import HttpMembershipAuthority

        logger.info(f"Using remote membership authority: {settings.membership_authority_url}")
        return HttpMembershipAuthority()
    logger.info("Using local membership roster")
    return roster


async def seed_initial_chairs(roster: MembershipRepository, chairs: dict[str, str]) -> None:
    """Give each configured org its first chair.

    Members already on the roster keep their current entry, so a restart
    never reinstates a chair who was suspended or demoted since.
    """
    for org_id, member_id in chairs.items():
        if await roster.add_membership_if_absent(
            Membership(org_id=org_id, member_id=member_id, role=MemberRole.CHAIR)
        ):
            logger.info(f"Seeded initial chair {member_id} for org {org_id}")


async def init_app_state(
    app: FastAPI,
    db: TursoClient,
    authority: MembershipAuthority | None = None,
) -> None:
    """Create schemas and wire repositories and governance services.

    Args:
        app: Application whose state receives the services
        db: Connected database client
        authority: Membership authority override (defaults by configuration)
    """
    app.state.db = db

    # Event store and bus for the audit trail
    event_store = EventStore(db)
    await event_store.init_schema()
    app.state.event_store = event_store
    event_bus = EventBus(store=event_store)
    app.state.event_bus = event_bus
    audit = AuditTrail(event_bus)
    logger.info("Event store and bus initialized")

    # Repositories; meetings first, other tables reference them
    meeting_repo = MeetingRepository(db)
    membership_repo = MembershipRepository(db)
    vote_repo = VoteRepository(db)
    attendance_repo = AttendanceRepository(db)
    protocol_repo = ProtocolRepository(db)
    for repo in (meeting_repo, membership_repo, vote_repo, attendance_repo, protocol_repo):
        await repo.initialize()
    app.state.meeting_repo = meeting_repo
    app.state.membership_repo = membership_repo
    app.state.vote_repo = vote_repo
    app.state.attendance_repo = attendance_repo
    app.state.protocol_repo = protocol_repo
    logger.info("Repositories initialized")

    await seed_initial_chairs(membership_repo, settings.initial_chairs)
    authority = authority or _select_membership_authority(membership_repo)
    app.state.membership_authority = authority

    # Governance services
    tally = TallyReconciler(vote_repo)
    quorum = QuorumCalculator(attendance_repo, authority)
    builder = ProtocolSnapshotBuilder(meeting_repo, vote_repo, tally, quorum)
    app.state.tally = tally
    app.state.quorum = quorum
    app.state.ledger = VoteLedger(vote_repo, meeting_repo, attendance_repo, authority, audit)
    app.state.attendance = AttendanceService(attendance_repo, meeting_repo, authority, audit)
    app.state.finalizer = ProtocolFinalizer(
        protocol_repo, meeting_repo, vote_repo, builder, authority, audit
    )
    logger.info("Governance services initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Initialize database connection
    - Create schemas, event store and bus
    - Select the membership authority and wire governance services

    Shutdown:
    - Close the membership authority client and database connection
    """
    import src.db.turso as turso_module

    # Startup
    logger.info(f"Starting {settings.app_name}...")

    db = TursoClient()
    await db.connect()
    turso_module.db_client = db
    logger.info(f"Database connected: {db.url}")

    await init_app_state(app, db)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    close = getattr(app.state.membership_authority, "close", None)
    if close is not None:
        await close()
    await db.close()


app = FastAPI(
    title=settings.app_name,
    description="Votes, quorum and meeting protocols for associations",
    version=settings.app_version,
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

"""Protocol finalizer: DRAFT versions and the single FINAL record.

Finalization is one storage transaction. The FINAL row takes the next
protocol number of the organization, the org counter advances and the
meeting becomes COMPLETED, or nothing is written at all. A partial
unique index guarantees a single FINAL per meeting; a concurrent loser
is answered with the winner's protocol.
"""

import hashlib
import json
from uuid import UUID, uuid4

import structlog
from libsql_client import LibsqlError

from src.events.types import ProtocolDocumentAttached, ProtocolDraftSaved, ProtocolFinalized
from src.governance.audit import AuditTrail
from src.governance.eligibility import VotingEligibility, require_chair
from src.governance.errors import (
    AlreadyFinalizedError,
    DocumentAlreadyAttachedError,
    MeetingLockedError,
    MeetingNotFoundError,
    ProtocolNotFinalError,
    ProtocolNotFoundError,
    VotesStillOpenError,
)
from src.governance.snapshot import ProtocolSnapshotBuilder
from src.models.base import utc_now
from src.models.meeting import Meeting, MeetingStatus
from src.models.protocol import MeetingProtocol, ProtocolSnapshot
from src.models.vote import VoteStatus
from src.repositories.meeting_repo import MeetingRepository
from src.repositories.protocol_repo import ProtocolRepository
from src.repositories.vote_repo import VoteRepository

logger = structlog.get_logger()


def canonical_snapshot_json(snapshot: ProtocolSnapshot) -> str:
    """Serialize a snapshot deterministically (sorted keys, no whitespace)."""
    return json.dumps(
        snapshot.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def snapshot_hash(snapshot_json: str) -> str:
    """SHA-256 hex digest of canonical snapshot JSON."""
    return hashlib.sha256(snapshot_json.encode("utf-8")).hexdigest()


class ProtocolFinalizer:
    """Stores protocol drafts, finalizes protocols and records documents."""

    def __init__(
        self,
        protocols: ProtocolRepository,
        meetings: MeetingRepository,
        votes: VoteRepository,
        builder: ProtocolSnapshotBuilder,
        eligibility: VotingEligibility,
        audit: AuditTrail | None = None,
    ):
        """Initialize the finalizer.

        Args:
            protocols: Protocol storage
            meetings: Agenda store
            votes: Vote storage (open-vote checks)
            builder: Snapshot builder
            eligibility: Membership authority for chair checks
            audit: Optional audit trail for emitted events
        """
        self._protocols = protocols
        self._meetings = meetings
        self._votes = votes
        self._builder = builder
        self._eligibility = eligibility
        self._audit = audit or AuditTrail(None)

    async def _require_meeting(self, meeting_id: UUID) -> Meeting:
        meeting = await self._meetings.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        return meeting

    async def _raise_if_final(self, meeting_id: UUID) -> None:
        existing = await self._protocols.get_final_for_meeting(meeting_id)
        if existing is not None:
            raise AlreadyFinalizedError(existing)

    async def preview_draft(self, meeting_id: UUID) -> ProtocolSnapshot:
        """Current snapshot of the meeting for display. Persists nothing."""
        return await self._builder.build(meeting_id)

    async def save_draft(self, meeting_id: UUID, actor_id: str) -> MeetingProtocol:
        """Store the current snapshot as a new DRAFT version.

        Raises:
            MeetingNotFoundError: Unknown meeting
            NotAuthorizedError: Actor lacks chair/board authority
            AlreadyFinalizedError: The meeting already has a FINAL protocol
        """
        meeting = await self._require_meeting(meeting_id)
        await require_chair(self._eligibility, meeting.org_id, actor_id)
        await self._raise_if_final(meeting.id)

        snapshot = await self._builder.build(meeting.id)
        snapshot_json = canonical_snapshot_json(snapshot)
        digest = snapshot_hash(snapshot_json)
        protocol_id = uuid4()

        stored = await self._protocols.insert_draft(
            protocol_id=protocol_id,
            org_id=meeting.org_id,
            meeting_id=meeting.id,
            snapshot_json=snapshot_json,
            snapshot_hash=digest,
            created_by=actor_id,
            created_at=snapshot.generated_at,
        )
        if not stored:
            await self._raise_if_final(meeting.id)
            msg = f"Draft for meeting {meeting.id} was not stored"
            raise RuntimeError(msg)

        protocol = await self._get_stored(protocol_id)
        logger.info(
            "protocol draft saved",
            meeting_id=str(meeting.id),
            version=protocol.version,
            snapshot_hash=digest,
        )
        await self._audit.record(
            ProtocolDraftSaved(
                aggregate_id=protocol.id,
                org_id=meeting.org_id,
                meeting_id=meeting.id,
                actor_id=actor_id,
                version=protocol.version,
                snapshot_hash=digest,
            )
        )
        return protocol

    async def finalize(self, meeting_id: UUID, actor_id: str) -> MeetingProtocol:
        """Freeze the meeting's protocol as its single FINAL record.

        Raises:
            MeetingNotFoundError: Unknown meeting
            NotAuthorizedError: Actor lacks chair/board authority
            AlreadyFinalizedError: A FINAL protocol exists (carries it)
            MeetingLockedError: The meeting was cancelled
            VotesStillOpenError: At least one vote is still OPEN
            QuorumUnavailableError: Membership counts unavailable
        """
        meeting = await self._require_meeting(meeting_id)
        await require_chair(self._eligibility, meeting.org_id, actor_id)
        await self._raise_if_final(meeting.id)
        if meeting.status is MeetingStatus.CANCELLED:
            raise MeetingLockedError(f"Meeting {meeting.id} is cancelled")
        await self._raise_if_votes_open(meeting.id)

        snapshot = await self._builder.build(meeting.id)
        snapshot_json = canonical_snapshot_json(snapshot)
        digest = snapshot_hash(snapshot_json)
        protocol_id = uuid4()

        try:
            stored = await self._protocols.insert_final(
                protocol_id=protocol_id,
                org_id=meeting.org_id,
                meeting_id=meeting.id,
                snapshot_json=snapshot_json,
                snapshot_hash=digest,
                finalized_by=actor_id,
                finalized_at=utc_now(),
            )
        except LibsqlError:
            # Lost the race: the one-final index rejected our row
            await self._raise_if_final(meeting.id)
            raise

        if not stored:
            await self._raise_if_final(meeting.id)
            current = await self._require_meeting(meeting.id)
            if current.status is MeetingStatus.CANCELLED:
                raise MeetingLockedError(f"Meeting {meeting.id} is cancelled")
            await self._raise_if_votes_open(meeting.id)
            msg = f"Final protocol for meeting {meeting.id} was not stored"
            raise RuntimeError(msg)

        protocol = await self._get_stored(protocol_id)
        logger.info(
            "protocol finalized",
            meeting_id=str(meeting.id),
            org_id=meeting.org_id,
            protocol_number=protocol.protocol_number,
            version=protocol.version,
            actor_id=actor_id,
        )
        await self._audit.record(
            ProtocolFinalized(
                aggregate_id=protocol.id,
                org_id=meeting.org_id,
                meeting_id=meeting.id,
                actor_id=actor_id,
                protocol_number=protocol.protocol_number,
                version=protocol.version,
                snapshot_hash=digest,
            )
        )
        return protocol

    async def _raise_if_votes_open(self, meeting_id: UUID) -> None:
        open_votes = await self._votes.list_votes_for_meeting(meeting_id, VoteStatus.OPEN)
        if open_votes:
            raise VotesStillOpenError([vote.id for vote in open_votes])

    async def attach_rendered_document(
        self,
        protocol_id: UUID,
        document_ref: str,
        actor_id: str,
    ) -> MeetingProtocol:
        """Record the rendered document of a FINAL protocol, once.

        Raises:
            ProtocolNotFoundError: Unknown protocol
            NotAuthorizedError: Actor lacks chair/board authority
            ProtocolNotFinalError: Protocol is a DRAFT
            DocumentAlreadyAttachedError: A document is already recorded
        """
        protocol = await self.get_protocol(protocol_id)
        await require_chair(self._eligibility, protocol.org_id, actor_id)
        if not protocol.is_final:
            raise ProtocolNotFinalError(f"Protocol {protocol.id} is not final")
        if protocol.document is not None:
            raise DocumentAlreadyAttachedError(
                f"Protocol {protocol.id} already has document {protocol.document.document_ref}"
            )

        attached = await self._protocols.attach_document(
            protocol.id, document_ref, actor_id, utc_now()
        )
        if not attached:
            raise DocumentAlreadyAttachedError(f"Protocol {protocol.id} already has a document")

        logger.info(
            "protocol document attached",
            protocol_id=str(protocol.id),
            document_ref=document_ref,
        )
        await self._audit.record(
            ProtocolDocumentAttached(
                aggregate_id=protocol.id,
                org_id=protocol.org_id,
                meeting_id=protocol.meeting_id,
                actor_id=actor_id,
                document_ref=document_ref,
            )
        )
        return await self._get_stored(protocol.id)

    async def get_protocol(self, protocol_id: UUID) -> MeetingProtocol:
        """Get a stored protocol version or raise ProtocolNotFoundError."""
        protocol = await self._protocols.get(protocol_id)
        if protocol is None:
            raise ProtocolNotFoundError(protocol_id)
        return protocol

    async def list_protocols(self, meeting_id: UUID) -> list[MeetingProtocol]:
        """All stored versions of a meeting's protocol, newest first."""
        await self._require_meeting(meeting_id)
        return await self._protocols.list_for_meeting(meeting_id)

    async def _get_stored(self, protocol_id: UUID) -> MeetingProtocol:
        protocol = await self._protocols.get(protocol_id)
        if protocol is None:
            msg = f"Protocol {protocol_id} missing after write"
            raise RuntimeError(msg)
        return protocol

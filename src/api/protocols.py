"""Protocol endpoints: preview, drafts, finalization, documents and audit trail."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.deps import CallerId, get_event_store, get_finalizer
from src.events.store import EventStore
from src.governance.finalizer import ProtocolFinalizer
from src.models.protocol import MeetingProtocol, ProtocolSnapshot

router = APIRouter(tags=["protocols"])

FinalizerDep = Annotated[ProtocolFinalizer, Depends(get_finalizer)]


class AttachDocumentRequest(BaseModel):
    """Reference returned by the external renderer/storage."""

    document_ref: str = Field(min_length=1, max_length=2000)


@router.get("/meetings/{meeting_id}/protocol/preview", response_model=ProtocolSnapshot)
async def preview_protocol(meeting_id: UUID, finalizer: FinalizerDep) -> ProtocolSnapshot:
    """Current snapshot of the meeting. Nothing is stored."""
    return await finalizer.preview_draft(meeting_id)


@router.post(
    "/meetings/{meeting_id}/protocol/drafts",
    response_model=MeetingProtocol,
    status_code=201,
)
async def save_protocol_draft(
    meeting_id: UUID,
    caller: CallerId,
    finalizer: FinalizerDep,
) -> MeetingProtocol:
    """Store the current snapshot as a new DRAFT version (chair/board only)."""
    return await finalizer.save_draft(meeting_id, caller)


@router.post(
    "/meetings/{meeting_id}/protocol/finalize",
    response_model=MeetingProtocol,
    status_code=201,
)
async def finalize_protocol(
    meeting_id: UUID,
    caller: CallerId,
    finalizer: FinalizerDep,
) -> MeetingProtocol:
    """Finalize the protocol (chair/board only).

    If the meeting is already finalized, answers 409 with the existing
    protocol in the body.
    """
    return await finalizer.finalize(meeting_id, caller)


@router.get("/meetings/{meeting_id}/protocols", response_model=list[MeetingProtocol])
async def list_protocols(meeting_id: UUID, finalizer: FinalizerDep) -> list[MeetingProtocol]:
    """Every stored protocol version of the meeting, newest first."""
    return await finalizer.list_protocols(meeting_id)


@router.get("/protocols/{protocol_id}", response_model=MeetingProtocol)
async def get_protocol(protocol_id: UUID, finalizer: FinalizerDep) -> MeetingProtocol:
    return await finalizer.get_protocol(protocol_id)


@router.post("/protocols/{protocol_id}/document", response_model=MeetingProtocol)
async def attach_document(
    protocol_id: UUID,
    body: AttachDocumentRequest,
    caller: CallerId,
    finalizer: FinalizerDep,
) -> MeetingProtocol:
    """Record the rendered document of a FINAL protocol, once."""
    return await finalizer.attach_rendered_document(protocol_id, body.document_ref, caller)


@router.get("/protocols/{protocol_id}/audit")
async def get_protocol_audit_trail(
    protocol_id: UUID,
    finalizer: FinalizerDep,
    store: Annotated[EventStore, Depends(get_event_store)],
) -> list[dict[str, Any]]:
    """Events recorded for one protocol version, oldest first."""
    await finalizer.get_protocol(protocol_id)
    return [event async for event in store.get_events_for_aggregate(protocol_id)]

"""Meeting endpoints: agenda, attendance, quorum and audit trail."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from src.adapters.base import MembershipAuthority
from src.api.deps import (
    CallerId,
    get_attendance,
    get_authority,
    get_event_store,
    get_ledger,
    get_meeting_repo,
    get_quorum,
)
from src.events.store import EventStore
from src.governance.attendance import AttendanceService
from src.governance.eligibility import require_chair
from src.governance.errors import (
    AgendaItemNotFoundError,
    MeetingLockedError,
    MeetingNotFoundError,
)
from src.governance.ledger import VoteLedger
from src.governance.quorum import QuorumCalculator
from src.models.attendance import AttendanceMode, AttendanceRecord
from src.models.meeting import (
    AgendaItem,
    Attachment,
    Meeting,
    MeetingStatus,
    MeetingType,
    Resolution,
)
from src.models.protocol import QuorumOutcome
from src.models.vote import Vote
from src.repositories.meeting_repo import MeetingRepository

router = APIRouter(prefix="/meetings", tags=["meetings"])

MeetingRepoDep = Annotated[MeetingRepository, Depends(get_meeting_repo)]
AuthorityDep = Annotated[MembershipAuthority, Depends(get_authority)]
AttendanceDep = Annotated[AttendanceService, Depends(get_attendance)]
LedgerDep = Annotated[VoteLedger, Depends(get_ledger)]


class CreateMeetingRequest(BaseModel):
    """Request to schedule a meeting."""

    org_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=500)
    scheduled_at: datetime
    location: str | None = None
    meeting_type: MeetingType = MeetingType.GA


class ResolutionInput(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    text: str | None = None


class AddAgendaItemRequest(BaseModel):
    """Request to append an agenda item, optionally with a resolution."""

    title: str = Field(min_length=1, max_length=500)
    summary: str | None = None
    details: str | None = None
    resolution: ResolutionInput | None = None


class AddAttachmentRequest(BaseModel):
    """Attachment metadata; the file itself lives in external storage."""

    file_name: str = Field(min_length=1, max_length=255)
    storage_path: str = Field(min_length=1)
    mime_type: str | None = None
    size_bytes: int | None = Field(default=None, ge=0)


class MeetingDetailResponse(BaseModel):
    """Meeting with its agenda and votes."""

    meeting: Meeting
    agenda: list[AgendaItem]
    resolutions: list[Resolution]
    votes: list[Vote]


class RegisterAttendanceRequest(BaseModel):
    mode: AttendanceMode


class CloseVotesResponse(BaseModel):
    closed: int


async def _require_meeting(meetings: MeetingRepository, meeting_id: UUID) -> Meeting:
    meeting = await meetings.get_meeting(meeting_id)
    if meeting is None:
        raise MeetingNotFoundError(meeting_id)
    return meeting


@router.post("", response_model=Meeting, status_code=201)
async def create_meeting(
    body: CreateMeetingRequest,
    caller: CallerId,
    meetings: MeetingRepoDep,
    authority: AuthorityDep,
) -> Meeting:
    """Schedule a meeting (chair/board only)."""
    await require_chair(authority, body.org_id, caller)
    meeting = Meeting(
        org_id=body.org_id,
        title=body.title,
        scheduled_at=body.scheduled_at,
        location=body.location,
        meeting_type=body.meeting_type,
    )
    return await meetings.create_meeting(meeting)


@router.get("/{meeting_id}", response_model=MeetingDetailResponse)
async def get_meeting(
    meeting_id: UUID,
    meetings: MeetingRepoDep,
    ledger: LedgerDep,
) -> MeetingDetailResponse:
    meeting = await _require_meeting(meetings, meeting_id)
    agenda = await meetings.list_agenda_items(meeting.id)
    resolutions = await meetings.get_resolutions(
        [item.resolution_id for item in agenda if item.resolution_id]
    )
    return MeetingDetailResponse(
        meeting=meeting,
        agenda=agenda,
        resolutions=list(resolutions.values()),
        votes=await ledger.list_votes(meeting.id),
    )


async def _transition(
    meeting_id: UUID,
    status: MeetingStatus,
    caller: str,
    meetings: MeetingRepository,
    authority: MembershipAuthority,
) -> Meeting:
    meeting = await _require_meeting(meetings, meeting_id)
    await require_chair(authority, meeting.org_id, caller)
    if not await meetings.transition_status(meeting.id, status):
        raise MeetingLockedError(f"Meeting {meeting.id} is {meeting.status.value}")
    return await _require_meeting(meetings, meeting.id)


@router.post("/{meeting_id}/publish", response_model=Meeting)
async def publish_meeting(
    meeting_id: UUID,
    caller: CallerId,
    meetings: MeetingRepoDep,
    authority: AuthorityDep,
) -> Meeting:
    """Publish the agenda to members (chair/board only)."""
    return await _transition(meeting_id, MeetingStatus.PUBLISHED, caller, meetings, authority)


@router.post("/{meeting_id}/cancel", response_model=Meeting)
async def cancel_meeting(
    meeting_id: UUID,
    caller: CallerId,
    meetings: MeetingRepoDep,
    authority: AuthorityDep,
) -> Meeting:
    """Cancel a meeting (chair/board only). Cancelled meetings are locked."""
    return await _transition(meeting_id, MeetingStatus.CANCELLED, caller, meetings, authority)


@router.post("/{meeting_id}/agenda", response_model=AgendaItem, status_code=201)
async def add_agenda_item(
    meeting_id: UUID,
    body: AddAgendaItemRequest,
    caller: CallerId,
    meetings: MeetingRepoDep,
    authority: AuthorityDep,
) -> AgendaItem:
    """Append an agenda item with the next item number (chair/board only)."""
    meeting = await _require_meeting(meetings, meeting_id)
    await require_chair(authority, meeting.org_id, caller)
    if meeting.is_locked:
        raise MeetingLockedError(f"Meeting {meeting.id} is {meeting.status.value}")

    resolution_id = None
    if body.resolution is not None:
        resolution = await meetings.create_resolution(
            Resolution(
                org_id=meeting.org_id,
                title=body.resolution.title,
                text=body.resolution.text,
            )
        )
        resolution_id = resolution.id

    return await meetings.add_agenda_item(
        meeting.id,
        title=body.title,
        summary=body.summary,
        details=body.details,
        resolution_id=resolution_id,
    )


@router.post(
    "/agenda/{agenda_item_id}/attachments",
    response_model=Attachment,
    status_code=201,
)
async def add_attachment(
    agenda_item_id: UUID,
    body: AddAttachmentRequest,
    caller: CallerId,
    meetings: MeetingRepoDep,
    authority: AuthorityDep,
) -> Attachment:
    """Record attachment metadata for an agenda item (chair/board only)."""
    item = await meetings.get_agenda_item(agenda_item_id)
    if item is None:
        raise AgendaItemNotFoundError(agenda_item_id)
    meeting = await _require_meeting(meetings, item.meeting_id)
    await require_chair(authority, meeting.org_id, caller)
    if meeting.is_locked:
        raise MeetingLockedError(f"Meeting {meeting.id} is {meeting.status.value}")
    return await meetings.add_attachment(
        Attachment(agenda_item_id=item.id, **body.model_dump())
    )


@router.put("/{meeting_id}/attendance/{member_id}", response_model=AttendanceRecord)
async def register_attendance(
    meeting_id: UUID,
    member_id: str,
    body: RegisterAttendanceRequest,
    caller: CallerId,
    attendance: AttendanceDep,
) -> AttendanceRecord:
    """Register or switch attendance. Members register themselves; chairs anyone."""
    return await attendance.register_attendance(meeting_id, member_id, body.mode, caller)


@router.delete("/{meeting_id}/attendance/{member_id}", status_code=204)
async def unregister_attendance(
    meeting_id: UUID,
    member_id: str,
    caller: CallerId,
    attendance: AttendanceDep,
) -> Response:
    if not await attendance.unregister_attendance(meeting_id, member_id, caller):
        raise HTTPException(status_code=404, detail="No attendance registered")
    return Response(status_code=204)


@router.get("/{meeting_id}/attendance", response_model=list[AttendanceRecord])
async def list_attendance(meeting_id: UUID, attendance: AttendanceDep) -> list[AttendanceRecord]:
    return await attendance.list_attendance(meeting_id)


@router.get("/{meeting_id}/quorum", response_model=QuorumOutcome)
async def get_quorum(
    meeting_id: UUID,
    meetings: MeetingRepoDep,
    quorum: Annotated[QuorumCalculator, Depends(get_quorum)],
) -> QuorumOutcome:
    """Quorum against current membership, recomputed on every call."""
    meeting = await _require_meeting(meetings, meeting_id)
    return await quorum.calculate(meeting)


@router.get("/{meeting_id}/pending-votes", response_model=list[Vote])
async def pending_votes(meeting_id: UUID, caller: CallerId, ledger: LedgerDep) -> list[Vote]:
    """OPEN votes the caller has not voted on yet."""
    return await ledger.pending_votes(meeting_id, caller)


@router.post("/{meeting_id}/votes/close", response_model=CloseVotesResponse)
async def close_all_votes(
    meeting_id: UUID,
    caller: CallerId,
    ledger: LedgerDep,
) -> CloseVotesResponse:
    """Close every OPEN vote of the meeting (chair/board only)."""
    return CloseVotesResponse(closed=await ledger.close_all_votes(meeting_id, caller))


@router.get("/{meeting_id}/audit")
async def get_audit_trail(
    meeting_id: UUID,
    meetings: MeetingRepoDep,
    store: Annotated[EventStore, Depends(get_event_store)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 500,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[dict[str, Any]]:
    """Governance events of the meeting, oldest first."""
    await _require_meeting(meetings, meeting_id)
    return [
        event
        async for event in store.get_events_for_meeting(meeting_id, limit=limit, offset=offset)
    ]

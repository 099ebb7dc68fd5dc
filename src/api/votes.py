"""Vote ledger endpoints: open, cast, tally, close and audit votes."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from src.api.deps import CallerId, get_event_store, get_ledger, get_tally
from src.events.store import EventStore
from src.governance.ledger import VoteLedger
from src.governance.tally import TallyReconciler, majority_outcome
from src.models.protocol import Tally, VoteOutcome
from src.models.vote import (
    Ballot,
    CastEligibility,
    Vote,
    VoteChannel,
    VoteChoice,
    VoteStatus,
)

router = APIRouter(prefix="/votes", tags=["votes"])

LedgerDep = Annotated[VoteLedger, Depends(get_ledger)]


class OpenVoteRequest(BaseModel):
    """Request to open the vote of an agenda item."""

    agenda_item_id: UUID


class CastBallotRequest(BaseModel):
    choice: VoteChoice
    channel: VoteChannel


class BallotResponse(BaseModel):
    """Response for a recorded ballot."""

    status: str = "recorded"
    ballot: Ballot


class TallyResponse(BaseModel):
    """Live, remote and combined tallies of a vote."""

    vote_id: UUID
    status: VoteStatus
    live: Tally
    remote: Tally
    combined: Tally
    outcome: VoteOutcome | None = None


@router.post("", response_model=Vote, status_code=201)
async def open_vote(body: OpenVoteRequest, caller: CallerId, ledger: LedgerDep) -> Vote:
    """Open the vote of an agenda item (chair/board only)."""
    return await ledger.open_vote(body.agenda_item_id, caller)


@router.get("/{vote_id}", response_model=Vote)
async def get_vote(vote_id: UUID, ledger: LedgerDep) -> Vote:
    return await ledger.get_vote(vote_id)


@router.get("/{vote_id}/tally", response_model=TallyResponse)
async def get_tally(
    vote_id: UUID,
    ledger: LedgerDep,
    tally: Annotated[TallyReconciler, Depends(get_tally)],
) -> TallyResponse:
    """Current tallies, derived from the ballots on every call.

    The outcome is reported once the vote is closed.
    """
    vote = await ledger.get_vote(vote_id)
    tallies = await tally.tally(vote.id)
    return TallyResponse(
        vote_id=vote.id,
        status=vote.status,
        live=tallies.live,
        remote=tallies.remote,
        combined=tallies.combined,
        outcome=None if vote.is_open else majority_outcome(tallies.combined),
    )


@router.get("/{vote_id}/eligibility", response_model=CastEligibility)
async def can_cast_vote(
    vote_id: UUID,
    caller: CallerId,
    ledger: LedgerDep,
    channel: Annotated[VoteChannel, Query()],
) -> CastEligibility:
    """Whether the caller could cast a ballot on this channel right now."""
    return await ledger.can_cast_vote(vote_id, caller, channel)


@router.post("/{vote_id}/ballots", response_model=BallotResponse, status_code=201)
async def cast_ballot(
    vote_id: UUID,
    body: CastBallotRequest,
    caller: CallerId,
    ledger: LedgerDep,
) -> BallotResponse:
    """Cast the caller's ballot.

    A repeated submission answers 200 with status "already_voted".
    """
    ballot = await ledger.cast_ballot(vote_id, caller, body.choice, body.channel)
    return BallotResponse(ballot=ballot)


@router.get("/{vote_id}/ballots/me", response_model=Ballot)
async def get_my_ballot(vote_id: UUID, caller: CallerId, ledger: LedgerDep) -> Ballot:
    ballot = await ledger.get_member_ballot(vote_id, caller)
    if ballot is None:
        raise HTTPException(status_code=404, detail="No ballot cast")
    return ballot


@router.post("/{vote_id}/close", response_model=Vote)
async def close_vote(vote_id: UUID, caller: CallerId, ledger: LedgerDep) -> Vote:
    """Close a vote (chair/board only). Closing twice is a no-op."""
    return await ledger.close_vote(vote_id, caller)


@router.get("/{vote_id}/audit")
async def get_vote_audit_trail(
    vote_id: UUID,
    ledger: LedgerDep,
    store: Annotated[EventStore, Depends(get_event_store)],
) -> list[dict[str, Any]]:
    """Lifecycle and ballot events of one vote, oldest first."""
    await ledger.get_vote(vote_id)
    return [event async for event in store.get_events_for_aggregate(vote_id)]

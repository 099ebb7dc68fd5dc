"""Local roster administration.

Only available while the local roster is the membership authority; a
remote authority owns this data itself. Every write needs chair/board
authority; the first chair of an org is seeded from INITIAL_CHAIRS at
startup.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import CallerId, get_roster
from src.governance.eligibility import require_chair
from src.models.membership import MemberRole, Membership, MembershipStatus, QuorumRule
from src.repositories.membership_repo import MembershipRepository

logger = structlog.get_logger()

router = APIRouter(prefix="/orgs", tags=["orgs"])

RosterDep = Annotated[MembershipRepository, Depends(get_roster)]


class SaveMembershipRequest(BaseModel):
    status: MembershipStatus = MembershipStatus.ACTIVE
    role: MemberRole = MemberRole.MEMBER
    can_vote: bool = True


@router.put("/{org_id}/members/{member_id}", response_model=Membership)
async def save_membership(
    org_id: str,
    member_id: str,
    body: SaveMembershipRequest,
    caller: CallerId,
    roster: RosterDep,
) -> Membership:
    """Create or update a roster entry."""
    await require_chair(roster, org_id, caller)
    membership = Membership(org_id=org_id, member_id=member_id, **body.model_dump())
    await roster.save_membership(membership)
    logger.info(
        "roster entry saved",
        org_id=org_id,
        member_id=member_id,
        role=membership.role.value,
        status=membership.status.value,
        actor_id=caller,
    )
    return membership


@router.put("/{org_id}/quorum-rule", response_model=QuorumRule)
async def save_quorum_rule(
    org_id: str,
    body: QuorumRule,
    caller: CallerId,
    roster: RosterDep,
) -> QuorumRule:
    """Set the org's quorum rule (exactly one threshold)."""
    await require_chair(roster, org_id, caller)
    await roster.save_quorum_rule(org_id, body)
    logger.info("quorum rule saved", org_id=org_id, actor_id=caller)
    return body

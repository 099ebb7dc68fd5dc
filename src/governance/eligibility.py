"""Voting eligibility capability.

The ledger, attendance registry and finalizer depend only on this narrow
interface, so rules about who may vote (e.g. debt-based restrictions) live
with whichever membership authority implements it.
"""

from typing import Protocol, runtime_checkable

from src.governance.errors import NotAuthorizedError, NotEligibleError
from src.models.membership import MemberStanding


@runtime_checkable
class VotingEligibility(Protocol):
    """Answers "what is this member's standing in this organization"."""

    async def get_standing(self, org_id: str, member_id: str) -> MemberStanding:
        """Current standing of a member.

        Unknown members are returned as an empty (inactive) standing.
        """
        ...


async def require_voting_rights(
    eligibility: VotingEligibility,
    org_id: str,
    member_id: str,
) -> MemberStanding:
    """Fail with NotEligibleError unless the member may vote."""
    standing = await eligibility.get_standing(org_id, member_id)
    if not standing.active:
        raise NotEligibleError(f"Member {member_id} has no active membership")
    if not standing.can_vote:
        raise NotEligibleError(f"Member {member_id} currently has no voting rights")
    return standing


async def require_chair(
    eligibility: VotingEligibility,
    org_id: str,
    member_id: str,
) -> MemberStanding:
    """Fail with NotAuthorizedError unless the member holds chair/board authority."""
    standing = await eligibility.get_standing(org_id, member_id)
    if not standing.may_chair:
        raise NotAuthorizedError(
            f"Member {member_id} lacks chair or board authority in {org_id}"
        )
    return standing

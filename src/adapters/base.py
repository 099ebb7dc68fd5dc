"""Base types for membership authority adapters.

This module defines the MembershipAuthority protocol implemented by the
local roster repository and by the remote HTTP adapter.
"""

from typing import Protocol, runtime_checkable

from src.governance.eligibility import VotingEligibility
from src.models.membership import QuorumRule


class MembershipAuthorityError(Exception):
    """Raised when the membership authority cannot answer."""


@runtime_checkable
class MembershipAuthority(VotingEligibility, Protocol):
    """Protocol for sources of membership data.

    Implementations don't need to inherit, just implement the methods.
    """

    async def count_active_members(self, org_id: str, *, board_only: bool = False) -> int:
        """Count ACTIVE memberships of an organization right now.

        Args:
            org_id: Organization identifier
            board_only: Count only chair/board-level members

        Raises:
            QuorumUnavailableError: If the count cannot be obtained
        """
        ...

    async def get_quorum_rule(self, org_id: str) -> QuorumRule:
        """Get the organization's quorum rule.

        Raises:
            QuorumUnavailableError: If the rule cannot be obtained
        """
        ...

"""Membership authority contract types and the org quorum rule."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MemberRole(str, Enum):
    """Role of a member within an organization."""

    OWNER = "OWNER"
    CHAIR = "CHAIR"
    BOARD = "BOARD"
    MEMBER = "MEMBER"


# Roles allowed to chair meetings, close votes and finalize protocols
CHAIR_ROLES = frozenset({MemberRole.OWNER, MemberRole.CHAIR, MemberRole.BOARD})


class MembershipStatus(str, Enum):
    """Lifecycle of a membership. Only ACTIVE members count."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    LEFT = "LEFT"


class Membership(BaseModel):
    """A member's roster entry in an organization."""

    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    org_id: str = Field(min_length=1)
    member_id: str = Field(min_length=1)
    status: MembershipStatus = Field(default=MembershipStatus.ACTIVE)
    role: MemberRole = Field(default=MemberRole.MEMBER)
    can_vote: bool = Field(
        default=True,
        description="False while voting rights are withheld (e.g. unpaid dues)",
    )


class MemberStanding(BaseModel):
    """What the membership authority says about a member right now."""

    active: bool = False
    can_vote: bool = False
    role: MemberRole | None = None

    @property
    def may_vote(self) -> bool:
        """Active membership with voting rights."""
        return self.active and self.can_vote

    @property
    def may_chair(self) -> bool:
        """Active membership with chair or board authority."""
        return self.active and self.role in CHAIR_ROLES


class QuorumRule(BaseModel):
    """Organization-level quorum requirement.

    Exactly one of min_present (absolute head count) or
    required_percentage (0-100 of eligible members) is set.
    """

    min_present: int | None = Field(default=None, ge=0)
    required_percentage: float | None = Field(default=None, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def exactly_one_threshold(self) -> "QuorumRule":
        """Reject rules that set both thresholds or neither."""
        if (self.min_present is None) == (self.required_percentage is None):
            msg = "Set exactly one of min_present or required_percentage"
            raise ValueError(msg)
        return self

"""Adapters for external membership data.

This module provides:
- MembershipAuthority: Protocol implemented by membership sources
- MembershipAuthorityError: Raised when a source cannot answer
- HttpMembershipAuthority: Remote membership service over HTTP
"""

from src.adapters.base import MembershipAuthority, MembershipAuthorityError
from src.adapters.membership_adapter import HttpMembershipAuthority

__all__ = [
    "HttpMembershipAuthority",
    "MembershipAuthority",
    "MembershipAuthorityError",
]

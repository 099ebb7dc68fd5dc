"""Adapter for a remote membership authority service.

Reads member standing, active member counts and quorum rules over HTTP
using httpx, retrying transient failures with tenacity.

Expected endpoints (relative to the configured base URL):
- GET /orgs/{org_id}/members/{member_id}/standing
    -> {"active": bool, "can_vote": bool, "role": str | null}; 404 = not a member
- GET /orgs/{org_id}/members/count?status=ACTIVE&board_only=<bool>
    -> {"count": int}
- GET /orgs/{org_id}/quorum-rule
    -> {"min_present": int | null, "required_percentage": float | null};
       404 = use the configured default
"""

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.adapters.base import MembershipAuthorityError
from src.config import settings
from src.governance.errors import QuorumUnavailableError
from src.models.membership import MemberRole, MemberStanding, QuorumRule

logger = structlog.get_logger()


class _ServerError(Exception):
    """5xx response; treated as transient."""


# Exceptions that are retriable (transient failures)
RETRIABLE_EXCEPTIONS = (httpx.TransportError, _ServerError)


class HttpMembershipAuthority:
    """Membership authority backed by a remote HTTP service.

    Implements the MembershipAuthority protocol.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        retry_attempts: int | None = None,
        retry_wait: float = 0.5,
    ):
        """Initialize adapter.

        Args:
            base_url: Service base URL. Falls back to settings.
            token: Bearer token. Falls back to settings.
            client: Optional httpx client for dependency injection
            retry_attempts: Attempts per request (defaults to settings)
            retry_wait: Exponential backoff multiplier in seconds
        """
        self._base_url = base_url or settings.membership_authority_url
        if not self._base_url and client is None:
            raise ValueError(
                "No membership authority URL. Set MEMBERSHIP_AUTHORITY_URL "
                "or pass base_url to constructor."
            )
        token = token or settings.membership_authority_token
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url or "",
            headers=headers,
            timeout=settings.membership_timeout_seconds,
        )
        self._attempts = retry_attempts or settings.membership_retry_attempts
        self._retry_wait = retry_wait

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET with retries on transport errors and 5xx responses.

        Raises:
            MembershipAuthorityError: If all attempts fail
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._attempts),
                wait=wait_exponential(multiplier=self._retry_wait, max=5),
                retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
                reraise=False,
            ):
                with attempt:
                    response = await self._client.get(path, params=params)
                    if response.status_code >= 500:
                        raise _ServerError(f"{response.status_code} from {path}")
                    return response
        except RetryError as e:
            last_err = e.last_attempt.exception() if e.last_attempt else None
            logger.error(
                "membership authority unreachable",
                path=path,
                attempts=self._attempts,
                last_error=str(last_err) if last_err else None,
            )
            raise MembershipAuthorityError(
                f"Membership authority unreachable: {last_err or 'unknown error'}"
            ) from e
        # AsyncRetrying either returns inside the loop or raises
        raise MembershipAuthorityError(f"No response for {path}")

    async def get_standing(self, org_id: str, member_id: str) -> MemberStanding:
        """Get a member's standing from the authority."""
        response = await self._get(f"/orgs/{org_id}/members/{member_id}/standing")
        if response.status_code == 404:
            return MemberStanding()
        if response.is_error:
            raise MembershipAuthorityError(
                f"Standing lookup failed with {response.status_code}"
            )
        data = response.json()
        return MemberStanding(
            active=bool(data.get("active")),
            can_vote=bool(data.get("active")) and bool(data.get("can_vote")),
            role=self._parse_role(data.get("role"), org_id, member_id),
        )

    @staticmethod
    def _parse_role(role: str | None, org_id: str, member_id: str) -> MemberRole | None:
        """Map the authority's role; roles unknown here grant no chair authority."""
        if not role:
            return None
        try:
            return MemberRole(role)
        except ValueError:
            logger.warning(
                "unknown membership role",
                org_id=org_id,
                member_id=member_id,
                role=role,
            )
            return None

    async def count_active_members(self, org_id: str, *, board_only: bool = False) -> int:
        """Count ACTIVE members as reported by the authority.

        Raises:
            QuorumUnavailableError: If the authority cannot answer
        """
        try:
            response = await self._get(
                f"/orgs/{org_id}/members/count",
                params={"status": "ACTIVE", "board_only": str(board_only).lower()},
            )
            response.raise_for_status()
            return int(response.json()["count"])
        except (MembershipAuthorityError, httpx.HTTPStatusError, KeyError, ValueError) as e:
            raise QuorumUnavailableError(f"Member count unavailable: {e}") from e

    async def get_quorum_rule(self, org_id: str) -> QuorumRule:
        """Get the org quorum rule, or the configured default when unset.

        Raises:
            QuorumUnavailableError: If the authority cannot answer
        """
        try:
            response = await self._get(f"/orgs/{org_id}/quorum-rule")
            if response.status_code == 404:
                return QuorumRule(required_percentage=settings.default_quorum_percentage)
            response.raise_for_status()
            return QuorumRule.model_validate(response.json())
        except (MembershipAuthorityError, httpx.HTTPStatusError, ValueError) as e:
            raise QuorumUnavailableError(f"Quorum rule unavailable: {e}") from e

    async def health_check(self) -> bool:
        """Check if the authority responds."""
        try:
            response = await self._client.get("/health")
            return response.status_code < 500
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

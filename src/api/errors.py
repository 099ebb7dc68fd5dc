"""Translate governance outcomes into HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.adapters.base import MembershipAuthorityError
from src.governance.errors import (
    AlreadyFinalizedError,
    AlreadyVotedError,
    AttendanceConflictError,
    ChannelMismatchError,
    DocumentAlreadyAttachedError,
    DuplicateVoteError,
    GovernanceError,
    MeetingLockedError,
    NotAuthorizedError,
    NotEligibleError,
    NotFoundError,
    ProtocolNotFinalError,
    QuorumUnavailableError,
    VoteClosedError,
    VotesStillOpenError,
)

logger = structlog.get_logger()

STATUS_BY_ERROR: dict[type[GovernanceError], int] = {
    NotFoundError: 404,
    NotEligibleError: 403,
    NotAuthorizedError: 403,
    VoteClosedError: 409,
    ChannelMismatchError: 409,
    AttendanceConflictError: 409,
    MeetingLockedError: 409,
    DuplicateVoteError: 409,
    VotesStillOpenError: 409,
    AlreadyFinalizedError: 409,
    ProtocolNotFinalError: 409,
    DocumentAlreadyAttachedError: 409,
    QuorumUnavailableError: 503,
}


def status_for(error: GovernanceError) -> int:
    """HTTP status for a governance outcome (most specific class wins)."""
    for cls in type(error).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


async def governance_error_handler(request: Request, exc: GovernanceError) -> JSONResponse:
    """Render a GovernanceError as JSON."""
    # Re-submission is an expected outcome, answered as a no-op
    if isinstance(exc, AlreadyVotedError):
        return JSONResponse(
            status_code=200,
            content={
                "status": "already_voted",
                "vote_id": str(exc.vote_id),
                "message": exc.message,
            },
        )

    body: dict = {"error": exc.code, "message": exc.message}
    if isinstance(exc, AlreadyFinalizedError):
        body["protocol"] = exc.protocol.model_dump(mode="json")
    elif isinstance(exc, VotesStillOpenError):
        body["open_vote_ids"] = [str(v) for v in exc.open_vote_ids]

    status_code = status_for(exc)
    logger.info(
        "governance request refused",
        path=request.url.path,
        code=exc.code,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=body)


async def membership_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Membership authority outages are reported as 503."""
    logger.error("membership authority unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={"error": "MEMBERSHIP_UNAVAILABLE", "message": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the governance exception handlers on an app."""
    app.add_exception_handler(GovernanceError, governance_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(MembershipAuthorityError, membership_unavailable_handler)

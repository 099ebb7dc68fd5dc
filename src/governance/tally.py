"""Tally reconciliation for LIVE and REMOTE ballots.

Tallies are derived from the ballot table on every read with a single
GROUP BY aggregation and never cached. Because a member holds at most
one ballot per vote, a ballot counts in exactly one channel and
combined.total always equals the number of ballots.
"""

from collections.abc import Iterable
from uuid import UUID

from src.models.protocol import Tally, VoteOutcome, VoteTallies
from src.models.vote import VoteChannel, VoteChoice
from src.repositories.vote_repo import VoteRepository

_CHOICE_FIELDS = {
    VoteChoice.FOR: "votes_for",
    VoteChoice.AGAINST: "votes_against",
    VoteChoice.ABSTAIN: "votes_abstain",
}


def build_tallies(
    vote_id: UUID,
    counts: Iterable[tuple[VoteChannel, VoteChoice, int]],
) -> VoteTallies:
    """Fold (channel, choice, count) rows into per-channel tallies."""
    per_channel: dict[VoteChannel, dict[str, int]] = {
        channel: dict.fromkeys(_CHOICE_FIELDS.values(), 0) for channel in VoteChannel
    }
    for channel, choice, count in counts:
        per_channel[channel][_CHOICE_FIELDS[choice]] += count
    return VoteTallies(
        vote_id=vote_id,
        live=Tally(**per_channel[VoteChannel.LIVE]),
        remote=Tally(**per_channel[VoteChannel.REMOTE]),
    )


def majority_outcome(tally: Tally) -> VoteOutcome:
    """Simple majority: more FOR than AGAINST approves; abstentions are neutral."""
    if tally.total == 0:
        return VoteOutcome.NO_VOTES
    if tally.votes_for > tally.votes_against:
        return VoteOutcome.APPROVED
    return VoteOutcome.REJECTED


class TallyReconciler:
    """Computes live, remote and combined tallies of a vote."""

    def __init__(self, votes: VoteRepository):
        self._votes = votes

    async def tally(self, vote_id: UUID) -> VoteTallies:
        """Current tallies of a vote, derived from its ballots."""
        counts = await self._votes.count_by_channel_and_choice(vote_id)
        return build_tallies(vote_id, counts)

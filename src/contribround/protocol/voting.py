"""
contribround/protocol/voting.py

Vote acceptance between two contributors.

Checks, in order:
1. voter and receiver are contributors
2. voter is not the receiver
3. a round is open and its deadline has not passed
4. the vote is not larger than the round's max_votes
5. (both records lazily reset to the current round)
6. the voter's remaining quota covers the vote

Then the receiver's reputation moves by sign * value * isqrt(voter_rep),
clamped to [1, MAX_REPUTATION], and the voter's quota is charged.
"""

import logging
from typing import Optional

from ..clock import Clock
from ..config import MAX_VOTES
from ..errors import (
    CannotVoteItself,
    ExceedsVoteLimit,
    ExceedsYourVoteLimit,
    InvalidVote,
    IsNoActiveRound,
    OnlyContributorCanVote,
)
from ..events import EventBus, vote_cast
from .membership import MembershipRegistry
from .reputation import ReputationLedger, apply_vote
from .rounds import RoundManager
from .types import Vote, VoteReceipt, VoteSign

logger = logging.getLogger("contribround.protocol.voting")


class VoteProcessor:
    """Validates and applies single votes."""

    def __init__(
        self,
        membership: MembershipRegistry,
        reputation: ReputationLedger,
        rounds: RoundManager,
        clock: Clock,
        events: Optional[EventBus] = None,
    ):
        self.membership = membership
        self.reputation = reputation
        self.rounds = rounds
        self.clock = clock
        self.events = events

    def submit_vote(self, caller: str, receiver: str, vote: Vote) -> VoteReceipt:
        """
        Cast `vote` from `caller` on `receiver`.

        Args:
            caller: Voting contributor
            receiver: Contributor receiving the vote
            vote: Sign and number of vote units

        Returns:
            VoteReceipt with the receiver's new reputation and caller's quota left
        """
        if not self.membership.is_contributor(caller):
            raise OnlyContributorCanVote(caller)
        if not self.membership.is_contributor(receiver):
            raise OnlyContributorCanVote(receiver)

        if caller == receiver:
            raise CannotVoteItself(caller)

        round_id = self.rounds.current_round_id()
        current = self.rounds.get_round(round_id) if round_id else None
        if current is None or not current.is_voting_open(self.clock.now()):
            raise IsNoActiveRound(round_id)

        if not isinstance(vote.sign, VoteSign):
            raise InvalidVote("sign must be positive or negative")
        if not isinstance(vote.value, int) or isinstance(vote.value, bool) or vote.value < 0:
            raise InvalidVote("value must be a non-negative integer")
        if vote.value > current.max_votes:
            raise ExceedsVoteLimit(current.max_votes)

        voter_record = self.reputation.view(caller, round_id)
        receiver_record = self.reputation.view(receiver, round_id)

        remaining = current.max_votes - voter_record.votes_submitted
        if vote.value > remaining:
            raise ExceedsYourVoteLimit(remaining)

        receiver_record.reputation = apply_vote(
            receiver_record.reputation,
            voter_record.reputation,
            vote.sign,
            vote.value,
        )
        voter_record.votes_submitted = min(voter_record.votes_submitted + vote.value, MAX_VOTES)

        self.reputation.save(caller, voter_record)
        self.reputation.save(receiver, receiver_record)

        logger.debug(
            f"Round {round_id}: {caller} -> {receiver} {vote.sign.value} {vote.value}, "
            f"receiver reputation {receiver_record.reputation}"
        )
        if self.events is not None:
            self.events.emit(vote_cast(round_id, caller, receiver, vote.sign.value, vote.value))

        return VoteReceipt(
            round_id=round_id,
            voter=caller,
            receiver=receiver,
            sign=vote.sign,
            value=vote.value,
            receiver_reputation=receiver_record.reputation,
            remaining_quota=current.max_votes - voter_record.votes_submitted,
        )

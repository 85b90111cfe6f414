"""
contribround/protocol/types.py

Records shared by the membership, reputation, round and settlement protocols.

All records round-trip through to_dict()/from_dict() so they can be kept in
a StateStore as JSON.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional

from ..config import INITIAL_REPUTATION, UNINITIALIZED_ROUND_ID


class Role(Enum):
    """Member role. An account holds at most one."""
    ADMIN = "admin"
    CONTRIBUTOR = "contributor"


class VoteSign(Enum):
    """Direction of a vote: positive adds reputation, negative subtracts."""
    POSITIVE = "positive"
    NEGATIVE = "negative"

    @property
    def factor(self) -> int:
        return 1 if self is VoteSign.POSITIVE else -1


class Tier(Enum):
    """Rank of a proof-of-contribution token, in minting order."""
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"


@dataclass(frozen=True)
class Vote:
    """A vote to cast on another contributor. Not stored."""
    sign: VoteSign
    value: int

    def to_dict(self) -> dict:
        return {'sign': self.sign.value, 'value': self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Vote":
        return cls(sign=VoteSign(data['sign']), value=data['value'])

    @classmethod
    def positive(cls, value: int) -> "Vote":
        return cls(VoteSign.POSITIVE, value)

    @classmethod
    def negative(cls, value: int) -> "Vote":
        return cls(VoteSign.NEGATIVE, value)


@dataclass
class ContributorRecord:
    """
    Per-round reputation data of a contributor.

    round_id tags the round the record belongs to; a record whose tag differs
    from the current round is stale and is reset before use.
    """
    round_id: int = UNINITIALIZED_ROUND_ID
    reputation: int = 0
    votes_submitted: int = 0

    @property
    def is_initialized(self) -> bool:
        return self.round_id != UNINITIALIZED_ROUND_ID

    def for_round(self, round_id: int) -> "ContributorRecord":
        """Return this record as seen from `round_id`, resetting it if stale."""
        if self.round_id == round_id:
            return ContributorRecord(self.round_id, self.reputation, self.votes_submitted)
        return ContributorRecord(
            round_id=round_id,
            reputation=INITIAL_REPUTATION,
            votes_submitted=0,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ContributorRecord":
        return cls(**data)


@dataclass
class Round:
    """A time-boxed voting period with a fund to distribute."""
    name: str
    value: int
    max_votes: int
    finish_at: int  # milliseconds since the epoch
    is_finished: bool = False

    def is_voting_open(self, now: int) -> bool:
        return not self.is_finished and now < self.finish_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Round":
        return cls(
            name=data['name'],
            value=data['value'],
            max_votes=data['max_votes'],
            finish_at=data['finish_at'],
            is_finished=data.get('is_finished', False),
        )


@dataclass
class VoteReceipt:
    """Outcome of an accepted vote."""
    round_id: int
    voter: str
    receiver: str
    sign: VoteSign
    value: int
    receiver_reputation: int
    remaining_quota: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data['sign'] = self.sign.value
        return data


@dataclass
class Payout:
    """A single proportional transfer of a settlement."""
    account: str
    reputation: int
    amount: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TierAward:
    """A proof-of-contribution token minted at settlement."""
    tier: Tier
    account: str
    reputation: int

    def to_dict(self) -> dict:
        return {
            'tier': self.tier.value,
            'account': self.account,
            'reputation': self.reputation,
        }


@dataclass
class SettlementReport:
    """Everything a round close paid out and minted."""
    round_id: int
    value: int
    total_votes: int
    total_reputation: int
    payouts: List[Payout] = field(default_factory=list)
    awards: List[TierAward] = field(default_factory=list)
    remainder: int = 0

    @property
    def distributed(self) -> int:
        return sum(p.amount for p in self.payouts)

    def get_payout(self, account: str) -> Optional[Payout]:
        for payout in self.payouts:
            if payout.account == account:
                return payout
        return None

    def to_dict(self) -> dict:
        return {
            'round_id': self.round_id,
            'value': self.value,
            'total_votes': self.total_votes,
            'total_reputation': self.total_reputation,
            'distributed': self.distributed,
            'remainder': self.remainder,
            'payouts': [p.to_dict() for p in self.payouts],
            'awards': [a.to_dict() for a in self.awards],
        }

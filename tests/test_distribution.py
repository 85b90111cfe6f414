"""
contribround/tests/test_distribution.py

Unit tests for settlement: proportional shares, remainder handling and tiers.
"""

import pytest
from unittest.mock import Mock

from contribround.config import EngineConfig, MAX_BALANCE, RemainderPolicy
from contribround.errors import (
    InsufficientFunds,
    MintError,
    NftNotSent,
    ShareOverflow,
    TransferError,
    TransferFailed,
)
from contribround.ledger import InMemoryTokenMinter, InMemoryTreasury
from contribround.protocol.distribution import (
    DistributionEngine,
    compute_share,
    rank_tiers,
)
from contribround.protocol.reputation import ReputationLedger
from contribround.protocol.storage import StateStore
from contribround.protocol.types import ContributorRecord, Round, Tier


def create_test_distribution(reputations, treasury=None, minter=None, policy=RemainderPolicy.RETAIN):
    """
    DistributionEngine over contributors with the given round-1 reputations.

    Args:
        reputations: list of (account, reputation) in registration order
    """
    ledger = ReputationLedger(StateStore())
    for account, reputation in reputations:
        ledger.register(account)
        if reputation is not None:
            ledger.save(account, ContributorRecord(round_id=1, reputation=reputation, votes_submitted=1))
    return DistributionEngine(
        ledger,
        treasury or InMemoryTreasury(initial_balance=10_000),
        minter or InMemoryTokenMinter(),
        config=EngineConfig(remainder_policy=policy),
    )


def create_test_round(value):
    return Round(name="r", value=value, max_votes=5, finish_at=0)


class TestComputeShare:
    """Test compute_share()."""

    def test_proportional(self):
        assert compute_share(1600, 10, 16) == 1000
        assert compute_share(1600, 5, 16) == 500
        assert compute_share(1600, 1, 16) == 100

    def test_floor(self):
        assert compute_share(1000, 1, 3) == 333

    def test_zero_total(self):
        assert compute_share(1000, 0, 0) == 0

    def test_overflow(self):
        with pytest.raises(ShareOverflow):
            compute_share(MAX_BALANCE, 2, 3)

    def test_at_limit(self):
        assert compute_share(MAX_BALANCE, 1, 1) == MAX_BALANCE


class TestRankTiers:
    """Test rank_tiers()."""

    def test_top_three(self):
        awards = rank_tiers([("a", 1), ("b", 10), ("c", 5), ("d", 3)])
        assert [(a.tier, a.account) for a in awards] == [
            (Tier.GOLD, "b"),
            (Tier.SILVER, "c"),
            (Tier.BRONZE, "d"),
        ]

    def test_fewer_than_three(self):
        awards = rank_tiers([("a", 2), ("b", 1)])
        assert [a.account for a in awards] == ["a", "b"]
        assert rank_tiers([]) == []

    def test_ties_prefer_later_registration(self):
        awards = rank_tiers([("first", 1), ("second", 1), ("third", 1), ("fourth", 1)])
        assert [a.account for a in awards] == ["fourth", "third", "second"]


class TestPlan:
    """Test DistributionEngine.plan()."""

    def test_worked_example(self):
        dist = create_test_distribution([("alice", 10), ("bob", 5), ("carol", 1)])
        report = dist.plan(1, create_test_round(1600))

        assert [(p.account, p.amount) for p in report.payouts] == [
            ("alice", 1000), ("bob", 500), ("carol", 100),
        ]
        assert report.total_reputation == 16
        assert report.total_votes == 3
        assert report.remainder == 0

    def test_remainder_retained(self):
        dist = create_test_distribution([("a", 1), ("b", 1), ("c", 1)])
        report = dist.plan(1, create_test_round(1000))
        assert report.distributed == 999
        assert report.remainder == 1

    def test_remainder_to_top_contributor(self):
        dist = create_test_distribution(
            [("a", 1), ("b", 2), ("c", 1)], policy=RemainderPolicy.TOP_CONTRIBUTOR
        )
        report = dist.plan(1, create_test_round(1001))
        # shares 250, 500, 250 + remainder 1 to b
        assert report.get_payout("b").amount == 501
        assert report.distributed == 1001
        assert report.remainder == 0

    def test_untouched_records_count_as_fresh(self):
        dist = create_test_distribution([("a", 3), ("b", None)])
        report = dist.plan(1, create_test_round(400))
        assert report.get_payout("a").amount == 300
        assert report.get_payout("b").amount == 100
        assert report.total_votes == 1

    def test_no_contributors(self):
        dist = create_test_distribution([])
        report = dist.plan(1, create_test_round(500))
        assert report.payouts == []
        assert report.awards == []
        # Nothing paid out, the whole value stays in the treasury
        assert report.remainder == 500

    def test_no_contributors_top_contributor_policy(self):
        dist = create_test_distribution([], policy=RemainderPolicy.TOP_CONTRIBUTOR)
        report = dist.plan(1, create_test_round(500))
        assert report.payouts == []
        assert report.remainder == 500


class TestSettle:
    """Test DistributionEngine.settle()."""

    def test_transfers_and_mints(self):
        treasury = InMemoryTreasury(initial_balance=2000)
        minter = InMemoryTokenMinter()
        dist = create_test_distribution(
            [("alice", 10), ("bob", 5), ("carol", 1)], treasury=treasury, minter=minter
        )
        dist.settle(1, create_test_round(1600))

        assert treasury.balance_of("alice") == 1000
        assert treasury.balance_of("bob") == 500
        assert treasury.balance_of("carol") == 100
        assert treasury.balance() == 400
        assert minter.owners() == {1: "alice", 2: "bob", 3: "carol"}

    def test_insufficient_funds_before_any_transfer(self):
        treasury = Mock()
        treasury.balance.return_value = 10
        dist = create_test_distribution([("a", 1)], treasury=treasury)

        with pytest.raises(InsufficientFunds):
            dist.settle(1, create_test_round(100))
        treasury.transfer.assert_not_called()

    def test_transfer_failure(self):
        treasury = Mock()
        treasury.balance.return_value = 1000
        treasury.transfer.side_effect = [None, TransferError("rejected")]
        minter = Mock()
        dist = create_test_distribution([("a", 1), ("b", 1)], treasury=treasury, minter=minter)

        with pytest.raises(TransferFailed) as exc:
            dist.settle(1, create_test_round(100))
        assert exc.value.account == "b"
        assert exc.value.amount == 50
        minter.mint_to.assert_not_called()

    def test_mint_failure(self):
        minter = Mock()
        minter.mint_to.side_effect = MintError("paused")
        dist = create_test_distribution([("a", 1)], minter=minter)

        with pytest.raises(NftNotSent) as exc:
            dist.settle(1, create_test_round(100))
        assert exc.value.account == "a"

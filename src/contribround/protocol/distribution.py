"""
contribround/protocol/distribution.py

Round settlement: proportional payout plus tiered proof-of-contribution mints.

Formula (integer floor division):

    share(c) = floor(round.value * reputation(c) / total_reputation)

The rounding remainder (value - sum(shares)) is retained by the treasury
unless the TOP_CONTRIBUTOR remainder policy hands it to the first-ranked
contributor.

Tiers: contributors sorted by final reputation (stable, so ties keep
registration order); the top three receive one token each, minted gold,
then silver, then bronze.

Settlement is planned completely (shares, totals, tier order) and checked
against the treasury balance before the first transfer. The engine wraps the
call in a transaction, so a transfer or mint failing half-way leaves no
trace.
"""

import logging
from typing import List, Optional, Tuple

from ..config import EngineConfig, MAX_BALANCE, RemainderPolicy
from ..errors import (
    InsufficientFunds,
    MintError,
    NftNotSent,
    ShareOverflow,
    TransferError,
    TransferFailed,
)
from ..events import EventBus, token_awarded
from ..ledger.tokens import TokenMinter
from ..ledger.treasury import TransferLedger
from .reputation import ReputationLedger
from .types import Payout, Round, SettlementReport, Tier, TierAward

logger = logging.getLogger("contribround.protocol.distribution")

TIER_ORDER = (Tier.GOLD, Tier.SILVER, Tier.BRONZE)


def compute_share(value: int, reputation: int, total_reputation: int) -> int:
    """
    Proportional share of `value` for `reputation` out of `total_reputation`.

    Examples:
        compute_share(1600, 10, 16) -> 1000
        compute_share(1000, 1, 3)   -> 333

    Raises:
        ShareOverflow: if value * reputation leaves the balance domain
    """
    if total_reputation <= 0:
        return 0
    product = value * reputation
    if product > MAX_BALANCE:
        raise ShareOverflow(value, reputation)
    return product // total_reputation


def rank_tiers(pairs: List[Tuple[str, int]]) -> List[TierAward]:
    """
    Pick the top three (account, reputation) pairs by reputation.

    Pairs are sorted ascending and popped from the end, so among equal
    reputations the later-registered account ranks higher.
    """
    ordered = sorted(pairs, key=lambda pair: pair[1])
    awards = []
    for tier in TIER_ORDER:
        if not ordered:
            break
        account, reputation = ordered.pop()
        awards.append(TierAward(tier=tier, account=account, reputation=reputation))
    return awards


class DistributionEngine:
    """
    Computes and executes a round's settlement.

    Only RoundManager.close_round() calls settle().
    """

    def __init__(
        self,
        reputation: ReputationLedger,
        treasury: TransferLedger,
        minter: TokenMinter,
        config: Optional[EngineConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.reputation = reputation
        self.treasury = treasury
        self.minter = minter
        self.config = config or EngineConfig()
        self.events = events

    def plan(self, round_id: int, round_: Round) -> SettlementReport:
        """
        Compute the settlement without side effects.

        Contributors whose record was not touched in `round_id` count with the
        post-reset values (reputation 1, no votes).
        """
        snapshot = self.reputation.snapshot(round_id)

        total_votes = sum(record.votes_submitted for _, record in snapshot)
        total_reputation = sum(record.reputation for _, record in snapshot)
        pairs = [(account, record.reputation) for account, record in snapshot]

        payouts = [
            Payout(
                account=account,
                reputation=reputation,
                amount=compute_share(round_.value, reputation, total_reputation),
            )
            for account, reputation in pairs
        ]
        awards = rank_tiers(pairs)

        distributed = sum(p.amount for p in payouts)
        # With no contributors the whole value stays in the treasury
        remainder = round_.value - distributed

        if remainder and awards and self.config.remainder_policy == RemainderPolicy.TOP_CONTRIBUTOR:
            top_account = awards[0].account
            for payout in payouts:
                if payout.account == top_account:
                    payout.amount += remainder
                    break
            remainder = 0

        return SettlementReport(
            round_id=round_id,
            value=round_.value,
            total_votes=total_votes,
            total_reputation=total_reputation,
            payouts=payouts,
            awards=awards,
            remainder=remainder,
        )

    def settle(self, round_id: int, round_: Round) -> SettlementReport:
        """
        Pay every contributor its share, then mint the tier tokens.

        Raises:
            InsufficientFunds: treasury cannot cover the planned payouts
            ShareOverflow: a share computation left the balance domain
            TransferFailed: a transfer was rejected
            NftNotSent: a mint was rejected
        """
        report = self.plan(round_id, round_)

        available = self.treasury.balance()
        if report.distributed > available:
            raise InsufficientFunds(report.distributed, available)

        for payout in report.payouts:
            try:
                self.treasury.transfer(payout.account, payout.amount)
            except TransferError as e:
                logger.error(f"Round {round_id}: transfer of {payout.amount} to {payout.account} failed: {e}")
                raise TransferFailed(payout.account, payout.amount)

        for award in report.awards:
            try:
                self.minter.mint_to(award.account)
            except MintError as e:
                logger.error(f"Round {round_id}: {award.tier.value} token for {award.account} failed: {e}")
                raise NftNotSent(award.account)
            if self.events is not None:
                self.events.emit(token_awarded(round_id, award.account, award.tier.value))

        logger.info(
            f"Settled round {round_id}: {report.distributed}/{report.value} to "
            f"{len(report.payouts)} contributors, {len(report.awards)} tokens, "
            f"remainder {report.remainder}"
        )
        return report

"""
contribround/protocol/rounds.py

Round lifecycle: a single active round at a time.

    NoRound ──open──> Open ──close (after finish_at)──> Closed ──open──> Open ...

Round ids start at 1 and increase by one per opened round (0 = no round yet).
Rounds are never deleted; closing a round settles it and sets is_finished.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..clock import Clock
from ..config import EngineConfig, MAX_BALANCE, MAX_VOTES
from ..errors import (
    InsufficientFunds,
    InvalidRoundParameter,
    IsAnActiveRound,
    IsNoActiveRound,
    NotYetFinishedRound,
)
from ..events import EventBus, round_opened, round_closed
from ..ledger.treasury import TransferLedger
from .storage import StateStore, ROUND_PREFIX, ROUND_ID_KEY
from .types import Round, SettlementReport

if TYPE_CHECKING:
    from .distribution import DistributionEngine
    from .membership import MembershipRegistry

logger = logging.getLogger("contribround.protocol.rounds")


class RoundManager:
    """
    Opens and closes rounds.

    close_round() hands the round to the DistributionEngine and only marks it
    finished once settlement succeeded.
    """

    def __init__(
        self,
        store: StateStore,
        membership: "MembershipRegistry",
        treasury: TransferLedger,
        clock: Clock,
        config: Optional[EngineConfig] = None,
        distribution: Optional["DistributionEngine"] = None,
        events: Optional[EventBus] = None,
    ):
        self.store = store
        self.membership = membership
        self.treasury = treasury
        self.clock = clock
        self.config = config or EngineConfig()
        self.distribution = distribution
        self.events = events

    # ========================================================================
    # QUERIES
    # ========================================================================

    def current_round_id(self) -> int:
        return int(self.store.get(ROUND_ID_KEY, 0))

    def get_round(self, round_id: int) -> Optional[Round]:
        data = self.store.get(self._key(round_id))
        return Round.from_dict(data) if data is not None else None

    def get_current_round(self) -> Optional[Round]:
        round_id = self.current_round_id()
        return self.get_round(round_id) if round_id else None

    def active_round_id(self) -> Optional[int]:
        """Id of the unfinished round, or None."""
        current = self.get_current_round()
        if current is not None and not current.is_finished:
            return self.current_round_id()
        return None

    def is_active(self) -> bool:
        return self.active_round_id() is not None

    def is_voting_open(self) -> bool:
        current = self.get_current_round()
        return current is not None and current.is_voting_open(self.clock.now())

    def get_min_elapsed(self) -> int:
        """Minimum time (ms) between opening a round and its finish_at."""
        return self.config.min_round_duration_ms

    def list_rounds(self) -> List[Tuple[int, Round]]:
        return [
            (round_id, self.get_round(round_id))
            for round_id in range(1, self.current_round_id() + 1)
            if self.store.contains(self._key(round_id))
        ]

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    def open_round(
        self,
        caller: str,
        name: str,
        value: int,
        max_votes: int,
        finish_at: int,
    ) -> int:
        """
        Open a new round.

        Args:
            caller: Administrator opening the round
            name: Display name
            value: Fund to distribute at close
            max_votes: Vote units each contributor may cast (1..MAX_VOTES)
            finish_at: Deadline in ms, at least min_round_duration_ms from now

        Returns:
            The new round id
        """
        self.membership.require_admin(caller)

        active = self.active_round_id()
        if active is not None:
            raise IsAnActiveRound(active)

        if max_votes < 1:
            raise InvalidRoundParameter("max_votes", "must be at least 1")
        if max_votes > MAX_VOTES:
            raise InvalidRoundParameter("max_votes", f"must be at most {MAX_VOTES}")

        now = self.clock.now()
        earliest = now + self.config.min_round_duration_ms
        if finish_at < earliest:
            raise InvalidRoundParameter(
                "finish_at", f"must be at least {self.config.min_round_duration_ms}ms after {now}"
            )

        if value < 0 or value > MAX_BALANCE:
            raise InvalidRoundParameter("value", "must be within 0..MAX_BALANCE")

        required = value + self.config.min_balance
        available = self.treasury.balance()
        if available < required:
            raise InsufficientFunds(required, available)

        round_id = self.current_round_id() + 1
        new_round = Round(name=name, value=value, max_votes=max_votes, finish_at=finish_at)
        self.store.insert(self._key(round_id), new_round.to_dict())
        self.store.insert(ROUND_ID_KEY, round_id)

        logger.info(
            f"Opened round {round_id} '{name}': value={value} "
            f"max_votes={max_votes} finish_at={finish_at}"
        )
        if self.events is not None:
            self.events.emit(round_opened(round_id, name, value, max_votes, finish_at))

        return round_id

    def close_round(self, caller: str) -> SettlementReport:
        """
        Close the current round once its deadline has passed and settle it.

        Returns:
            The settlement report
        """
        self.membership.require_admin(caller)

        round_id = self.current_round_id()
        current = self.get_round(round_id) if round_id else None
        if current is None or current.is_finished:
            raise IsNoActiveRound(round_id)

        now = self.clock.now()
        if now < current.finish_at:
            raise NotYetFinishedRound(current.finish_at, now)

        if self.distribution is None:
            raise RuntimeError("RoundManager has no DistributionEngine")

        report = self.distribution.settle(round_id, current)

        current.is_finished = True
        self.store.insert(self._key(round_id), current.to_dict())

        logger.info(
            f"Closed round {round_id}: votes={report.total_votes} "
            f"reputation={report.total_reputation} distributed={report.distributed}"
        )
        if self.events is not None:
            self.events.emit(round_closed(
                round_id, report.total_votes, report.total_reputation, report.distributed
            ))

        return report

    def _key(self, round_id: int) -> str:
        return f"{ROUND_PREFIX}{round_id}"

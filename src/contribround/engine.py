"""
contribround/engine.py

ContributionEngine: the one object callers talk to.

Owns the state store, the clock, the treasury, the token minter and the
event bus, and wires the protocol components over them. Every public call:

- runs under one re-entrant lock (calls are totally ordered)
- runs inside one transaction spanning store, treasury, minter and events;
  if the call raises, all four roll back and the exception propagates

Usage:
    from contribround import ContributionEngine, Vote
    from contribround.clock import ManualClock
    from contribround.ledger import InMemoryTreasury

    engine = ContributionEngine(
        admin="root",
        treasury=InMemoryTreasury(initial_balance=1000),
        clock=ManualClock(start=0),
    )
    engine.add_contributor("root", "alice")
    engine.add_contributor("root", "bob")

    engine.open_round("root", "Sprint 1", value=1000, max_votes=5, finish_at=3_600_000)
    engine.submit_vote("alice", "bob", Vote.positive(3))

    engine.clock.advance(3_600_000)
    report = engine.close_round("root")
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .clock import Clock, SystemClock
from .config import EngineConfig
from .errors import MemberNotExist
from .events import EventBus
from .ledger.tokens import InMemoryTokenMinter, TokenMinter
from .ledger.treasury import InMemoryTreasury, TransferLedger
from .protocol.distribution import DistributionEngine
from .protocol.membership import MembershipRegistry
from .protocol.reputation import ReputationLedger
from .protocol.rounds import RoundManager
from .protocol.storage import StateStore, StorageBackend
from .protocol.types import Role, Round, SettlementReport, Vote, VoteReceipt
from .protocol.voting import VoteProcessor

logger = logging.getLogger("contribround.engine")


class ContributionEngine:
    """
    Reputation-weighted contribution-round engine.

    Args:
        admin: Initial administrator, assigned if the store has none yet
        backend: Storage backend (default: in-memory)
        treasury: Ledger funding the rounds (default: empty InMemoryTreasury)
        minter: Proof-of-contribution token contract
        clock: Time source in ms (default: SystemClock)
        config: Engine parameters (default: EngineConfig.from_env())
        events: Event bus (default: new EventBus)
    """

    def __init__(
        self,
        admin: Optional[str] = None,
        backend: Optional[StorageBackend] = None,
        treasury: Optional[TransferLedger] = None,
        minter: Optional[TokenMinter] = None,
        clock: Optional[Clock] = None,
        config: Optional[EngineConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.store = StateStore(backend)
        self.treasury = treasury or InMemoryTreasury()
        self.minter = minter or InMemoryTokenMinter()
        self.clock = clock or SystemClock()
        self.config = config or EngineConfig.from_env()
        self.events = events or EventBus()

        self._lock = threading.RLock()
        self._depth = 0

        self.reputation = ReputationLedger(self.store)
        self.rounds = RoundManager(
            self.store,
            membership=None,
            treasury=self.treasury,
            clock=self.clock,
            config=self.config,
            events=self.events,
        )
        self.membership = MembershipRegistry(
            self.store,
            self.reputation,
            active_round=self.rounds.active_round_id,
            events=self.events,
        )
        self.rounds.membership = self.membership
        self.distribution = DistributionEngine(
            self.reputation,
            self.treasury,
            self.minter,
            config=self.config,
            events=self.events,
        )
        self.rounds.distribution = self.distribution
        self.voting = VoteProcessor(
            self.membership,
            self.reputation,
            self.rounds,
            self.clock,
            events=self.events,
        )

        if admin is not None:
            with self._atomic():
                self.membership.bootstrap_admin(admin)

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """
        Serialize the call and make it all-or-nothing.

        Nested calls (an engine method used from a subscriber or from another
        engine method) join the outer transaction.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            participants = [self.store, self.treasury, self.minter, self.events]
            for participant in participants:
                participant.begin()
            self._depth = 1
            try:
                yield
            except BaseException:
                self._depth = 0
                for participant in reversed(participants):
                    participant.rollback()
                raise
            self._depth = 0
            # Store first: a failed store commit restores the backend itself
            try:
                self.store.commit()
            except BaseException:
                for participant in (self.events, self.minter, self.treasury):
                    participant.rollback()
                raise
            # Events last: subscribers only ever see committed state
            for participant in (self.treasury, self.minter, self.events):
                participant.commit()

    # ========================================================================
    # MEMBERSHIP
    # ========================================================================

    def add_admin(self, caller: str, target: str) -> None:
        with self._atomic():
            self.membership.add_admin(caller, target)

    def remove_admin(self, caller: str, target: str) -> None:
        with self._atomic():
            self.membership.remove_admin(caller, target)

    def add_contributor(self, caller: str, target: str) -> None:
        with self._atomic():
            self.membership.add_contributor(caller, target)

    def remove_contributor(self, caller: str, target: str) -> None:
        with self._atomic():
            self.membership.remove_contributor(caller, target)

    def get_role(self, account: str) -> Optional[Role]:
        with self._lock:
            return self.membership.get_role(account)

    def list_admins(self) -> List[str]:
        with self._lock:
            return self.membership.admins()

    def list_contributors(self) -> List[str]:
        with self._lock:
            return self.reputation.contributors()

    # ========================================================================
    # ROUNDS
    # ========================================================================

    def open_round(self, caller: str, name: str, value: int, max_votes: int, finish_at: int) -> int:
        with self._atomic():
            return self.rounds.open_round(caller, name, value, max_votes, finish_at)

    def close_round(self, caller: str) -> SettlementReport:
        with self._atomic():
            return self.rounds.close_round(caller)

    def current_round_id(self) -> int:
        with self._lock:
            return self.rounds.current_round_id()

    def get_round(self, round_id: int) -> Optional[Round]:
        with self._lock:
            return self.rounds.get_round(round_id)

    def get_current_round(self) -> Optional[Round]:
        with self._lock:
            return self.rounds.get_current_round()

    def get_min_elapsed(self) -> int:
        return self.rounds.get_min_elapsed()

    # ========================================================================
    # VOTING
    # ========================================================================

    def submit_vote(self, caller: str, receiver: str, vote: Vote) -> VoteReceipt:
        with self._atomic():
            return self.voting.submit_vote(caller, receiver, vote)

    def get_reputation(self, caller: str, contributor: Optional[str] = None) -> int:
        """
        Current-round reputation of `contributor` (default: the caller).

        The caller must hold a role; the contributor must be a contributor.
        """
        with self._lock:
            if not self.membership.is_member(caller):
                raise MemberNotExist(caller)
            target = caller if contributor is None else contributor
            if not self.membership.is_contributor(target):
                raise MemberNotExist(target)
            return self.reputation.get_reputation(target, self.rounds.current_round_id())

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            round_id = self.rounds.current_round_id()
            current = self.rounds.get_round(round_id) if round_id else None
            return {
                'current_round_id': round_id,
                'current_round': current.to_dict() if current else None,
                'round_active': current is not None and not current.is_finished,
                'voting_open': current is not None and current.is_voting_open(self.clock.now()),
                'admins': self.membership.admins(),
                'contributors': self.reputation.contributors(),
                'treasury_balance': self.treasury.balance(),
                'min_round_duration_ms': self.rounds.get_min_elapsed(),
                'config': self.config.to_dict(),
            }

"""
contribround/ledger/treasury.py

Ledger transfer primitive used to pay out round funds.

Architecture:
    TransferLedger (abstract)
    └── InMemoryTreasury (local runs and tests)

A host that settles on a real chain subclasses TransferLedger and maps
begin/commit/rollback onto its own transaction handling.

Usage:
    from contribround.ledger.treasury import InMemoryTreasury

    treasury = InMemoryTreasury(initial_balance=10_000)
    treasury.transfer("alice", 250)
    treasury.balance()            # -> 9750
    treasury.balance_of("alice")  # -> 250
"""

import logging
from typing import Dict, Optional, Tuple
from abc import abstractmethod

from ..config import MAX_BALANCE
from ..errors import TransferError
from ..transactions import Transactional

logger = logging.getLogger("contribround.ledger.treasury")


# ============================================================================
# ABSTRACT TRANSFER LEDGER
# ============================================================================

class TransferLedger(Transactional):
    """
    Abstract base class for the engine's treasury.

    The engine's own balance funds every round; transfer() debits it.
    """

    @abstractmethod
    def balance(self) -> int:
        """
        Get the engine's own balance.

        Returns:
            Balance in the smallest unit
        """
        pass

    @abstractmethod
    def transfer(self, account: str, amount: int) -> None:
        """
        Move `amount` from the engine's balance to `account`.

        Args:
            account: Recipient account
            amount: Non-negative amount

        Raises:
            TransferError: if the transfer cannot be made
        """
        pass


# ============================================================================
# IN-MEMORY TREASURY
# ============================================================================

class InMemoryTreasury(TransferLedger):
    """
    Deterministic in-memory ledger.

    Tracks the engine balance and the balance received by every account.
    begin() snapshots both, rollback() restores the snapshot.
    """

    def __init__(self, initial_balance: int = 0):
        if initial_balance < 0 or initial_balance > MAX_BALANCE:
            raise ValueError("initial_balance must be within 0..MAX_BALANCE")
        self._balance = initial_balance
        self._accounts: Dict[str, int] = {}
        self._snapshot: Optional[Tuple[int, Dict[str, int]]] = None

    def balance(self) -> int:
        return self._balance

    def balance_of(self, account: str) -> int:
        return self._accounts.get(account, 0)

    def accounts(self) -> Dict[str, int]:
        return dict(self._accounts)

    def fund(self, amount: int) -> int:
        """
        Credit the engine's balance (host/testing helper).

        Returns:
            New balance
        """
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if self._balance + amount > MAX_BALANCE:
            raise ValueError("balance overflow")
        self._balance += amount
        logger.info(f"Treasury funded with {amount}, balance {self._balance}")
        return self._balance

    def transfer(self, account: str, amount: int) -> None:
        if not account:
            raise TransferError("recipient account is required")
        if amount < 0:
            raise TransferError("amount must be non-negative")
        if amount > self._balance:
            raise TransferError(
                f"insufficient balance: {amount} requested, {self._balance} available"
            )
        received = self._accounts.get(account, 0) + amount
        if received > MAX_BALANCE:
            raise TransferError(f"balance overflow for {account}")

        self._balance -= amount
        self._accounts[account] = received
        logger.debug(f"Transferred {amount} to {account}")

    def begin(self) -> None:
        self._snapshot = (self._balance, dict(self._accounts))

    def commit(self) -> None:
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is None:
            return
        self._balance, self._accounts = self._snapshot
        self._snapshot = None

"""
contribround/transactions.py

Participant interface for an engine call's all-or-nothing transaction.

Kept free of package imports so the store, the ledgers and the event bus can
all depend on it.
"""

from abc import ABC, abstractmethod


class Transactional(ABC):
    """
    Participant in an engine call's all-or-nothing transaction.

    The engine calls begin() on every participant before an operation,
    commit() on all of them after it succeeds, and rollback() if it raises.
    """

    @abstractmethod
    def begin(self) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass

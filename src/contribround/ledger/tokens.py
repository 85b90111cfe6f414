"""
contribround/ledger/tokens.py

Proof-of-contribution token minting.

The engine calls mint_to(account) once per tiered contributor at round
close: gold first, then silver, then bronze. The tier is encoded by the call
order only; minters that want to label tokens can read it from the
settlement report.

Architecture:
    TokenMinter (abstract)
    └── InMemoryTokenMinter (sequential ids, first id is 1)
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Tuple
from abc import abstractmethod

from ..errors import MintError
from ..transactions import Transactional

logger = logging.getLogger("contribround.ledger.tokens")


@dataclass
class Token:
    """A minted proof-of-contribution token."""
    token_id: int
    owner: str

    def to_dict(self) -> dict:
        return asdict(self)


class TokenMinter(Transactional):
    """Abstract base class for the token contract."""

    @abstractmethod
    def mint_to(self, account: str) -> None:
        """
        Mint one token to `account`.

        Raises:
            MintError: if the token cannot be minted
        """
        pass


class InMemoryTokenMinter(TokenMinter):
    """
    Local token contract.

    Ids are sequential and start at 1. A max_supply of 0 means unlimited.
    """

    def __init__(self, max_supply: int = 0):
        self.max_supply = max_supply
        self._next_id = 0
        self._tokens: List[Token] = []
        self._snapshot: Optional[Tuple[int, List[Token]]] = None

    @property
    def total_supply(self) -> int:
        return len(self._tokens)

    def mint_to(self, account: str) -> None:
        if not account:
            raise MintError("recipient account is required")
        if self.max_supply and self.total_supply >= self.max_supply:
            raise MintError(f"max supply of {self.max_supply} reached")

        self._next_id += 1
        token = Token(token_id=self._next_id, owner=account)
        self._tokens.append(token)
        logger.debug(f"Minted token {token.token_id} to {account}")

    def tokens(self) -> List[Token]:
        return list(self._tokens)

    def tokens_of(self, account: str) -> List[Token]:
        return [t for t in self._tokens if t.owner == account]

    def owners(self) -> Dict[int, str]:
        return {t.token_id: t.owner for t in self._tokens}

    def begin(self) -> None:
        self._snapshot = (self._next_id, list(self._tokens))

    def commit(self) -> None:
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is None:
            return
        self._next_id, self._tokens = self._snapshot
        self._snapshot = None

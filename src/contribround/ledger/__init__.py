"""
contribround/ledger/

External value collaborators: the treasury that pays round funds and the
token contract that mints proof-of-contribution tokens.
"""

from .treasury import (
    TransferLedger,
    InMemoryTreasury,
)

from .tokens import (
    Token,
    TokenMinter,
    InMemoryTokenMinter,
)

__all__ = [
    # Treasury
    "TransferLedger",
    "InMemoryTreasury",
    # Tokens
    "Token",
    "TokenMinter",
    "InMemoryTokenMinter",
]

"""
contribround/protocol/

Round, membership, voting and settlement protocols.
"""

from .isqrt import isqrt
from .types import (
    Role,
    VoteSign,
    Tier,
    Vote,
    ContributorRecord,
    Round,
    VoteReceipt,
    Payout,
    TierAward,
    SettlementReport,
)
from .storage import (
    Transactional,
    StorageBackend,
    MemoryBackend,
    FileBackend,
    StateStore,
)
from .reputation import ReputationLedger, apply_vote, clamp_reputation
from .membership import MembershipRegistry
from .rounds import RoundManager
from .voting import VoteProcessor
from .distribution import DistributionEngine, compute_share, rank_tiers

__all__ = [
    "isqrt",
    # Types
    "Role",
    "VoteSign",
    "Tier",
    "Vote",
    "ContributorRecord",
    "Round",
    "VoteReceipt",
    "Payout",
    "TierAward",
    "SettlementReport",
    # Storage
    "Transactional",
    "StorageBackend",
    "MemoryBackend",
    "FileBackend",
    "StateStore",
    # Components
    "ReputationLedger",
    "apply_vote",
    "clamp_reputation",
    "MembershipRegistry",
    "RoundManager",
    "VoteProcessor",
    "DistributionEngine",
    "compute_share",
    "rank_tiers",
]

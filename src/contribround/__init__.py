"""
contribround - Reputation-weighted contribution rounds

Administrators open funded rounds; contributors vote on each other with a
quadratic per-round quota; closing a round pays the round value out in
proportion to reputation and mints proof-of-contribution tokens for the top
three.

Usage:
    from contribround import ContributionEngine, Vote
    from contribround.ledger import InMemoryTreasury

    engine = ContributionEngine(admin="root", treasury=InMemoryTreasury(10_000))
    engine.add_contributor("root", "alice")
    engine.add_contributor("root", "bob")

    engine.open_round("root", "Sprint 1", value=1000, max_votes=5, finish_at=deadline_ms)
    engine.submit_vote("alice", "bob", Vote.positive(2))

    # after the deadline
    report = engine.close_round("root")

REST API Usage:
    from contribround.api import EngineAPI

    api = EngineAPI(engine, host="0.0.0.0", port=8640)
    trio.run(api.start)

Metrics Usage:
    from contribround.metrics import MetricsCollector

    metrics = MetricsCollector(engine)
    prometheus_output = metrics.collect()
"""

__version__ = "0.1.0"

from .clock import Clock, ManualClock, SystemClock
from .config import EngineConfig, RemainderPolicy
from .engine import ContributionEngine
from .errors import (
    ContribRoundError,
    AuthorizationError,
    StateError,
    ValidationError,
    ResourceError,
    CollaboratorError,
)
from .events import Event, EventBus, EventType
from .ledger import InMemoryTokenMinter, InMemoryTreasury, TokenMinter, TransferLedger
from .protocol import (
    Role,
    Tier,
    Vote,
    VoteSign,
    VoteReceipt,
    Round,
    SettlementReport,
    FileBackend,
    MemoryBackend,
    isqrt,
)
from .metrics import MetricsCollector
from .api import EngineAPI

__all__ = [
    # Core
    "ContributionEngine",
    "EngineConfig",
    "RemainderPolicy",
    # Types
    "Role",
    "Tier",
    "Vote",
    "VoteSign",
    "VoteReceipt",
    "Round",
    "SettlementReport",
    "isqrt",
    # Errors
    "ContribRoundError",
    "AuthorizationError",
    "StateError",
    "ValidationError",
    "ResourceError",
    "CollaboratorError",
    # Collaborators
    "Clock",
    "SystemClock",
    "ManualClock",
    "TransferLedger",
    "InMemoryTreasury",
    "TokenMinter",
    "InMemoryTokenMinter",
    "MemoryBackend",
    "FileBackend",
    # Events
    "Event",
    "EventBus",
    "EventType",
    # API & Metrics
    "EngineAPI",
    "MetricsCollector",
]

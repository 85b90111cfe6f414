"""
contribround/tests/conftest.py

Shared fixtures: a manual clock, a funded treasury and an engine wired to
both, with "root" as administrator.
"""

import pytest

from contribround import ContributionEngine
from contribround.clock import ManualClock
from contribround.config import EngineConfig
from contribround.ledger import InMemoryTokenMinter, InMemoryTreasury

# Round timing used across the suite
START_MS = 1_000_000
MIN_DURATION_MS = 60_000


@pytest.fixture
def clock():
    return ManualClock(start=START_MS)


@pytest.fixture
def treasury():
    return InMemoryTreasury(initial_balance=100_000)


@pytest.fixture
def minter():
    return InMemoryTokenMinter()


@pytest.fixture
def config():
    return EngineConfig(min_round_duration_ms=MIN_DURATION_MS)


@pytest.fixture
def engine(clock, treasury, minter, config):
    """Engine with administrator "root" and no contributors."""
    return ContributionEngine(
        admin="root",
        treasury=treasury,
        minter=minter,
        clock=clock,
        config=config,
    )


@pytest.fixture
def team(engine):
    """Engine with contributors alice, bob and carol (in that order)."""
    for account in ("alice", "bob", "carol"):
        engine.add_contributor("root", account)
    return engine

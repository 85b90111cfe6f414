"""
contribround/tests/test_rounds.py

Unit tests for the round lifecycle.
"""

import pytest

from contribround.config import EngineConfig, MAX_VOTES
from contribround.errors import (
    AdministrativeFunction,
    InsufficientFunds,
    InvalidRoundParameter,
    IsAnActiveRound,
    IsNoActiveRound,
    NotYetFinishedRound,
)
from contribround.events import EventType

from conftest import MIN_DURATION_MS, START_MS

DEADLINE = START_MS + MIN_DURATION_MS


class TestOpenRound:
    """Test open_round()."""

    def test_open_first_round(self, engine):
        round_id = engine.open_round("root", "Sprint 1", 1000, 5, DEADLINE)

        assert round_id == 1
        assert engine.current_round_id() == 1
        current = engine.get_current_round()
        assert current.name == "Sprint 1"
        assert current.value == 1000
        assert current.max_votes == 5
        assert current.finish_at == DEADLINE
        assert current.is_finished is False

    def test_no_round_initially(self, engine):
        assert engine.current_round_id() == 0
        assert engine.get_current_round() is None

    def test_requires_admin(self, team):
        with pytest.raises(AdministrativeFunction):
            team.open_round("alice", "r", 10, 1, DEADLINE)
        assert team.current_round_id() == 0

    def test_single_active_round(self, engine):
        engine.open_round("root", "r1", 10, 1, DEADLINE)
        with pytest.raises(IsAnActiveRound) as exc:
            engine.open_round("root", "r2", 10, 1, DEADLINE + 1)
        assert exc.value.round_id == 1

    def test_active_round_checked_before_parameters(self, engine):
        engine.open_round("root", "r1", 10, 1, DEADLINE)
        with pytest.raises(IsAnActiveRound):
            engine.open_round("root", "r2", 10, 0, 0)

    @pytest.mark.parametrize("max_votes", [0, -1, MAX_VOTES + 1])
    def test_max_votes_range(self, engine, max_votes):
        with pytest.raises(InvalidRoundParameter) as exc:
            engine.open_round("root", "r", 10, max_votes, DEADLINE)
        assert exc.value.parameter == "max_votes"

    def test_max_votes_limit_accepted(self, engine):
        engine.open_round("root", "r", 10, MAX_VOTES, DEADLINE)
        assert engine.get_current_round().max_votes == MAX_VOTES

    def test_finish_at_too_early(self, engine):
        with pytest.raises(InvalidRoundParameter) as exc:
            engine.open_round("root", "r", 10, 1, DEADLINE - 1)
        assert exc.value.parameter == "finish_at"

    def test_finish_at_exactly_minimum(self, engine):
        assert engine.open_round("root", "r", 10, 1, DEADLINE) == 1

    def test_negative_value(self, engine):
        with pytest.raises(InvalidRoundParameter) as exc:
            engine.open_round("root", "r", -1, 1, DEADLINE)
        assert exc.value.parameter == "value"

    def test_insufficient_funds(self, engine, treasury):
        with pytest.raises(InsufficientFunds) as exc:
            engine.open_round("root", "r", treasury.balance() + 1, 1, DEADLINE)
        assert exc.value.available == treasury.balance()
        assert engine.current_round_id() == 0

    def test_min_balance_reserved(self, clock, treasury, minter):
        from contribround import ContributionEngine

        engine = ContributionEngine(
            admin="root",
            treasury=treasury,
            minter=minter,
            clock=clock,
            config=EngineConfig(min_round_duration_ms=MIN_DURATION_MS, min_balance=500),
        )
        with pytest.raises(InsufficientFunds) as exc:
            engine.open_round("root", "r", treasury.balance() - 499, 1, DEADLINE)
        assert exc.value.required == treasury.balance() + 1

        engine.open_round("root", "r", treasury.balance() - 500, 1, DEADLINE)

    def test_get_min_elapsed(self, engine):
        assert engine.get_min_elapsed() == MIN_DURATION_MS

    def test_open_emits_event(self, engine):
        engine.open_round("root", "r", 10, 2, DEADLINE)
        events = engine.events.history(EventType.ROUND_OPENED)
        assert len(events) == 1
        assert events[0].data["round_id"] == 1
        assert events[0].data["max_votes"] == 2


class TestCloseRound:
    """Test close_round()."""

    def test_close_after_deadline(self, team, clock):
        team.open_round("root", "r", 300, 3, DEADLINE)
        clock.set(DEADLINE)
        report = team.close_round("root")

        assert report.round_id == 1
        assert team.get_round(1).is_finished is True
        assert team.rounds.is_active() is False

    def test_close_before_deadline(self, team, clock):
        team.open_round("root", "r", 300, 3, DEADLINE)
        clock.set(DEADLINE - 1)
        with pytest.raises(NotYetFinishedRound) as exc:
            team.close_round("root")
        assert exc.value.finish_at == DEADLINE
        assert exc.value.now == DEADLINE - 1

    def test_close_without_round(self, engine):
        with pytest.raises(IsNoActiveRound):
            engine.close_round("root")

    def test_close_twice(self, team, clock):
        team.open_round("root", "r", 300, 3, DEADLINE)
        clock.set(DEADLINE)
        team.close_round("root")
        with pytest.raises(IsNoActiveRound):
            team.close_round("root")

    def test_close_requires_admin(self, team, clock):
        team.open_round("root", "r", 300, 3, DEADLINE)
        clock.set(DEADLINE)
        with pytest.raises(AdministrativeFunction):
            team.close_round("alice")

    def test_round_ids_increase(self, team, clock):
        for expected in (1, 2, 3):
            deadline = clock.now() + MIN_DURATION_MS
            assert team.open_round("root", f"r{expected}", 30, 1, deadline) == expected
            clock.set(deadline)
            team.close_round("root")

        assert [round_id for round_id, _ in team.rounds.list_rounds()] == [1, 2, 3]
        assert all(r.is_finished for _, r in team.rounds.list_rounds())

    def test_voting_window(self, team, clock):
        team.open_round("root", "r", 30, 1, DEADLINE)
        assert team.rounds.is_voting_open() is True
        clock.set(DEADLINE)
        assert team.rounds.is_voting_open() is False
        # Still active until closed
        assert team.rounds.is_active() is True

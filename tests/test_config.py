"""
contribround/tests/test_config.py

Unit tests for EngineConfig and error serialization.
"""

import pytest

from contribround.config import (
    DEFAULT_MIN_ROUND_DURATION_MS,
    EngineConfig,
    RemainderPolicy,
)
from contribround.errors import (
    AdministrativeFunction,
    ExceedsYourVoteLimit,
    InsufficientFunds,
    NftNotSent,
)


class TestRemainderPolicy:
    def test_from_string(self):
        assert RemainderPolicy.from_string("retain") == RemainderPolicy.RETAIN
        assert RemainderPolicy.from_string(" Top_Contributor ") == RemainderPolicy.TOP_CONTRIBUTOR

    def test_invalid(self):
        with pytest.raises(ValueError, match="Valid options"):
            RemainderPolicy.from_string("burn")


class TestEngineConfig:
    """Test EngineConfig."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.min_round_duration_ms == DEFAULT_MIN_ROUND_DURATION_MS
        assert config.min_balance == 0
        assert config.remainder_policy == RemainderPolicy.RETAIN

    def test_string_policy_converted(self):
        config = EngineConfig(remainder_policy="top_contributor")
        assert config.remainder_policy == RemainderPolicy.TOP_CONTRIBUTOR

    def test_validation(self):
        with pytest.raises(ValueError):
            EngineConfig(min_round_duration_ms=-1)
        with pytest.raises(ValueError):
            EngineConfig(min_balance=-1)

    def test_from_env(self):
        config = EngineConfig.from_env({
            "CONTRIBROUND_MIN_ROUND_DURATION_MS": "1000",
            "CONTRIBROUND_MIN_BALANCE": "50",
            "CONTRIBROUND_REMAINDER_POLICY": "top_contributor",
        })
        assert config.min_round_duration_ms == 1000
        assert config.min_balance == 50
        assert config.remainder_policy == RemainderPolicy.TOP_CONTRIBUTOR

    def test_from_env_empty(self):
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_from_env_bad_integer(self):
        with pytest.raises(ValueError, match="CONTRIBROUND_MIN_BALANCE"):
            EngineConfig.from_env({"CONTRIBROUND_MIN_BALANCE": "lots"})

    def test_to_dict(self):
        assert EngineConfig(min_round_duration_ms=5).to_dict() == {
            "min_round_duration_ms": 5,
            "min_balance": 0,
            "remainder_policy": "retain",
        }


class TestErrorSerialization:
    """Test ContribRoundError.to_dict()."""

    def test_categories(self):
        assert AdministrativeFunction("x").category == "authorization"
        assert ExceedsYourVoteLimit(2).category == "validation"
        assert InsufficientFunds(10, 5).category == "resource"
        assert NftNotSent("a").category == "collaborator"

    def test_to_dict(self):
        data = ExceedsYourVoteLimit(2).to_dict()
        assert data["error"] == "ExceedsYourVoteLimit"
        assert data["category"] == "validation"
        assert data["details"] == {"remaining": 2}

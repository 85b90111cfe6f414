"""
contribround/config.py

Configuration constants and data classes for contribround.
"""

import os
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, Optional, Mapping


# Numeric domains of the stored records
MAX_REPUTATION = 2**32 - 1      # unsigned 32-bit reputation
MAX_VOTES = 255                 # unsigned 8-bit vote counts
MAX_BALANCE = 2**128 - 1        # unsigned 128-bit fund amounts

# Reputation a contributor starts every round with
INITIAL_REPUTATION = 1

# Round tag of a record that was never touched by a round
UNINITIALIZED_ROUND_ID = 0

# Minimum distance between "now" and a new round's finish_at
DEFAULT_MIN_ROUND_DURATION_MS = 10 * 60 * 1000  # 10 minutes

# Treasury balance that must remain after a round is funded
DEFAULT_MIN_BALANCE = 0

# Proof-of-contribution tiers, in minting order
TIER_NAMES = ("gold", "silver", "bronze")

# REST API defaults
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8640
CALLER_HEADER = "x-caller"

# Environment variables read by EngineConfig.from_env()
ENV_MIN_ROUND_DURATION_MS = "CONTRIBROUND_MIN_ROUND_DURATION_MS"
ENV_MIN_BALANCE = "CONTRIBROUND_MIN_BALANCE"
ENV_REMAINDER_POLICY = "CONTRIBROUND_REMAINDER_POLICY"


class RemainderPolicy(Enum):
    """
    What happens to the rounding remainder of a settlement.

    RETAIN: remainder stays in the treasury (never transferred)
    TOP_CONTRIBUTOR: remainder is added to the highest-ranked contributor's share
    """
    RETAIN = "retain"
    TOP_CONTRIBUTOR = "top_contributor"

    @classmethod
    def from_string(cls, value: str) -> "RemainderPolicy":
        normalized = value.strip().lower()
        for policy in cls:
            if policy.value == normalized:
                return policy
        raise ValueError(
            f"Invalid remainder policy '{value}'. "
            f"Valid options: {', '.join(p.value for p in cls)}"
        )


@dataclass
class EngineConfig:
    """Tunable parameters of a ContributionEngine."""
    min_round_duration_ms: int = DEFAULT_MIN_ROUND_DURATION_MS
    min_balance: int = DEFAULT_MIN_BALANCE
    remainder_policy: RemainderPolicy = RemainderPolicy.RETAIN

    def __post_init__(self):
        if self.min_round_duration_ms < 0:
            raise ValueError("min_round_duration_ms must be non-negative")
        if self.min_balance < 0 or self.min_balance > MAX_BALANCE:
            raise ValueError("min_balance must be within 0..MAX_BALANCE")
        if isinstance(self.remainder_policy, str):
            self.remainder_policy = RemainderPolicy.from_string(self.remainder_policy)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a config from CONTRIBROUND_* environment variables.

        Unset variables fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}

        if env.get(ENV_MIN_ROUND_DURATION_MS):
            kwargs["min_round_duration_ms"] = _parse_int(
                ENV_MIN_ROUND_DURATION_MS, env[ENV_MIN_ROUND_DURATION_MS]
            )
        if env.get(ENV_MIN_BALANCE):
            kwargs["min_balance"] = _parse_int(ENV_MIN_BALANCE, env[ENV_MIN_BALANCE])
        if env.get(ENV_REMAINDER_POLICY):
            kwargs["remainder_policy"] = RemainderPolicy.from_string(env[ENV_REMAINDER_POLICY])

        return cls(**kwargs)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["remainder_policy"] = self.remainder_policy.value
        return data


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")

"""
contribround/metrics.py

Prometheus metrics collection for contribround.

Gauges are read from the engine at collection time; counters are fed by the
engine's event bus, so they only count committed operations.
"""

import time
import logging
from typing import TYPE_CHECKING, Any, Dict

from . import __version__
from .events import Event, EventType

if TYPE_CHECKING:
    from .engine import ContributionEngine

logger = logging.getLogger("contribround.metrics")


class MetricsCollector:
    """
    Prometheus metrics collector for a ContributionEngine.

    Usage:
        from contribround.metrics import MetricsCollector

        metrics = MetricsCollector(engine)

        # Get metrics in Prometheus format
        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "contribround_contributors": {
            "type": "gauge",
            "help": "Number of registered contributors",
        },
        "contribround_admins": {
            "type": "gauge",
            "help": "Number of administrators",
        },
        "contribround_current_round_id": {
            "type": "gauge",
            "help": "Id of the most recently opened round (0 = none)",
        },
        "contribround_round_active": {
            "type": "gauge",
            "help": "Whether a round is open (1=yes, 0=no)",
        },
        "contribround_treasury_balance": {
            "type": "gauge",
            "help": "Engine treasury balance",
        },
        "contribround_votes_total": {
            "type": "counter",
            "help": "Total number of accepted votes",
        },
        "contribround_vote_units_total": {
            "type": "counter",
            "help": "Total vote units cast",
        },
        "contribround_rounds_opened_total": {
            "type": "counter",
            "help": "Total number of rounds opened",
        },
        "contribround_rounds_closed_total": {
            "type": "counter",
            "help": "Total number of rounds settled",
        },
        "contribround_distributed_total": {
            "type": "counter",
            "help": "Total amount paid out to contributors",
        },
        "contribround_tokens_minted_total": {
            "type": "counter",
            "help": "Total proof-of-contribution tokens minted",
        },
        "contribround_uptime_seconds": {
            "type": "counter",
            "help": "Collector uptime in seconds",
        },
    }

    def __init__(self, engine: "ContributionEngine"):
        """
        Initialize metrics collector.

        Args:
            engine: Engine to collect metrics from
        """
        self.engine = engine
        self._start_time = time.time()

        # Counters (persist across collections)
        self._votes = 0
        self._vote_units = 0
        self._rounds_opened = 0
        self._rounds_closed = 0
        self._distributed = 0
        self._tokens_minted = 0

        engine.events.subscribe(self.record_event)

    def record_event(self, event: Event) -> None:
        """Update counters from an engine event."""
        if event.event_type == EventType.VOTE_CAST:
            self._votes += 1
            self._vote_units += event.data.get('value', 0)
        elif event.event_type == EventType.ROUND_OPENED:
            self._rounds_opened += 1
        elif event.event_type == EventType.ROUND_CLOSED:
            self._rounds_closed += 1
            self._distributed += event.data.get('distributed', 0)
        elif event.event_type == EventType.TOKEN_AWARDED:
            self._tokens_minted += 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        def add_metric(name: str, value: float):
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")
            lines.append(f"{name} {value}")

        status = self.engine.get_status()

        add_metric("contribround_contributors", len(status['contributors']))
        add_metric("contribround_admins", len(status['admins']))
        add_metric("contribround_current_round_id", status['current_round_id'])
        add_metric("contribround_round_active", 1 if status['round_active'] else 0)
        add_metric("contribround_treasury_balance", status['treasury_balance'])

        add_metric("contribround_votes_total", self._votes)
        add_metric("contribround_vote_units_total", self._vote_units)
        add_metric("contribround_rounds_opened_total", self._rounds_opened)
        add_metric("contribround_rounds_closed_total", self._rounds_closed)
        add_metric("contribround_distributed_total", self._distributed)
        add_metric("contribround_tokens_minted_total", self._tokens_minted)

        add_metric("contribround_uptime_seconds", time.time() - self._start_time)

        lines.append("# HELP contribround_info Engine information")
        lines.append("# TYPE contribround_info gauge")
        lines.append(f'contribround_info{{version="{__version__}"}} 1')

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON API).

        Returns:
            Dictionary of metric values
        """
        status = self.engine.get_status()
        return {
            "contributors": len(status['contributors']),
            "admins": len(status['admins']),
            "current_round_id": status['current_round_id'],
            "round_active": status['round_active'],
            "treasury_balance": status['treasury_balance'],
            "votes": self._votes,
            "vote_units": self._vote_units,
            "rounds_opened": self._rounds_opened,
            "rounds_closed": self._rounds_closed,
            "distributed": self._distributed,
            "tokens_minted": self._tokens_minted,
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._votes = 0
        self._vote_units = 0
        self._rounds_opened = 0
        self._rounds_closed = 0
        self._distributed = 0
        self._tokens_minted = 0

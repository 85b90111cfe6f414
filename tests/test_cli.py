"""
contribround/tests/test_cli.py

Tests for the command line interface.
"""

import json
from unittest.mock import patch

from click.testing import CliRunner

from contribround import ContributionEngine
from contribround.cli import main
from contribround.config import EngineConfig
from contribround.ledger import InMemoryTreasury
from contribround.protocol.storage import FileBackend


class TestIsqrtCommand:
    def test_prints_root(self):
        result = CliRunner().invoke(main, ["isqrt", "500"])
        assert result.exit_code == 0
        assert result.output.strip() == "22"

    def test_rejects_negative(self):
        result = CliRunner().invoke(main, ["isqrt", "--", "-4"])
        assert result.exit_code != 0


class TestStatusCommand:
    def test_missing_state(self, tmp_path):
        result = CliRunner().invoke(main, ["status", "--state-dir", str(tmp_path / "none")])
        assert result.exit_code != 0
        assert "No engine state" in result.output

    def test_prints_state(self, tmp_path):
        engine = ContributionEngine(
            admin="root",
            backend=FileBackend(tmp_path),
            treasury=InMemoryTreasury(1000),
            config=EngineConfig(min_round_duration_ms=0),
        )
        engine.add_contributor("root", "alice")
        engine.open_round("root", "Sprint", 100, 2, engine.clock.now() + 60_000)

        result = CliRunner().invoke(main, ["status", "--state-dir", str(tmp_path)])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["admins"] == ["root"]
        assert data["contributors"] == ["alice"]
        assert data["rounds"][0]["name"] == "Sprint"


class TestServeCommand:
    def test_requires_admin_on_empty_state(self, tmp_path):
        result = CliRunner().invoke(main, ["serve", "--state-dir", str(tmp_path)])
        assert result.exit_code != 0
        assert "No administrator" in result.output

    def test_starts_api(self, tmp_path):
        with patch("contribround.cli.trio.run") as run:
            result = CliRunner().invoke(
                main,
                ["serve", "--admin", "root", "--state-dir", str(tmp_path), "--fund", "500", "--port", "9999"],
            )
        assert result.exit_code == 0, result.output
        run.assert_called_once()
        api_start = run.call_args[0][0]
        api = api_start.__self__
        assert api.port == 9999
        assert api.engine.treasury.balance() == 500
        assert api.engine.list_admins() == ["root"]

"""
contribround/cli.py

Command line entry point.

    contribround serve --admin root --state-dir ./state --fund 100000
    contribround status --state-dir ./state
    contribround isqrt 1000000
"""

import json
import logging
from pathlib import Path

import click
import trio

from . import __version__
from .api import EngineAPI
from .config import DEFAULT_API_HOST, DEFAULT_API_PORT, EngineConfig
from .engine import ContributionEngine
from .ledger import InMemoryTreasury
from .protocol.isqrt import isqrt as integer_sqrt
from .protocol.storage import DEFAULT_STORAGE_DIR, FileBackend

logger = logging.getLogger("contribround.cli")

LOG_LEVELS = ['debug', 'info', 'warning', 'error']


def state_dir_option():
    """Click option decorator for --state-dir."""
    def decorator(f):
        return click.option(
            '--state-dir',
            type=click.Path(file_okay=False, path_type=Path),
            default=DEFAULT_STORAGE_DIR,
            show_default=True,
            help='Directory holding the engine state',
        )(f)
    return decorator


def _load_config() -> EngineConfig:
    try:
        return EngineConfig.from_env()
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


@click.group()
@click.version_option(__version__, prog_name="contribround")
def main():
    """Reputation-weighted contribution rounds."""


@main.command()
@click.option('--admin', default=None, help='Initial administrator (only used on an empty state)')
@state_dir_option()
@click.option('--host', default=DEFAULT_API_HOST, show_default=True, help='Address to bind the API to')
@click.option('--port', default=DEFAULT_API_PORT, show_default=True, type=int, help='API port')
@click.option('--fund', default=0, show_default=True, type=click.IntRange(min=0),
              help='Initial treasury balance')
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              default='info', show_default=True)
@click.option('--no-metrics', is_flag=True, default=False, help='Disable the /metrics endpoint')
def serve(admin, state_dir, host, port, fund, log_level, no_metrics):
    """Run the REST API over a file-backed engine."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = ContributionEngine(
        admin=admin,
        backend=FileBackend(state_dir),
        treasury=InMemoryTreasury(initial_balance=fund),
        config=_load_config(),
    )
    if not engine.list_admins():
        raise click.ClickException("No administrator configured; pass --admin on first start")

    logger.info(f"Engine state in {state_dir}, admins: {', '.join(engine.list_admins())}")
    api = EngineAPI(engine, host=host, port=port, enable_metrics=not no_metrics)
    try:
        trio.run(api.start)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


@main.command()
@state_dir_option()
def status(state_dir):
    """Print rounds and members of a stored engine as JSON."""
    if not state_dir.exists():
        raise click.ClickException(f"No engine state in {state_dir}")

    engine = ContributionEngine(backend=FileBackend(state_dir), config=_load_config())
    data = engine.get_status()
    data['rounds'] = [
        {"round_id": round_id, **round_.to_dict()}
        for round_id, round_ in engine.rounds.list_rounds()
    ]
    click.echo(json.dumps(data, indent=2))


@main.command(name='isqrt')
@click.argument('value', type=click.IntRange(min=0))
def isqrt_command(value):
    """Print the integer square root of VALUE."""
    click.echo(integer_sqrt(value))


if __name__ == '__main__':
    main()

"""Commands talking to a live backend: rankings and watch."""

import argparse
import asyncio
import json
from pathlib import Path

from restbase.client import Client
from restbase.config import Config, ConfigError, load_config, validate_config
from restbase.schemas.models import ChangeEvent
from restbase.services.rankings import RankingService
from restbase.utils.errors import ClientError
from restbase.utils.telemetry import (
    get_logger,
    setup_logging,
    setup_tracing,
    start_metrics_server,
)

logger = get_logger(__name__)


def _load(config_path: str | None) -> Config:
    config = load_config(Path(config_path) if config_path else None)
    validate_config(config)
    setup_logging(
        config.logging.level,
        config.logging.format,
        config.logging.enable_pii_redaction,
    )
    if config.metrics.enabled:
        start_metrics_server(config.metrics.port)
    if config.tracing.enabled:
        setup_tracing(config.tracing.service_name, config.tracing.otlp_endpoint)
    return config


def _client(config: Config) -> Client:
    return Client(config.backend, session_db_path=config.session.db_path)


def create_rankings_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restbase rankings", description="Print the top rankings"
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "--limit", type=int, default=10, help="Number of entries (default: 10)"
    )
    return parser


def create_watch_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restbase watch",
        description="Print inserted and updated rows of a table",
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--table", help="Table to watch (default: poller.table)")
    parser.add_argument(
        "--interval", type=float, help="Polling interval in seconds"
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    return parser


async def run_rankings_command(args: list[str]) -> int:
    """Fetch and print the leaderboard.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parsed = create_rankings_parser().parse_args(args)

    try:
        config = _load(parsed.config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    async with _client(config) as client:
        await client.auth.restore_session()
        try:
            entries = await RankingService(client).fetch_ranking(parsed.limit)
        except ClientError as e:
            print(f"Failed to fetch rankings: {e}")
            return 1

    if not entries:
        print("No rankings yet")
        return 0

    for rank, entry in enumerate(entries, start=1):
        print(
            f"{rank:>3}. {entry.player_name:<20} {entry.score:>8} "
            f"{entry.accuracy * 100:6.1f}%"
        )
    return 0


def _print_event(event: ChangeEvent) -> None:
    print(json.dumps(event.summary(), default=str))


async def run_watch_command(args: list[str]) -> int:
    """Poll a table and print change events.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parsed = create_watch_parser().parse_args(args)

    try:
        config = _load(parsed.config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    table = parsed.table or config.poller.table
    interval = parsed.interval or config.poller.interval_seconds

    async with _client(config) as client:
        await client.auth.restore_session()

        poller = client.poller(table, interval_seconds=interval)
        poller.inserts.subscribe(_print_event)
        poller.updates.subscribe(_print_event)

        logger.info("Watching table", table=table, interval_seconds=interval)
        async with poller:
            if parsed.duration is not None:
                await asyncio.sleep(parsed.duration)
            else:
                await asyncio.Event().wait()

    return 0

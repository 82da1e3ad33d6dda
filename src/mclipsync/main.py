"""CLI handling for mclipsync.

This module provides the command-line interface for mclipsync, handling
argument parsing via click, logging configuration, and dispatching to the
forking supervisor or to an in-process run.

Usage:
    mclipsync [--log-level LEVEL] [--hide-timestamp] [--no-run-forked]
              [--log-clipboard-contents] [--hybrid GETTER=SETTER]...
"""

import click
import logging
import sys

from mclipsync.config import LogConfig, SyncConfig
from mclipsync.main_logging import configure_logging
from mclipsync.main_options import HybridPairType, LogLevelType
from mclipsync.sync_constants import MAX_DISPLAY_INDEX, WATCHDOG_SECONDS


@click.command(context_settings={"max_content_width": 120})
@click.option(
    "--log-level",
    type=LogLevelType(),
    default="info",
    show_default=True,
    help="Granularity to log",
)
@click.option(
    "--hide-timestamp",
    is_flag=True,
    help="Omit timestamps from log lines (systemd already adds them)",
)
@click.option(
    "--run-forked/--no-run-forked",
    default=True,
    show_default=True,
    help="Run the sync in a child process that is restarted periodically",
)
@click.option(
    "--log-clipboard-contents",
    is_flag=True,
    help="Also log clipboard contents when debug logging is enabled",
)
@click.option(
    "--hybrid",
    "hybrid_pairs",
    type=HybridPairType(),
    multiple=True,
    help="Add a clipboard read through GETTER and written through SETTER",
)
@click.option(
    "--max-display-index",
    type=click.IntRange(0, 255),
    default=MAX_DISPLAY_INDEX,
    show_default=True,
    help="Highest display index probed per backend",
)
@click.option(
    "--watchdog-seconds",
    type=click.FloatRange(min=1.0),
    default=WATCHDOG_SECONDS,
    show_default=True,
    help="Lifetime of each forked child before it is restarted",
)
def main(
    log_level: int,
    hide_timestamp: bool,
    run_forked: bool,
    log_clipboard_contents: bool,
    hybrid_pairs: tuple,
    max_display_index: int,
    watchdog_seconds: float,
) -> None:
    """Keep the text clipboard in sync across X11 displays and Wayland compositors."""
    log_config = LogConfig(
        level=log_level,
        timestamps=not hide_timestamp,
        sensitive=log_clipboard_contents,
    )
    configure_logging(log_config)
    config = SyncConfig(
        max_display_index=max_display_index,
        watchdog_seconds=watchdog_seconds,
        hybrid_pairs=hybrid_pairs,
        log=log_config,
    )

    if run_forked:
        _run_forked(config)
    else:
        _run(config)


def _run(config: SyncConfig) -> None:
    """Run the governed pipeline in this process.

    Args:
        config: The pipeline configuration.
    """
    from mclipsync.errors import TooManyErrorsError
    from mclipsync.governor import run

    try:
        run(config)
    except TooManyErrorsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _run_forked(config: SyncConfig) -> None:
    """Run the pipeline under the forking supervisor.

    Args:
        config: The pipeline configuration.
    """
    from mclipsync.supervisor import Supervisor

    supervisor = Supervisor(
        lambda: _run(config),
        ceiling=config.watchdog_seconds,
        respawn_delay=config.respawn_delay,
    )
    try:
        supervisor.run_forever()
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted, exiting")

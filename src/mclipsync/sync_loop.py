#!/usr/bin/env python3
"""Clipboard synchronization loop.

This module builds the canonical clipboard set (discovery followed by
deduplication) and keeps every clipboard in it holding the same text by
polling them in order and propagating the first change it sees.

Any get or set error escapes the loop; recovery is the governor's job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

from mclipsync.dedup import dedupe
from mclipsync.discovery import Backends, discover
from mclipsync.errors import NoClipboardsError
from mclipsync.main_logging import sensitive_logger

if TYPE_CHECKING:
    from mclipsync.clipboard import Clipboard
    from mclipsync.config import SyncConfig

logger = logging.getLogger(__name__)
contents = sensitive_logger()

# Canonical clipboard set: fixed for the lifetime of one pipeline run.
CanonicalSet = tuple["Clipboard", ...]


async def first_non_empty(clipboards: Sequence[Clipboard]) -> str:
    """Return the first non-empty clipboard value, or "" if all are empty."""
    for clipboard in clipboards:
        value = await clipboard.get()
        if value:
            return value
    return ""


async def push(clipboards: Sequence[Clipboard], value: str, skip: int | None = None) -> None:
    """Set value on every clipboard except the one at index skip."""
    for i, clipboard in enumerate(clipboards):
        if i != skip:
            await clipboard.set(value)


async def get_clipboards(backends: Backends, config: SyncConfig) -> CanonicalSet:
    """Discover and deduplicate the clipboards to keep in sync.

    The current clipboard text is captured before deduplication overwrites
    it and is restored on every surviving clipboard afterwards.

    Args:
        backends: Backends of the current pipeline run.
        config: Discovery settings.

    Returns:
        The canonical clipboard set.
    """
    logger.info("Identifying unique clipboards...")
    candidates = await discover(backends, config)
    start = await first_non_empty(candidates)
    clipboards = tuple(await dedupe(candidates))
    await push(clipboards, start)
    logger.info("Using clipboards: %s", ", ".join(c.describe() for c in clipboards))
    return clipboards


async def establish_baseline(clipboards: Sequence[Clipboard]) -> str:
    """Pick the starting value and make every clipboard hold it.

    Clipboards already holding the baseline are not written again.
    """
    values = [await clipboard.get() for clipboard in clipboards]
    baseline = next((value for value in values if value), "")
    for clipboard, value in zip(clipboards, values):
        if value != baseline:
            await clipboard.set(baseline)
    contents.debug("Baseline clipboard value: %r", baseline)
    return baseline


async def await_change(
    clipboards: Sequence[Clipboard], baseline: str, interval: float
) -> tuple[int, str]:
    """Poll clipboards in order until one differs from baseline.

    Args:
        clipboards: The canonical clipboard set.
        baseline: The last value known to be on every clipboard.
        interval: Seconds to sleep between full polling passes.

    Returns:
        Index of the first clipboard that changed and its new value.
    """
    while True:
        for i, clipboard in enumerate(clipboards):
            value = await clipboard.get()
            if value != baseline:
                logger.info("Clipboard updated from display %s", clipboard.display)
                return i, value
        await asyncio.sleep(interval)


async def propagate(clipboards: Sequence[Clipboard], source: int, value: str) -> None:
    """Set value, which came from clipboards[source], on every other clipboard."""
    contents.debug("New clipboard value from %s: %r", clipboards[source].display, value)
    await push(clipboards, value, skip=source)


async def keep_synced(clipboards: Sequence[Clipboard], config: SyncConfig) -> None:
    """Propagate clipboard changes between clipboards forever.

    Args:
        clipboards: The canonical clipboard set.
        config: Supplies poll_interval.

    Raises:
        NoClipboardsError: The canonical set is empty.
        ClipboardError: Any get or set failed.
    """
    if not clipboards:
        raise NoClipboardsError()
    baseline = await establish_baseline(clipboards)
    while True:
        source, value = await await_change(clipboards, baseline, config.poll_interval)
        await propagate(clipboards, source, value)
        baseline = value


async def run_pipeline(config: SyncConfig, backends: Backends | None = None) -> None:
    """Run one discovery and sync pass with fresh backends.

    Args:
        config: Pipeline settings.
        backends: Backends to use; new ones are created when omitted. They
            are closed when the pass ends, whatever the outcome.
    """
    if backends is None:
        backends = Backends.create()
    try:
        clipboards = await get_clipboards(backends, config)
        await keep_synced(clipboards, config)
    finally:
        backends.close()

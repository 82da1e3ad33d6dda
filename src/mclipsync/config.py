#!/usr/bin/env python3
"""Runtime configuration for mclipsync.

Configuration is built once by the CLI and passed explicitly to every
component that needs it. Nothing here is mutated after startup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mclipsync.sync_constants import (
    MAX_DISPLAY_INDEX,
    PAIN_RATE_SCALE,
    PAIN_THRESHOLD,
    POLL_INTERVAL,
    RESPAWN_DELAY,
    RETRY_BACKOFF,
    SESSION_GAP,
    WATCHDOG_SECONDS,
)


@dataclass(frozen=True)
class LogConfig:
    """Logging settings.

    Attributes:
        level: Numeric logging level (see main_logging for TRACE and FATAL).
        timestamps: Whether log lines start with a timestamp.
        sensitive: Whether clipboard contents may be logged.
    """

    level: int = logging.INFO
    timestamps: bool = True
    sensitive: bool = False


@dataclass(frozen=True)
class HybridPair:
    """A hybrid endpoint read through one display and written through another.

    Attributes:
        getter: Display identifier used for reads, e.g. ":0".
        setter: Display identifier used for writes, e.g. "wayland-0".
    """

    getter: str
    setter: str


@dataclass(frozen=True)
class SyncConfig:
    """Settings for the synchronization pipeline and its supervisor."""

    max_display_index: int = MAX_DISPLAY_INDEX
    poll_interval: float = POLL_INTERVAL
    retry_backoff: float = RETRY_BACKOFF
    session_gap: float = SESSION_GAP
    pain_threshold: float = PAIN_THRESHOLD
    pain_rate_scale: float = PAIN_RATE_SCALE
    watchdog_seconds: float = WATCHDOG_SECONDS
    respawn_delay: float = RESPAWN_DELAY
    hybrid_pairs: tuple[HybridPair, ...] = ()
    log: LogConfig = field(default_factory=LogConfig)

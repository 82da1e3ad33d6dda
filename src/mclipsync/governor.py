#!/usr/bin/env python3
"""Pain-based retry governor for the sync pipeline.

The pipeline (discovery, deduplication, watch loop) runs under tenacity.
A ClipboardError restarts it from scratch after a fixed backoff, since
backend connections cannot be trusted after a failure. To avoid retrying
forever when something is badly broken, failures feed a pain score:

- a failure more than session_gap seconds after the previous one starts a
  new failure session with no pain, so sparse failures are tolerated forever
- otherwise pain = rate_scale * errorcount / elapsed + elapsed, where
  elapsed is the time since the first failure of the session

With the default rate scale of 100 and threshold of 100, a second failure
less than about 2 seconds after the first is already fatal, while a
session that keeps failing less often than that gives up within 100
seconds.

Once pain exceeds the threshold the governor raises TooManyErrorsError
instead of retrying.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import TYPE_CHECKING, Awaitable, Callable

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, wait_fixed
from tenacity.stop import stop_base

from mclipsync.errors import ClipboardError, TooManyErrorsError
from mclipsync.main_logging import FATAL
from mclipsync.sync_constants import PAIN_RATE_SCALE, PAIN_THRESHOLD, SESSION_GAP
from mclipsync.sync_loop import run_pipeline

if TYPE_CHECKING:
    from tenacity import RetryCallState

    from mclipsync.config import SyncConfig

logger = logging.getLogger(__name__)


class PainTracker:
    """Aggregate failure counters of the current failure session.

    Attributes:
        errorcount: Failures in the current session.
        first_error: Clock time of the first failure of the session.
        last_error: Clock time of the most recent failure.
        pain: Pain score after the most recent failure.
    """

    def __init__(
        self,
        session_gap: float = SESSION_GAP,
        threshold: float = PAIN_THRESHOLD,
        rate_scale: float = PAIN_RATE_SCALE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_gap = session_gap
        self.threshold = threshold
        self.rate_scale = rate_scale
        self.clock = clock
        self.errorcount = 0
        self.first_error: float | None = None
        self.last_error: float | None = None
        self.pain = 0.0

    def record_failure(self) -> float:
        """Record a failure happening now and return the new pain score."""
        now = self.clock()
        if self.last_error is None or now - self.last_error > self.session_gap:
            self.errorcount = 1
            self.first_error = now
            self.pain = 0.0
        else:
            self.errorcount += 1
            elapsed = now - self.first_error
            if elapsed <= 0:
                self.pain = math.inf
            else:
                self.pain = self.rate_scale * self.errorcount / elapsed + elapsed
        self.last_error = now
        return self.pain

    @property
    def exceeded(self) -> bool:
        return self.pain > self.threshold


class PainThreshold(stop_base):
    """tenacity stop condition: stop once the pain threshold is exceeded."""

    def __init__(self, tracker: PainTracker) -> None:
        self.tracker = tracker

    def __call__(self, retry_state: RetryCallState) -> bool:
        pain = self.tracker.record_failure()
        logger.debug("Failure %d of this session, pain %.1f",
            self.tracker.errorcount, pain)
        return self.tracker.exceeded


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a failed attempt before tenacity sleeps and retries."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.log(FATAL, "Action exited with error: %r", exc)
    logger.info("Retrying")


async def run_governed(
    action: Callable[[], Awaitable[None]],
    config: SyncConfig,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Run action, restarting it on ClipboardError until failures are too dense.

    Args:
        action: Starts one full pipeline run with fresh state.
        config: Supplies retry_backoff and the pain settings.
        sleep: Awaitable sleep used for the backoff.
        clock: Monotonic clock used to time failures.

    Raises:
        TooManyErrorsError: The pain threshold was exceeded.
    """
    tracker = PainTracker(
        config.session_gap, config.pain_threshold, config.pain_rate_scale, clock
    )
    retrying = AsyncRetrying(
        sleep=sleep,
        stop=PainThreshold(tracker),
        wait=wait_fixed(config.retry_backoff),
        retry=retry_if_exception_type(ClipboardError),
        before_sleep=_log_retry,
    )
    try:
        async for attempt in retrying:
            with attempt:
                await action()
    except RetryError as e:
        last = e.last_attempt.exception()
        logger.log(FATAL, "Action exited with error: %r", last)
        raise TooManyErrorsError("too many errors, exiting") from last


def run(config: SyncConfig) -> None:
    """Run the governed pipeline in this process until it gives up."""
    logger.info("Starting clipboard sync")
    asyncio.run(run_governed(lambda: run_pipeline(config), config))

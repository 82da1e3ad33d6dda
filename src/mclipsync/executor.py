#!/usr/bin/env python3
"""Serial executor for blocking backend calls.

Backend calls block (subprocesses, X11 round-trips), so they run on a worker
thread and the asyncio side awaits their completion. Each backend kind gets
exactly one worker thread, which serializes every get and set of that kind.

Cancelling a task that awaits run() only discards interest in the result.
A job that has already started keeps running to completion on its worker,
because the underlying calls cannot be interrupted.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SerialExecutor:
    """Run blocking jobs one at a time on a dedicated thread.

    Attributes:
        name: Label used for the worker thread and in log messages.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"mclipsync-{name}")

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Submit a blocking job and wait for its result.

        Args:
            fn: The blocking callable.
            *args: Positional arguments for fn.

        Returns:
            Whatever fn returns. Exceptions raised by fn propagate.
        """
        future = self._pool.submit(fn, *args)
        return await asyncio.wrap_future(future)

    def shutdown(self) -> None:
        """Stop accepting jobs without waiting for a running one."""
        logger.debug("Shutting down %s executor", self.name)
        self._pool.shutdown(wait=False, cancel_futures=True)

#!/usr/bin/env python3
"""Zombie process reaper.

Some backends start short-lived helper processes. Once they exit they stay
zombies until their parent collects them, so a background thread
periodically waits on every exited child without blocking.

Children listed by the exclude callback are left alone: their exit status
belongs to whoever is blocked in waitpid() on them.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import nullcontext
from typing import Callable

import psutil

from mclipsync.sync_constants import REAP_INTERVAL

logger = logging.getLogger(__name__)


def get_children(pid: int) -> list[int]:
    """Return the pids of the direct children of pid."""
    try:
        return [child.pid for child in psutil.Process(pid).children()]
    except psutil.NoSuchProcess:
        return []


def reap_children(exclude: frozenset[int] = frozenset()) -> list[int]:
    """Collect every exited child of this process not in exclude.

    Args:
        exclude: Child pids whose status must not be collected here.

    Returns:
        The pids that were reaped.
    """
    reaped: list[int] = []
    for pid in get_children(os.getpid()):
        if pid in exclude:
            continue
        try:
            if psutil.Process(pid).status() != psutil.STATUS_ZOMBIE:
                continue
            waited, _ = os.waitpid(pid, os.WNOHANG)
        except (psutil.NoSuchProcess, ChildProcessError):
            continue
        if waited == pid:
            logger.debug("Reaped zombie child process %d", pid)
            reaped.append(pid)
    return reaped


class ZombieReaper:
    """Daemon thread that reaps exited children every interval seconds.

    When lock is given, each pass holds it, so a caller spawning children
    under the same lock can register them in exclude before a pass sees them.
    """

    def __init__(
        self,
        interval: float = REAP_INTERVAL,
        exclude: Callable[[], frozenset[int]] = frozenset,
        lock: threading.Lock | None = None,
    ) -> None:
        self.interval = interval
        self.exclude = exclude
        self.lock = lock
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="mclipsync-reaper", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                with self.lock if self.lock is not None else nullcontext():
                    reap_children(self.exclude())
            except (psutil.Error, OSError) as e:
                logger.error("Error reaping child processes: %s", e)
            self._stop.wait(self.interval)

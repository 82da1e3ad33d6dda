#!/usr/bin/env python3
"""Forking supervisor for the sync pipeline.

The pipeline runs in a forked child so that all of its state (backend
connections, helper processes, leaked resources) is thrown away
periodically. The parent:

- arms a watchdog per child that sends SIGTERM after a fixed ceiling
- blocks until the child exits and logs how it exited
- sleeps briefly and forks the next child, forever
- runs a reaper thread that collects any other exited children

A child that exits abnormally is simply replaced by a new one.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
import time
from typing import Callable

import psutil

from mclipsync.sync_constants import REAP_INTERVAL, RESPAWN_DELAY, WATCHDOG_SECONDS
from mclipsync.zombies import ZombieReaper

logger = logging.getLogger(__name__)


def describe_status(status: int) -> str:
    """Describe a waitpid() status for logging."""
    code = os.waitstatus_to_exitcode(status)
    if code < 0:
        return f"killed by signal {signal.Signals(-code).name}"
    return f"exited with status {code}"


def terminate_if_alive(pid: int) -> bool:
    """Send SIGTERM to pid if it is still running.

    Does not wait on the process, so its exit status stays with the parent
    blocked in waitpid().

    Returns:
        True if the signal was sent.
    """
    try:
        status = psutil.Process(pid).status()
    except psutil.NoSuchProcess:
        logger.warning("Expected child process %d to be alive but it is gone", pid)
        return False
    if status == psutil.STATUS_ZOMBIE:
        logger.warning("Expected child process %d to be alive but it already exited", pid)
        return False
    logger.debug("Child %d is still alive, as expected", pid)
    logger.debug("Routinely attempting to kill child process %d", pid)
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError as e:
        logger.error("Error killing child process %d: %s", pid, e)
        return False
    return True


def kill_after(pid: int, seconds: float) -> threading.Timer:
    """Start a watchdog that terminates pid after seconds.

    Returns:
        The started timer; cancel it once the child has been reaped.
    """
    logger.debug("Waiting %s seconds and then killing %d", seconds, pid)
    timer = threading.Timer(seconds, terminate_if_alive, args=(pid,))
    timer.daemon = True
    timer.start()
    return timer


def run_child(target: Callable[[], int | None]) -> int:
    """Run target as the body of a forked child and return its exit code."""
    try:
        result = target()
    except SystemExit as e:
        if e.code is None:
            return 0
        return e.code if isinstance(e.code, int) else 1
    except Exception:
        logger.exception("Child process failed")
        return 1
    return result if isinstance(result, int) else 0


class Supervisor:
    """Run target in a fresh child process, forever.

    Attributes:
        target: Body of each child; its return value is the exit code.
        ceiling: Seconds a child may live before it is sent SIGTERM.
        respawn_delay: Seconds to wait between a child exiting and the next.
        reap_interval: Seconds between zombie reaper passes.
    """

    def __init__(
        self,
        target: Callable[[], int | None],
        ceiling: float = WATCHDOG_SECONDS,
        respawn_delay: float = RESPAWN_DELAY,
        reap_interval: float = REAP_INTERVAL,
    ) -> None:
        self.target = target
        self.ceiling = ceiling
        self.respawn_delay = respawn_delay
        self.reap_interval = reap_interval
        self._child: int | None = None
        self._lock = threading.Lock()

    def _excluded(self) -> frozenset[int]:
        return frozenset() if self._child is None else frozenset({self._child})

    def spawn(self) -> int:
        """Fork a child running target. Only the parent returns."""
        with self._lock:
            pid = os.fork()
            if pid == 0:
                code = 1
                try:
                    code = run_child(self.target)
                finally:
                    logging.shutdown()
                    os._exit(code)
            self._child = pid
        logger.debug("Child process %d successfully initialized", pid)
        return pid

    def supervise_once(self) -> int:
        """Run one child to completion under the watchdog.

        Returns:
            The raw waitpid() status of the child.
        """
        pid = self.spawn()
        timer = kill_after(pid, self.ceiling)
        try:
            _, status = os.waitpid(pid, 0)
        finally:
            timer.cancel()
            with self._lock:
                self._child = None
        logger.debug("Child process %d completed: %s", pid, describe_status(status))
        return status

    def run_forever(self) -> None:
        """Supervise children until this process is killed."""
        logger.info("Started clipboard sync manager")
        reaper = ZombieReaper(self.reap_interval, self._excluded, self._lock)
        reaper.start()
        while True:
            self.supervise_once()
            time.sleep(self.respawn_delay)

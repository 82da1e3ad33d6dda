#!/usr/bin/env python3
"""Tests for the forking supervisor."""
import os
import signal
import time
from unittest.mock import MagicMock, patch

import psutil
import pytest

from mclipsync.supervisor import (
    Supervisor,
    describe_status,
    kill_after,
    run_child,
    terminate_if_alive,
)


class TestRunChild:
    """Tests for the exit code of a child body."""

    def test_return_value_is_exit_code(self) -> None:
        """Test an int return value becomes the exit code."""
        assert run_child(lambda: 3) == 3

    def test_none_is_success(self) -> None:
        """Test returning None exits 0."""
        assert run_child(lambda: None) == 0

    def test_system_exit(self) -> None:
        """Test sys.exit codes are passed through."""
        def exit_with(code):
            def body():
                raise SystemExit(code)
            return body

        assert run_child(exit_with(None)) == 0
        assert run_child(exit_with(2)) == 2
        assert run_child(exit_with("message")) == 1

    def test_exception_exits_1(self) -> None:
        """Test an uncaught exception exits 1."""
        def body():
            raise RuntimeError("boom")

        assert run_child(body) == 1


def test_describe_status() -> None:
    """Test wait statuses are described for logging."""
    assert describe_status(3 << 8) == "exited with status 3"
    assert describe_status(signal.SIGTERM) == "killed by signal SIGTERM"


class TestTerminateIfAlive:
    """Tests for the watchdog action."""

    def test_running_child_gets_sigterm(self) -> None:
        """Test a running child is sent SIGTERM."""
        proc = MagicMock()
        proc.status.return_value = psutil.STATUS_SLEEPING
        with patch("mclipsync.supervisor.psutil.Process", return_value=proc), \
            patch("mclipsync.supervisor.os.kill") as mock_kill:
            assert terminate_if_alive(1234) is True
        mock_kill.assert_called_once_with(1234, signal.SIGTERM)

    def test_zombie_child_is_left_alone(self) -> None:
        """Test a child that already exited is not signalled."""
        proc = MagicMock()
        proc.status.return_value = psutil.STATUS_ZOMBIE
        with patch("mclipsync.supervisor.psutil.Process", return_value=proc), \
            patch("mclipsync.supervisor.os.kill") as mock_kill:
            assert terminate_if_alive(1234) is False
        mock_kill.assert_not_called()

    def test_missing_child_is_left_alone(self) -> None:
        """Test a vanished child is not signalled."""
        with patch("mclipsync.supervisor.psutil.Process", side_effect=psutil.NoSuchProcess(1234)), \
            patch("mclipsync.supervisor.os.kill") as mock_kill:
            assert terminate_if_alive(1234) is False
        mock_kill.assert_not_called()


def test_kill_after_can_be_cancelled() -> None:
    """Test a cancelled watchdog never fires."""
    with patch("mclipsync.supervisor.terminate_if_alive") as mock_terminate:
        timer = kill_after(1234, 0.05)
        timer.cancel()
        time.sleep(0.1)
    mock_terminate.assert_not_called()


class TestSupervisor:
    """Tests forking real children."""

    def test_child_exit_status_is_returned(self) -> None:
        """Test a child's exit code is reported and the watchdog disarmed."""
        supervisor = Supervisor(lambda: 3, ceiling=30.0)
        status = supervisor.supervise_once()
        assert os.waitstatus_to_exitcode(status) == 3
        assert supervisor._child is None

    def test_child_exception_exits_1(self) -> None:
        """Test an exception in the child becomes exit status 1."""
        def body():
            raise RuntimeError("boom")

        supervisor = Supervisor(body, ceiling=30.0)
        assert os.waitstatus_to_exitcode(supervisor.supervise_once()) == 1

    def test_hung_child_is_terminated_within_ceiling(self) -> None:
        """Test a child that never exits is killed by SIGTERM after the ceiling."""
        supervisor = Supervisor(lambda: time.sleep(60), ceiling=2.0)
        start = time.monotonic()
        status = supervisor.supervise_once()
        elapsed = time.monotonic() - start

        assert os.WIFSIGNALED(status)
        assert os.WTERMSIG(status) == signal.SIGTERM
        assert 2.0 <= elapsed < 2.5

    def test_run_forever_respawns(self) -> None:
        """Test children are respawned after each exit."""
        supervisor = Supervisor(lambda: 0, ceiling=30.0, respawn_delay=0.0)
        statuses = iter([0, 1 << 8])

        def fake_once() -> int:
            try:
                return next(statuses)
            except StopIteration:
                raise KeyboardInterrupt

        with patch.object(supervisor, "supervise_once", side_effect=fake_once) as mock_once, \
            patch("mclipsync.supervisor.ZombieReaper") as mock_reaper:
            with pytest.raises(KeyboardInterrupt):
                supervisor.run_forever()

        assert mock_once.call_count == 3
        mock_reaper.return_value.start.assert_called_once()

    def test_reaper_excludes_supervised_child(self) -> None:
        """Test the running child is excluded from reaping."""
        supervisor = Supervisor(lambda: 0)
        assert supervisor._excluded() == frozenset()
        supervisor._child = 4321
        assert supervisor._excluded() == frozenset({4321})

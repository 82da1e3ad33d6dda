#!/usr/bin/env python3
"""Wayland clipboard backend.

Reads and writes the regular clipboard of a Wayland compositor through the
wl-paste and wl-copy tools of wl-clipboard, which speak the wlr-data-control
protocol. The target compositor is selected by passing WAYLAND_DISPLAY in the
environment of the child process only; the environment of this process is
never modified.

Failures are classified from the tool's stderr so that discovery can tell an
absent compositor from a compositor without data-control support.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

from mclipsync.errors import BackendAbsentError, ClipboardError, ProtocolUnsupportedError
from mclipsync.sync_constants import BACKEND_TIMEOUT

logger = logging.getLogger(__name__)

TEXT_MIME = "text/plain;charset=utf-8"

# stderr fragments (lowercased) meaning no compositor is listening.
_ABSENT_MARKERS = (
    "failed to connect to a wayland server",
    "no such file or directory",
    "connection refused",
)

# stderr fragments meaning the compositor lacks the clipboard protocol.
_UNSUPPORTED_MARKERS = (
    "data-control",
    "data_control",
    "does not support",
    "not supported",
)

# stderr fragments meaning the clipboard is simply empty.
_EMPTY_MARKERS = (
    "nothing is copied",
    "no selection",
    "no suitable type",
)


def classify_failure(display: str, stderr: str) -> ClipboardError:
    """Map wl-clipboard stderr output to a ClipboardError subclass.

    Args:
        display: The Wayland display the command targeted.
        stderr: Captured stderr of the failed command.

    Returns:
        BackendAbsentError, ProtocolUnsupportedError or ClipboardError.
    """
    message = stderr.strip() or "wl-clipboard command failed"
    lowered = message.lower()
    if any(marker in lowered for marker in _ABSENT_MARKERS):
        return BackendAbsentError(message, display)
    if any(marker in lowered for marker in _UNSUPPORTED_MARKERS):
        return ProtocolUnsupportedError(message, display)
    return ClipboardError(message, display)


def is_empty_clipboard(stderr: str) -> bool:
    """Return True if wl-paste reported an empty clipboard."""
    lowered = stderr.lower()
    return any(marker in lowered for marker in _EMPTY_MARKERS)


class WaylandBackend:
    """Blocking get/set primitives for Wayland compositors.

    Attributes:
        runtime_dir: Directory holding the compositor sockets.
        timeout: Seconds before a wl-paste or wl-copy call is abandoned.
    """

    def __init__(self, runtime_dir: str | None = None, timeout: float = BACKEND_TIMEOUT) -> None:
        if runtime_dir is None:
            runtime_dir = os.environ.get("XDG_RUNTIME_DIR") or f"/run/user/{os.getuid()}"
        self.runtime_dir = runtime_dir
        self.timeout = timeout

    def socket_exists(self, display: str) -> bool:
        """Check whether the compositor socket for display exists."""
        return (Path(self.runtime_dir) / display).exists()

    def _env(self, display: str) -> dict[str, str]:
        env = dict(os.environ)
        env["WAYLAND_DISPLAY"] = display
        env["XDG_RUNTIME_DIR"] = self.runtime_dir
        return env

    def get(self, display: str) -> str:
        """Read the clipboard text of a compositor.

        Args:
            display: Compositor socket name, e.g. "wayland-0".

        Returns:
            The clipboard text, or "" if the clipboard is empty.

        Raises:
            BackendAbsentError: No compositor is listening.
            ProtocolUnsupportedError: The compositor lacks data-control.
            ClipboardError: Any other failure.
        """
        if not self.socket_exists(display):
            raise BackendAbsentError("no compositor socket", display)
        try:
            result = subprocess.run(
                ["wl-paste", "--no-newline", "--type", "text"],
                env=self._env(display),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ClipboardError(f"wl-paste timed out after {self.timeout}s", display) from e
        except OSError as e:
            raise ClipboardError(f"failed to run wl-paste: {e}", display) from e

        stderr = result.stderr.decode("utf-8", errors="replace")
        if result.returncode != 0:
            if is_empty_clipboard(stderr):
                return ""
            raise classify_failure(display, stderr)
        return result.stdout.decode("utf-8", errors="replace")

    def set(self, display: str, text: str) -> None:
        """Replace the clipboard text of a compositor.

        wl-copy forks a background process that keeps serving the selection,
        so stderr goes to a temporary file rather than a pipe the background
        process would hold open.

        Args:
            display: Compositor socket name, e.g. "wayland-0".
            text: New clipboard text. An empty string clears the clipboard.

        Raises:
            BackendAbsentError: No compositor is listening.
            ProtocolUnsupportedError: The compositor lacks data-control.
            ClipboardError: Any other failure.
        """
        if not self.socket_exists(display):
            raise BackendAbsentError("no compositor socket", display)
        if text:
            command = ["wl-copy", "--type", TEXT_MIME]
        else:
            command = ["wl-copy", "--clear"]
        with tempfile.TemporaryFile() as stderr_file:
            try:
                result = subprocess.run(
                    command,
                    env=self._env(display),
                    input=text.encode("utf-8"),
                    stdout=subprocess.DEVNULL,
                    stderr=stderr_file,
                    timeout=self.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired as e:
                raise ClipboardError(f"wl-copy timed out after {self.timeout}s", display) from e
            except OSError as e:
                raise ClipboardError(f"failed to run wl-copy: {e}", display) from e
            if result.returncode != 0:
                stderr_file.seek(0)
                stderr = stderr_file.read().decode("utf-8", errors="replace")
                raise classify_failure(display, stderr)
        logger.debug("Set %d characters on %s", len(text), display)

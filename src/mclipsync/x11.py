"""X11 clipboard backend via python-xlib.

Each X11 display gets one connection with a hidden 1x1 window that can own
the CLIPBOARD selection. Owning a selection means answering requests from
other clients for as long as we own it, so every connection runs a daemon
thread that reads events and:

- answers SelectionRequest events from the content we currently own
- drives INCR transfers to requestors of large content
- forgets the owned content on SelectionClear
- hands SelectionNotify and our own PropertyNotify events to a caller
  waiting in get() or set()

Xlib.threaded is imported so that the event thread and the executor thread
can share one Display.
"""

from __future__ import annotations

import logging
import queue
import re
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import Xlib.threaded  # noqa: F401
from Xlib import X
from Xlib import error as xerror
from Xlib.display import Display

from mclipsync.errors import BackendAbsentError, BackendBusyError, ClipboardError
from mclipsync.sync_constants import BACKEND_TIMEOUT
from mclipsync.x11_incr import IncrSender, receive_incr
from mclipsync.x11_selection import (
    SelectionAtoms,
    get_server_timestamp,
    handle_selection_request,
    read_selection_property,
    refuse_selection_request,
)

if TYPE_CHECKING:
    from Xlib.protocol.rq import Event

logger = logging.getLogger(__name__)

X11_SOCKET_DIR = "/tmp/.X11-unix"

_LOCAL_DISPLAY = re.compile(r"^:(\d+)(\.\d+)?$")


def _owner_id(owner: object) -> int:
    """Return the window id of a selection owner (X.NONE when unowned)."""
    return getattr(owner, "id", owner)  # type: ignore[return-value]


def _drain(events: queue.Queue) -> None:
    while not events.empty():
        events.get_nowait()


class X11Connection:
    """One connection to an X server able to read and own CLIPBOARD.

    Attributes:
        name: The display name, e.g. ":1".
        display: The python-xlib Display.
        window: Hidden window used for ownership and conversions.
        atoms: Atoms interned for this connection.
    """

    def __init__(self, name: str, timeout: float = BACKEND_TIMEOUT) -> None:
        self.name = name
        self.timeout = timeout
        try:
            self.display = Display(name)
        except xerror.DisplayConnectionError as e:
            # A socket left behind by a server that is no longer running.
            raise BackendAbsentError(f"no X server listening: {e}", name) from e
        except xerror.DisplayError as e:
            raise ClipboardError(f"failed to connect to X11 display: {e}", name) from e
        self.display.set_error_handler(self._on_error)
        screen = self.display.screen()
        self.window = screen.root.create_window(
            0, 0, 1, 1, 0, screen.root_depth, event_mask=X.PropertyChangeMask,
        )
        self.atoms = SelectionAtoms.intern(self.display)
        self.display.flush()

        self._owned: bytes | None = None
        self._acquired_at: int | None = None
        self._last_read = ""
        self._lock = threading.Lock()
        self._busy = threading.Lock()
        self._notifications: queue.Queue[Event] = queue.Queue()
        self._properties: queue.Queue[Event] = queue.Queue()
        self._incr = IncrSender(self.display, self.atoms.incr)
        self._closed = False
        self._thread = threading.Thread(
            target=self._serve, name=f"mclipsync-x11{name}", daemon=True
        )
        self._thread.start()

    def _on_error(self, err: xerror.XError, request: object) -> None:
        # Asynchronous errors, e.g. a requestor window vanishing mid-reply.
        logger.debug("X11 error on %s: %s", self.name, err)

    def _serve(self) -> None:
        """Event thread: serve our selection and collect notifications."""
        while not self._closed:
            try:
                event = self.display.next_event()
            except (xerror.ConnectionClosedError, OSError) as e:
                if not self._closed:
                    logger.debug("X11 connection %s closed: %s", self.name, e)
                return
            self.dispatch(event)

    def dispatch(self, event: Event) -> None:
        """Handle one event read by the event thread."""
        if event.type == X.SelectionRequest:
            self._incr.cleanup_stale()
            with self._lock:
                content = self._owned
                acquired_at = self._acquired_at
            if content is None or event.selection != self.atoms.clipboard:
                refuse_selection_request(event, self.display)
            else:
                handle_selection_request(
                    self.display, event, content, acquired_at, self.atoms, self._incr
                )
        elif event.type == X.SelectionClear:
            if event.selection == self.atoms.clipboard:
                with self._lock:
                    self._owned = None
                    self._acquired_at = None
                self._incr.cancel(event.selection)
                logger.debug("Lost CLIPBOARD ownership on %s", self.name)
        elif event.type == X.SelectionNotify:
            self._notifications.put(event)
        elif event.type == X.PropertyNotify and event.window.id == self.window.id:
            if event.state == X.PropertyNewValue:
                self._properties.put(event)
        elif event.type in (X.PropertyNotify, X.DestroyNotify):
            self._incr.handle_event(event)

    def _wait_property(self, atom: int) -> Event | None:
        """Wait for a new value of atom on our window, or None on timeout."""
        while True:
            try:
                event = self._properties.get(timeout=self.timeout)
            except queue.Empty:
                return None
            if event.atom == atom:
                return event

    def _owns_clipboard(self) -> bool:
        owner = self.display.get_selection_owner(self.atoms.clipboard)
        return _owner_id(owner) == self.window.id

    def get(self) -> str:
        """Read the CLIPBOARD text of this display.

        Returns:
            The clipboard text, or "" if nothing owns the clipboard or the
            owner cannot convert to text.

        Raises:
            BackendBusyError: Another call is using this connection.
            ClipboardError: The owner did not answer in time.
        """
        if not self._busy.acquire(blocking=False):
            raise BackendBusyError("X11 connection already in use", self.name)
        try:
            owner = self.display.get_selection_owner(self.atoms.clipboard)
            if owner == X.NONE:
                return ""
            if _owner_id(owner) == self.window.id:
                with self._lock:
                    owned = self._owned
                if owned is not None:
                    return owned.decode("utf-8", errors="replace")
            return self._convert()
        finally:
            self._busy.release()

    def _convert(self) -> str:
        """Ask the current owner to convert CLIPBOARD to UTF8_STRING."""
        _drain(self._notifications)

        self.window.convert_selection(
            self.atoms.clipboard, self.atoms.utf8, self.atoms.property, X.CurrentTime
        )
        self.display.flush()
        try:
            event = self._notifications.get(timeout=self.timeout)
        except queue.Empty:
            raise ClipboardError(
                f"timed out after {self.timeout}s waiting for the selection owner", self.name
            ) from None

        if event.property == X.NONE:
            logger.debug("Selection owner on %s refused conversion to text", self.name)
            return ""
        result = read_selection_property(self.display, self.window, self.atoms)
        data = result.content
        if result.is_incr:
            # The owner's INCR property write was queued before SelectionNotify.
            _drain(self._properties)
            data = receive_incr(
                self.display, self.window, self.atoms.property,
                lambda: self._wait_property(self.atoms.property),
            )
        if data is None:
            return self._last_read
        self._last_read = data.decode("utf-8", errors="replace")
        return self._last_read

    def set(self, text: str) -> None:
        """Take CLIPBOARD ownership and serve text from now on.

        Ownership is claimed with a real server timestamp, which is also
        what TIMESTAMP requests are answered with.

        Raises:
            BackendBusyError: Another call is using this connection.
            ClipboardError: Ownership could not be acquired.
        """
        if not self._busy.acquire(blocking=False):
            raise BackendBusyError("X11 connection already in use", self.name)
        try:
            _drain(self._properties)
            timestamp = get_server_timestamp(
                self.display, self.window, self.atoms, self._wait_property
            )
            if timestamp is None:
                raise ClipboardError("timed out waiting for the server timestamp", self.name)
            with self._lock:
                self._owned = text.encode("utf-8")
                self._acquired_at = timestamp
            self.window.set_selection_owner(self.atoms.clipboard, timestamp)
            self.display.flush()
            if not self._owns_clipboard():
                with self._lock:
                    self._owned = None
                    self._acquired_at = None
                raise ClipboardError("failed to acquire CLIPBOARD ownership", self.name)
        finally:
            self._busy.release()

    def close(self) -> None:
        self._closed = True
        try:
            self.display.close()
        except (xerror.ConnectionClosedError, OSError) as e:
            logger.debug("Error closing X11 display %s: %s", self.name, e)


class X11Backend:
    """Blocking get/set primitives for X11 displays.

    Connections are opened on first use and kept for the lifetime of the
    backend, which is one pipeline run.
    """

    def __init__(self, socket_dir: str = X11_SOCKET_DIR, timeout: float = BACKEND_TIMEOUT) -> None:
        self.socket_dir = socket_dir
        self.timeout = timeout
        self._connections: dict[str, X11Connection] = {}

    def socket_exists(self, display: str) -> bool:
        """Check whether a local X server socket exists for display.

        Non-local display names cannot be checked and are assumed present.
        """
        match = _LOCAL_DISPLAY.match(display)
        if match is None:
            return True
        return (Path(self.socket_dir) / f"X{match.group(1)}").exists()

    def connection(self, display: str) -> X11Connection:
        """Return the connection for display, opening it if needed.

        Raises:
            BackendAbsentError: No X server socket for display, or no server
                listening on it.
            ClipboardError: The display could not be opened otherwise.
        """
        conn = self._connections.get(display)
        if conn is not None:
            return conn
        if not self.socket_exists(display):
            raise BackendAbsentError("no X server socket", display)
        conn = X11Connection(display, self.timeout)
        self._connections[display] = conn
        logger.debug("Opened X11 connection to %s", display)
        return conn

    def get(self, display: str) -> str:
        conn = self.connection(display)
        try:
            return conn.get()
        except (xerror.XError, xerror.ConnectionClosedError, OSError) as e:
            raise ClipboardError(f"X11 read failed: {e}", display) from e

    def set(self, display: str, text: str) -> None:
        conn = self.connection(display)
        try:
            conn.set(text)
        except (xerror.XError, xerror.ConnectionClosedError, OSError) as e:
            raise ClipboardError(f"X11 write failed: {e}", display) from e

    def close(self) -> None:
        """Close every connection opened by this backend."""
        for conn in self._connections.values():
            conn.close()
        self._connections.clear()

#!/usr/bin/env python3
"""INCR transfers of large X11 selections.

A single change_property request is limited by the server's maximum request
length, so content above that limit travels in chunks. This module provides:

- IncrSender: the owner side. Announces the transfer with an INCR property
  on the requestor's window, then writes the next chunk each time the
  requestor deletes the property, and finishes with a zero-length chunk.
- receive_incr: the requestor side. Deletes the INCR property to start the
  transfer and collects chunks until the zero-length one.

Sender state lives on the event thread of one connection and is only touched
from there.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from Xlib import X

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.protocol.event import SelectionRequest
    from Xlib.protocol.rq import Event
    from Xlib.xobject.drawable import Window

logger = logging.getLogger(__name__)

# Safety margin for INCR threshold (90% of max)
INCR_SAFETY_MARGIN: float = 0.9

# Chunk size for INCR transfers (65536 bytes, well below typical max_request)
INCR_CHUNK_SIZE: int = 65536

# Maximum time to wait for INCR transfer completion (seconds)
INCR_SEND_TIMEOUT: float = 30.0

# Largest content accepted from an INCR transfer, in bytes.
INCR_MAX_CONTENT: int = 64 * 1024 * 1024


@dataclass
class IncrSendState:
    """State for an in-progress INCR send transfer.

    Attributes:
        requestor: The requestor window that requested the clipboard content.
        property_atom: The property atom where chunks should be written.
        target_atom: The target atom (e.g., UTF8_STRING) for the content type.
        selection_atom: The selection atom being served.
        content: The full content bytes to send.
        offset: Current offset into content for the next chunk.
        start_time: Clock time when the transfer started (for timeout).
        completion_sent: True if zero-length completion marker was sent.
    """

    requestor: Window
    property_atom: int
    target_atom: int
    selection_atom: int
    content: bytes
    offset: int
    start_time: float
    completion_sent: bool = False


def get_max_property_size(display: Display) -> int:
    """Return the largest property in bytes a single change_property may write."""
    # max_request_length is in 4-byte units
    max_bytes = display.info.max_request_length * 4  # type: ignore[attr-defined]
    return int(max_bytes * INCR_SAFETY_MARGIN)


def needs_incr_transfer(content: bytes, display: Display) -> bool:
    """Check if content is too large for a single change_property."""
    return len(content) > get_max_property_size(display)


class IncrSender:
    """Owner side of INCR transfers for one connection.

    Transfers are keyed by (requestor window id, property atom).
    """

    def __init__(
        self,
        display: Display,
        incr_atom: int,
        timeout: float = INCR_SEND_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.display = display
        self.incr_atom = incr_atom
        self.timeout = timeout
        self.clock = clock
        self.pending: dict[tuple[int, int], IncrSendState] = {}

    def start(self, event: SelectionRequest, content: bytes) -> None:
        """Announce an INCR transfer and send its SelectionNotify.

        Subscribes to PropertyNotify and StructureNotify on the requestor so
        that its property deletions and its destruction reach the event
        thread.
        """
        from mclipsync.x11_selection import send_selection_notify

        event.requestor.change_attributes(
            event_mask=X.PropertyChangeMask | X.StructureNotifyMask
        )
        event.requestor.change_property(event.property, self.incr_atom, 32, [len(content)])
        key = (event.requestor.id, event.property)
        self.pending[key] = IncrSendState(
            requestor=event.requestor,
            property_atom=event.property,
            target_atom=event.target,
            selection_atom=event.selection,
            content=content,
            offset=0,
            start_time=self.clock(),
        )
        send_selection_notify(event, self.display)
        logger.debug("Initiated INCR send: requestor=%s property=%s size=%s",
            event.requestor.id, event.property, len(content))

    def handle_event(self, event: Event) -> bool:
        """Advance or cancel a transfer in response to a requestor event.

        Returns:
            True if the event belonged to a pending transfer.
        """
        if not self.pending:
            return False
        if event.type == X.DestroyNotify:
            keys = [key for key in self.pending if key[0] == event.window.id]
            for key in keys:
                logger.debug("INCR send: requestor window destroyed: %s", key)
                self._finish(key)
            return bool(keys)
        if event.type != X.PropertyNotify or event.state != X.PropertyDelete:
            return False
        key = (event.window.id, event.atom)
        state = self.pending.get(key)
        if state is None:
            return False
        if state.completion_sent:
            logger.debug("INCR send: final ack received, cleaning up: %s", key)
            self._finish(key)
        else:
            self._send_chunk(state)
        return True

    def _send_chunk(self, state: IncrSendState) -> None:
        """Write the next chunk, or the zero-length marker once all is sent."""
        chunk = state.content[state.offset:state.offset + INCR_CHUNK_SIZE]
        state.requestor.change_property(state.property_atom, state.target_atom, 8, chunk)
        self.display.flush()
        if not chunk:
            state.completion_sent = True
            logger.debug("INCR send complete: requestor=%s", state.requestor.id)
            return
        state.offset += len(chunk)
        logger.debug("INCR chunk sent: requestor=%s offset=%s/%s",
            state.requestor.id, state.offset, len(state.content))

    def _finish(self, key: tuple[int, int]) -> None:
        """Drop a transfer, unsubscribing from its requestor if it was the last."""
        state = self.pending.pop(key, None)
        if state is None:
            return
        if not any(other[0] == key[0] for other in self.pending):
            state.requestor.change_attributes(event_mask=0)
            self.display.flush()

    def cancel(self, selection_atom: int) -> None:
        """Cancel transfers of a selection we no longer own."""
        for key, state in list(self.pending.items()):
            if state.selection_atom == selection_atom:
                logger.debug("INCR send: ownership lost, canceling transfer: %s", key)
                self._finish(key)

    def cleanup_stale(self) -> None:
        """Drop transfers whose requestor stopped reading."""
        now = self.clock()
        for key, state in list(self.pending.items()):
            elapsed = now - state.start_time
            if elapsed > self.timeout:
                logger.warning("INCR send: transfer timed out after %.1f seconds: %s",
                    elapsed, key)
                self._finish(key)


def receive_incr(
    display: Display,
    window: Window,
    prop_atom: int,
    wait_new_value: Callable[[], Event | None],
    max_size: int = INCR_MAX_CONTENT,
) -> bytes | None:
    """Collect an INCR transfer announced on our window.

    Args:
        display: The X11 display connection.
        window: Our window holding the INCR property.
        prop_atom: The property the owner writes chunks into.
        wait_new_value: Blocks until the owner wrote a new chunk; returns None
            on timeout.
        max_size: Transfers growing beyond this many bytes are abandoned.

    Returns:
        The assembled content, or None if the transfer timed out, broke off
        or grew too large.
    """
    # Deleting the INCR property asks the owner for the first chunk.
    window.delete_property(prop_atom)
    display.flush()

    buffer = bytearray()
    while True:
        if wait_new_value() is None:
            logger.warning("INCR receive: timed out after %s bytes", len(buffer))
            return None
        prop = window.get_full_property(prop_atom, X.AnyPropertyType)
        window.delete_property(prop_atom)
        display.flush()
        if prop is None:
            logger.warning("INCR receive: chunk property vanished")
            return None
        chunk = prop.value.encode("utf-8") if isinstance(prop.value, str) else bytes(prop.value)
        if not chunk:
            logger.debug("INCR receive complete: %s bytes", len(buffer))
            return bytes(buffer)
        buffer += chunk
        if len(buffer) > max_size:
            logger.warning("INCR receive: content exceeds %s bytes, ignoring it", max_size)
            return None

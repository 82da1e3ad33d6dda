"""X11 selection request and response helpers.

This module provides the functions used while owning the CLIPBOARD
selection (answering SelectionRequest events) and while reading it from
another owner (reading the converted property).

The module handles:
- Responding to SelectionRequest events (TARGETS, UTF8_STRING, STRING, TIMESTAMP)
- Handing content too large for one request to the INCR sender
- Refusing unsupported targets
- Reading the property a selection was converted into
- Querying the X server's current timestamp
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from Xlib import X, Xatom
from Xlib.protocol.event import SelectionNotify as SelectionNotifyEvent

from mclipsync.main_logging import TRACE
from mclipsync.x11_incr import needs_incr_transfer

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.protocol.event import SelectionRequest
    from Xlib.protocol.rq import Event
    from Xlib.xobject.drawable import Window

    from mclipsync.x11_incr import IncrSender

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionAtoms:
    """Atoms interned once per X11 connection.

    Attributes:
        clipboard: The CLIPBOARD selection.
        targets: The TARGETS conversion target.
        utf8: The UTF8_STRING conversion target.
        timestamp: The TIMESTAMP conversion target.
        incr: The INCR property type used for large transfers.
        property: Property on our window that conversions are stored in.
        timestamp_property: Dummy property changed to learn the server time.
    """

    clipboard: int
    targets: int
    utf8: int
    timestamp: int
    incr: int
    property: int
    timestamp_property: int

    @classmethod
    def intern(cls, display: Display) -> SelectionAtoms:
        return cls(
            clipboard=display.intern_atom("CLIPBOARD"),
            targets=display.intern_atom("TARGETS"),
            utf8=display.intern_atom("UTF8_STRING"),
            timestamp=display.intern_atom("TIMESTAMP"),
            incr=display.intern_atom("INCR"),
            property=display.intern_atom("MCLIPSYNC_SEL"),
            timestamp_property=display.intern_atom("MCLIPSYNC_TIMESTAMP"),
        )


@dataclass(frozen=True)
class PropertyReadResult:
    """Outcome of reading a converted selection property.

    Attributes:
        content: The content bytes, or None if nothing could be read.
        is_incr: True if the owner announced an INCR transfer instead.
        estimated_size: Size announced by an INCR owner, 0 otherwise.
    """

    content: bytes | None
    is_incr: bool = False
    estimated_size: int = 0


def handle_selection_request(
    display: Display,
    event: SelectionRequest,
    content: bytes,
    acquisition_time: int | None,
    atoms: SelectionAtoms,
    sender: IncrSender,
) -> None:
    """Respond to a SelectionRequest while owning CLIPBOARD.

    Supports TARGETS (list of available targets), UTF8_STRING (preferred),
    STRING (legacy) and TIMESTAMP. Refuses anything else with property=None.

    Args:
        display: The X11 display connection.
        event: The SelectionRequest event.
        content: The UTF-8 encoded content to serve.
        acquisition_time: The X server timestamp when we acquired ownership,
            or None if unknown. Used for TIMESTAMP responses.
        atoms: Atoms of this connection.
        sender: Takes over content too large for a single request.
    """
    logger.log(TRACE, "SelectionRequest target=%s property=%s content_len=%s",
        event.target, event.property, len(content))

    if event.property == X.NONE:
        # Obsolete requestors leave the property unset; use the target.
        event.property = event.target

    if event.target == atoms.targets:
        targets = [atoms.targets, atoms.utf8, Xatom.STRING, atoms.timestamp]
        event.requestor.change_property(event.property, Xatom.ATOM, 32, targets)
    elif event.target in (atoms.utf8, Xatom.STRING):
        if needs_incr_transfer(content, display):
            sender.start(event, content)
            return  # INCR sends its own SelectionNotify
        event.requestor.change_property(event.property, event.target, 8, content)
    elif event.target == atoms.timestamp:
        if acquisition_time is not None:
            event.requestor.change_property(
                event.property, Xatom.INTEGER, 32, [acquisition_time]
            )
        else:
            event.property = X.NONE
    else:
        event.property = X.NONE

    send_selection_notify(event, display)


def refuse_selection_request(event: SelectionRequest, display: Display) -> None:
    """Refuse a SelectionRequest by sending property=None."""
    event.property = X.NONE
    send_selection_notify(event, display)


def send_selection_notify(event: SelectionRequest, display: Display) -> None:
    """Send the SelectionNotify response for a request."""
    event.requestor.send_event(
        SelectionNotifyEvent(
            time=event.time,
            requestor=event.requestor.id,
            selection=event.selection,
            target=event.target,
            property=event.property,
        ),
        event_mask=0,
    )
    display.flush()


def _incr_size(value: object) -> int:
    """Return the size announced in an INCR property value."""
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value[:4], byteorder="little")
    try:
        return int(value[0])  # type: ignore[index]
    except (IndexError, TypeError, ValueError):
        return 0


def read_selection_property(
    display: Display, window: Window, atoms: SelectionAtoms
) -> PropertyReadResult:
    """Read the converted selection property from our window.

    The property is deleted after a normal read. An INCR property is left in
    place: deleting it is what starts the transfer.

    Args:
        display: The X11 display connection.
        window: The window the selection was converted onto.
        atoms: Atoms of this connection.

    Returns:
        The content, an INCR announcement, or content=None if the property
        is missing.
    """
    prop = window.get_full_property(atoms.property, X.AnyPropertyType)
    if prop is None:
        logger.debug("Selection property was empty")
        return PropertyReadResult(content=None)
    if prop.property_type == atoms.incr:
        size = _incr_size(prop.value)
        logger.debug("Owner started an INCR transfer of about %s bytes", size)
        return PropertyReadResult(content=None, is_incr=True, estimated_size=size)

    window.delete_property(atoms.property)
    display.flush()
    data = prop.value
    if isinstance(data, str):
        return PropertyReadResult(content=data.encode("utf-8"))
    return PropertyReadResult(content=bytes(data))


def get_server_timestamp(
    display: Display,
    window: Window,
    atoms: SelectionAtoms,
    wait_property: Callable[[int], Event | None],
) -> int | None:
    """Query the X server's current timestamp.

    Changes a dummy property on our window and returns the time of the
    resulting PropertyNotify event.

    Args:
        display: The X11 display connection.
        window: Our window, selecting PropertyChangeMask.
        atoms: Atoms of this connection.
        wait_property: Blocks for the PropertyNotify of the given atom;
            returns None on timeout.

    Returns:
        The server timestamp, or None if no PropertyNotify arrived.
    """
    window.change_property(atoms.timestamp_property, Xatom.INTEGER, 32, [0])
    display.flush()
    event = wait_property(atoms.timestamp_property)
    if event is None:
        return None
    return event.time

#!/usr/bin/env python3
"""Clipboard error taxonomy.

Every failure a backend can report is a ClipboardError. Discovery needs to
tell three cases apart, so two subclasses carry that distinction:

- BackendAbsentError: nothing is listening on the display (skipped silently)
- ProtocolUnsupportedError: the display is live but lacks the clipboard
  protocol (skipped with a warning)

Everything else raised as a plain ClipboardError is treated as transient and
retried by the governor. TooManyErrorsError is not a ClipboardError and
is never retried.
"""


class ClipboardError(Exception):
    """A clipboard get or set failed.

    Attributes:
        display: The display identifier the failure happened on, or None.
    """

    def __init__(self, message: str, display: str | None = None) -> None:
        self.display = display
        if display is not None:
            message = f"{display}: {message}"
        super().__init__(message)


class BackendAbsentError(ClipboardError):
    """No server or compositor is listening on the display."""


class ProtocolUnsupportedError(ClipboardError):
    """The display is live but does not offer the clipboard protocol."""


class BackendBusyError(ClipboardError):
    """The backend handle is already in use by another call."""


class NoClipboardsError(ClipboardError):
    """Discovery found no clipboards to synchronize."""

    def __init__(self) -> None:
        super().__init__("No clipboards.")


class TooManyErrorsError(Exception):
    """The retry governor gave up because failures were too dense."""

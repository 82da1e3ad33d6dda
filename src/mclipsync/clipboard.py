"""Clipboard endpoints.

An endpoint is one addressable clipboard: a specific display reached through
a specific backend kind. The set of backend kinds is small and fixed, so it
is modelled as the BackendKind enum rather than a class hierarchy:

- WAYLAND: wlr-data-control through wl-paste / wl-copy
- X11: selection protocol through python-xlib
- HYBRID: reads through one endpoint, writes through another

Every endpoint exposes the same async interface (get, set, watch, display).
Blocking backend calls are run on the executor of their kind so that two
calls of the same kind never overlap.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Union

from mclipsync.sync_constants import WATCH_INTERVAL

if TYPE_CHECKING:
    from mclipsync.executor import SerialExecutor


class BackendKind(enum.Enum):
    """Closed set of clipboard backend kinds."""

    WAYLAND = "wayland"
    X11 = "x11"
    HYBRID = "hybrid"


class Backend(Protocol):
    """Blocking clipboard primitives of one backend kind.

    The display is always passed explicitly; backends never rely on
    DISPLAY or WAYLAND_DISPLAY of the current process.
    """

    def get(self, display: str) -> str: ...

    def set(self, display: str, text: str) -> None: ...


@dataclass(frozen=True)
class Endpoint:
    """A clipboard reached directly through one backend.

    Attributes:
        kind: The backend kind.
        display: Display identifier, e.g. "wayland-0" or ":1".
        backend: Blocking get/set primitives for this kind.
        executor: The serial executor shared by every endpoint of this kind.
    """

    kind: BackendKind
    display: str
    backend: Backend
    executor: SerialExecutor

    async def get(self) -> str:
        return await self.executor.run(self.backend.get, self.display)

    async def set(self, text: str) -> None:
        await self.executor.run(self.backend.set, self.display, text)

    async def watch(self, interval: float = WATCH_INTERVAL) -> str:
        return await watch(self, interval)

    def describe(self) -> str:
        return f"{self.kind.value}:{self.display}"

    def __repr__(self) -> str:
        return f"Endpoint({self.describe()})"


@dataclass(frozen=True)
class HybridEndpoint:
    """A clipboard read through one endpoint and written through another.

    Some compositors only offer read access through one protocol and write
    access through another (e.g. GNOME: X11 reads, Wayland writes).

    Attributes:
        getter: Endpoint used for get().
        setter: Endpoint used for set().
    """

    getter: Endpoint
    setter: Endpoint

    @property
    def kind(self) -> BackendKind:
        return BackendKind.HYBRID

    @property
    def display(self) -> str:
        return self.getter.display

    async def get(self) -> str:
        return await self.getter.get()

    async def set(self, text: str) -> None:
        await self.setter.set(text)

    async def watch(self, interval: float = WATCH_INTERVAL) -> str:
        return await watch(self, interval)

    def describe(self) -> str:
        return f"hybrid:{self.getter.describe()}+{self.setter.describe()}"

    def __repr__(self) -> str:
        return f"HybridEndpoint({self.describe()})"


Clipboard = Union[Endpoint, HybridEndpoint]


async def watch(clipboard: Clipboard, interval: float = WATCH_INTERVAL) -> str:
    """Poll a single clipboard until its value changes.

    Args:
        clipboard: The clipboard to poll.
        interval: Seconds between polls.

    Returns:
        The first value that differs from the value at the start.
    """
    start = await clipboard.get()
    while True:
        await asyncio.sleep(interval)
        now = await clipboard.get()
        if now != start:
            return now

#!/usr/bin/env python3
"""Discovery of live clipboard endpoints.

Probes a bounded range of display indices for each backend kind, Wayland
first and X11 second, then adds any configured hybrid endpoints. Each
candidate is exercised with one get(); the outcome decides whether it is
kept:

- BackendAbsentError: skipped silently
- ProtocolUnsupportedError: skipped with a warning
- any other exception: skipped with an error, probing continues
- success: kept as a candidate

The candidate list keeps discovery order and still contains duplicates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from mclipsync.clipboard import BackendKind, Endpoint, HybridEndpoint
from mclipsync.errors import BackendAbsentError, ProtocolUnsupportedError
from mclipsync.executor import SerialExecutor
from mclipsync.wayland import WaylandBackend
from mclipsync.x11 import X11Backend

if TYPE_CHECKING:
    from mclipsync.clipboard import Backend, Clipboard
    from mclipsync.config import HybridPair, SyncConfig

logger = logging.getLogger(__name__)


def kind_for_display(display: str) -> BackendKind:
    """Infer the backend kind from a display identifier.

    Args:
        display: "wayland-N" style names are Wayland, anything else is X11.
    """
    if display.startswith("wayland") or display.startswith("/"):
        return BackendKind.WAYLAND
    return BackendKind.X11


@dataclass
class Backends:
    """Backends and executors of one pipeline run.

    Created fresh on every governor attempt and closed afterwards so that no
    connection outlives a failure.

    Attributes:
        backends: Blocking primitives per backend kind.
        executors: One serial executor per backend kind.
    """

    backends: dict[BackendKind, Backend]
    executors: dict[BackendKind, SerialExecutor] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for kind in self.backends:
            if kind not in self.executors:
                self.executors[kind] = SerialExecutor(kind.value)

    @classmethod
    def create(cls) -> Backends:
        return cls({BackendKind.WAYLAND: WaylandBackend(), BackendKind.X11: X11Backend()})

    def endpoint(self, kind: BackendKind, display: str) -> Endpoint:
        return Endpoint(kind, display, self.backends[kind], self.executors[kind])

    def hybrid(self, pair: HybridPair) -> HybridEndpoint:
        getter = self.endpoint(kind_for_display(pair.getter), pair.getter)
        setter = self.endpoint(kind_for_display(pair.setter), pair.setter)
        return HybridEndpoint(getter, setter)

    def close(self) -> None:
        for executor in self.executors.values():
            executor.shutdown()
        for backend in self.backends.values():
            close = getattr(backend, "close", None)
            if close is not None:
                close()


async def probe(candidates: Iterable[Clipboard]) -> list[Clipboard]:
    """Keep the candidates that answer a single get().

    Args:
        candidates: Endpoints to try, in discovery order.

    Returns:
        The live endpoints, in the same order.
    """
    found: list[Clipboard] = []
    for clipboard in candidates:
        try:
            await clipboard.get()
        except BackendAbsentError:
            continue
        except ProtocolUnsupportedError as e:
            if clipboard.kind is BackendKind.WAYLAND:
                logger.warning(
                    "%s does not support zwlr_data_control_manager_v1. If you are running "
                    "GNOME in Wayland, that's OK because it provides an X11 clipboard, which "
                    "will be used instead.", clipboard.display,
                )
            else:
                logger.warning("%s does not support the clipboard protocol: %s",
                    clipboard.describe(), e)
            continue
        except Exception as e:
            logger.error("Unexpected error while setting up clipboard %s: %s",
                clipboard.describe(), e)
            continue
        logger.debug("Found clipboard: %s", clipboard.describe())
        found.append(clipboard)
    return found


async def discover(backends: Backends, config: SyncConfig) -> list[Clipboard]:
    """Find every live clipboard endpoint.

    Args:
        backends: Backends of the current pipeline run.
        config: Supplies max_display_index and hybrid_pairs.

    Returns:
        Candidates in discovery order: Wayland by index, X11 by index,
        then hybrids. Duplicates are not removed.
    """
    indices = range(config.max_display_index + 1)
    candidates: list[Clipboard] = []
    if BackendKind.WAYLAND in backends.backends:
        candidates += await probe(
            backends.endpoint(BackendKind.WAYLAND, f"wayland-{n}") for n in indices
        )
    if BackendKind.X11 in backends.backends:
        candidates += await probe(
            backends.endpoint(BackendKind.X11, f":{n}") for n in indices
        )
    candidates += await probe(backends.hybrid(pair) for pair in config.hybrid_pairs)
    return candidates

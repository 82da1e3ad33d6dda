#!/usr/bin/env python3
"""Identity deduplication of clipboard endpoints.

Two endpoints may be the same physical clipboard reached two ways, e.g. a
Wayland compositor and its Xwayland server. Display names cannot tell, so
identity is probed by writing through one endpoint and reading through the
other, in both directions:

1. write a's display name into a, read b, it must match
2. write b's display name into b, read a, it must match

A one-directional echo only shows that b can read what a writes, which is
not enough. The probe overwrites clipboard contents, so it runs once per
pipeline run, before the start value is pushed, and one comparison at a time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from mclipsync.clipboard import Clipboard

logger = logging.getLogger(__name__)


async def are_same(one: Clipboard, two: Clipboard) -> bool:
    """Probe whether two endpoints are the same physical clipboard.

    Args:
        one: The earlier discovered endpoint.
        two: The later discovered endpoint.

    Returns:
        True only if both write/read-back directions match.
    """
    d1 = one.display
    d2 = two.display
    await one.set(d1)
    if await two.get() != d1:
        return False
    await two.set(d2)
    if await one.get() != d2:
        return False
    return True


async def dedupe(clipboards: Sequence[Clipboard]) -> list[Clipboard]:
    """Collapse endpoints that share one physical clipboard.

    Compares pairs in discovery order. When clipboards[i] and clipboards[j]
    (i < j) are the same, j is dropped and takes no part in later
    comparisons; the earlier endpoint always survives.

    Args:
        clipboards: Candidates in discovery order.

    Returns:
        The surviving endpoints in discovery order.
    """
    removed: set[int] = set()
    for i, one in enumerate(clipboards):
        if i in removed:
            continue
        for j in range(i + 1, len(clipboards)):
            if j in removed:
                continue
            two = clipboards[j]
            if await are_same(one, two):
                logger.debug("%s is the same as %s, removing %s",
                    one.describe(), two.describe(), two.describe())
                removed.add(j)
    return [c for i, c in enumerate(clipboards) if i not in removed]

#!/usr/bin/env python3
"""Pytest fixtures for mclipsync tests.

Provides fast pipeline configuration, in-memory backends wired into a
Backends container, and a fake clock for the retry governor.
"""

import os
from collections.abc import Generator

import pytest

from mclipsync.clipboard import BackendKind
from mclipsync.config import SyncConfig
from mclipsync.discovery import Backends

from conftest_fakes import FakeBackend, FakeStore


def has_display() -> bool:
    """Check if X11 display is available."""
    return os.environ.get("DISPLAY") is not None


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fast_config() -> SyncConfig:
    """SyncConfig with tiny intervals and a small probe range."""
    return SyncConfig(max_display_index=3, poll_interval=0.01, retry_backoff=0.0)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Create a FakeClock for governor tests."""
    return FakeClock()


@pytest.fixture
def wayland_backend() -> FakeBackend:
    """Fake Wayland backend with no live displays."""
    return FakeBackend()


@pytest.fixture
def x11_backend() -> FakeBackend:
    """Fake X11 backend with no live displays."""
    return FakeBackend()


@pytest.fixture
def backends(
    wayland_backend: FakeBackend, x11_backend: FakeBackend
) -> Generator[Backends, None, None]:
    """Backends container wired to the fake backends."""
    container = Backends({BackendKind.WAYLAND: wayland_backend, BackendKind.X11: x11_backend})
    yield container
    container.close()


@pytest.fixture
def shared_store() -> FakeStore:
    """A single physical clipboard reachable through several endpoints."""
    return FakeStore()

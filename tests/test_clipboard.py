#!/usr/bin/env python3
"""Tests for clipboard endpoints."""
import asyncio

import pytest

from mclipsync.clipboard import BackendKind, Endpoint, HybridEndpoint, watch
from mclipsync.discovery import Backends

from conftest_fakes import FakeBackend, FakeStore


@pytest.mark.asyncio
async def test_endpoint_get_and_set(backends: Backends, x11_backend: FakeBackend) -> None:
    """Test get/set go through the backend with the endpoint's display."""
    x11_backend.stores[":1"] = FakeStore("before")
    endpoint = backends.endpoint(BackendKind.X11, ":1")

    assert await endpoint.get() == "before"
    await endpoint.set("after")

    assert x11_backend.stores[":1"].value == "after"
    assert x11_backend.calls == [("get", ":1"), ("set", ":1")]


def test_endpoint_describe(backends: Backends) -> None:
    """Test describe() names the kind and display."""
    endpoint = backends.endpoint(BackendKind.WAYLAND, "wayland-0")
    assert endpoint.describe() == "wayland:wayland-0"
    assert "wayland:wayland-0" in repr(endpoint)


def test_endpoint_is_immutable(backends: Backends) -> None:
    """Test endpoints cannot be modified after construction."""
    endpoint = backends.endpoint(BackendKind.X11, ":0")
    with pytest.raises(AttributeError):
        endpoint.display = ":1"  # type: ignore[misc]


def test_endpoints_of_a_kind_share_one_executor(backends: Backends) -> None:
    """Test every endpoint of a kind is serialized through the same executor."""
    a = backends.endpoint(BackendKind.X11, ":0")
    b = backends.endpoint(BackendKind.X11, ":1")
    c = backends.endpoint(BackendKind.WAYLAND, "wayland-0")
    assert a.executor is b.executor
    assert a.executor is not c.executor


@pytest.mark.asyncio
async def test_calls_of_one_kind_never_overlap(
    backends: Backends, x11_backend: FakeBackend
) -> None:
    """Test concurrent calls on different endpoints of one kind are serialized."""
    for n in range(4):
        x11_backend.stores[f":{n}"] = FakeStore(str(n))
    endpoints = [backends.endpoint(BackendKind.X11, f":{n}") for n in range(4)]

    values = await asyncio.gather(*(e.get() for e in endpoints))

    assert values == ["0", "1", "2", "3"]
    assert x11_backend.max_active == 1


@pytest.mark.asyncio
async def test_hybrid_reads_from_getter_and_writes_to_setter(
    backends: Backends, wayland_backend: FakeBackend, x11_backend: FakeBackend
) -> None:
    """Test a hybrid endpoint routes get and set to different endpoints."""
    x11_backend.stores[":0"] = FakeStore("from x11")
    wayland_backend.stores["wayland-0"] = FakeStore("")
    hybrid = HybridEndpoint(
        getter=backends.endpoint(BackendKind.X11, ":0"),
        setter=backends.endpoint(BackendKind.WAYLAND, "wayland-0"),
    )

    assert hybrid.kind is BackendKind.HYBRID
    assert hybrid.display == ":0"
    assert await hybrid.get() == "from x11"
    await hybrid.set("to wayland")
    assert wayland_backend.stores["wayland-0"].value == "to wayland"
    assert x11_backend.stores[":0"].value == "from x11"


@pytest.mark.asyncio
async def test_watch_returns_first_changed_value(
    backends: Backends, x11_backend: FakeBackend
) -> None:
    """Test watch() polls until the value differs from the starting value."""
    store = FakeStore("old")
    x11_backend.stores[":0"] = store
    endpoint: Endpoint = backends.endpoint(BackendKind.X11, ":0")

    task = asyncio.create_task(endpoint.watch(interval=0.01))
    await asyncio.sleep(0.05)
    assert not task.done()
    store.value = "new"

    assert await asyncio.wait_for(task, timeout=1.0) == "new"


@pytest.mark.asyncio
async def test_watch_function_accepts_hybrid(
    backends: Backends, x11_backend: FakeBackend
) -> None:
    """Test the module-level watch() works on hybrid endpoints too."""
    store = FakeStore("a")
    x11_backend.stores[":0"] = store
    endpoint = backends.endpoint(BackendKind.X11, ":0")
    hybrid = HybridEndpoint(getter=endpoint, setter=endpoint)

    task = asyncio.create_task(watch(hybrid, interval=0.01))
    await asyncio.sleep(0.03)
    store.value = "b"

    assert await asyncio.wait_for(task, timeout=1.0) == "b"

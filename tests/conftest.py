"""Shared test fixtures for the loadburst test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from aiohttp import web
from multidict import CIMultiDict

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@dataclass
class ServerStats:
    """Counters kept by the target server across requests."""

    current: int = 0
    peak: int = 0
    total: int = 0
    methods: list[str] = field(default_factory=list)
    last_headers: CIMultiDict[str] = field(default_factory=CIMultiDict)
    last_body: bytes = b""


@dataclass
class TargetServer:
    """Handle to a running target server."""

    base_url: str
    stats: ServerStats

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"


# =============================================================================
# Target HTTP server handlers
# =============================================================================


def _create_target_app(stats: ServerStats) -> web.Application:
    """Build the target app. Every route is counted in ``stats``."""

    @web.middleware
    async def track(request: web.Request, handler):  # type: ignore[no-untyped-def]
        stats.current += 1
        stats.total += 1
        stats.peak = max(stats.peak, stats.current)
        stats.methods.append(request.method)
        stats.last_headers = CIMultiDict(request.headers)
        stats.last_body = await request.read()
        try:
            return await handler(request)
        finally:
            stats.current -= 1

    async def ok(request: web.Request) -> web.Response:
        """200 with a fixed 64-byte JSON-ish body."""
        return web.Response(body=b"x" * 64, content_type="application/json")

    async def status(request: web.Request) -> web.Response:
        """Respond with ?code=NNN."""
        return web.Response(status=int(request.query.get("code", "500")), text="status")

    async def delay(request: web.Request) -> web.Response:
        """Respond after ?delay=seconds."""
        await asyncio.sleep(float(request.query.get("delay", "0.1")))
        return web.Response(text="delayed")

    async def metrics(request: web.Request) -> web.Response:
        """Stand-in for the metrics endpoint the CLI defaults to."""
        return web.json_response({"channels": []})

    app = web.Application(middlewares=[track])
    app.router.add_route("*", "/ok", ok)
    app.router.add_route("*", "/status", status)
    app.router.add_route("*", "/delay", delay)
    app.router.add_get("/metrics", metrics)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def target_server() -> AsyncIterator[TargetServer]:
    """Aiohttp target server on the test's event loop."""
    stats = ServerStats()
    port = _get_free_port()
    runner = web.AppRunner(_create_target_app(stats), shutdown_timeout=1.0)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield TargetServer(base_url=f"http://127.0.0.1:{port}", stats=stats)
    await runner.cleanup()


@pytest.fixture
def sync_target_server() -> Iterator[TargetServer]:
    """Target server running in a background thread for blocking callers.

    Used by LoadRunner.run() and CLI tests, which start their own event loop
    in the main thread.
    """
    stats = ServerStats()
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_target_app(stats), shutdown_timeout=1.0)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield TargetServer(base_url=f"http://127.0.0.1:{port}", stats=stats)

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def unreachable_url() -> str:
    """URL on a local port with nothing listening."""
    return f"http://127.0.0.1:{_get_free_port()}/metrics"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep LOADBURST_* variables from the developer's shell out of tests."""
    for name in (
        "LOADBURST_URL",
        "LOADBURST_HOST",
        "LOADBURST_PORT",
        "LOADBURST_ENDPOINT",
        "LOADBURST_NUM_REQUESTS",
        "LOADBURST_CONCURRENCY",
        "LOADBURST_METHOD",
        "LOADBURST_TIMEOUT",
        "LOADBURST_ACCEPT",
    ):
        monkeypatch.delenv(name, raising=False)

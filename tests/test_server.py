"""
Tests for the static content server, its readiness probe and the file:// fallback.

Run with: pytest tests/test_server.py -v
"""
import asyncio
import random
import sys

import httpx
import pytest

from styleprobe.config import ServerConfig
from styleprobe.errors import FixtureNotFound, ServerError, ServerStartFailure, ServerUnresponsive
from styleprobe.server import (
    ProbeOutcome,
    ServerState,
    StaticServer,
    TargetURL,
    file_url,
    pick_port,
    serve,
)

EXITS_IMMEDIATELY = [sys.executable, "-c", "pass"]
STAYS_ALIVE = [sys.executable, "-c", "import time; time.sleep(30)"]
IGNORES_SIGTERM = [
    sys.executable, "-c",
    "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(30)",
]


class CountingTransport(httpx.MockTransport):
    """MockTransport that records every request it sees."""

    def __init__(self, responder):
        self.requests = []

        def handler(request):
            self.requests.append(request)
            return responder(request, len(self.requests))

        super().__init__(handler)


def refuse(request, attempt):
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def record_sleeps(monkeypatch):
    """Record asyncio.sleep delays while still yielding to the loop."""
    delays = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


# =============================================================================
# Port selection / URLs
# =============================================================================

class TestPortSelection:
    """Tests for randomized port selection."""

    def test_ports_stay_in_range(self):
        config = ServerConfig()
        rng = random.Random(1234)
        ports = {pick_port(config, rng) for _ in range(500)}
        assert min(ports) >= 8000
        assert max(ports) < 9000

    def test_custom_range(self):
        config = ServerConfig(port_base=20000, port_span=1)
        assert pick_port(config) == 20000

    def test_url_format(self, page_file):
        server = StaticServer(page_file, port=8123)
        assert server.url == "http://localhost:8123/index.html"
        assert server.directory == page_file.parent

    def test_file_url_is_absolute(self, page_file):
        url = file_url(page_file)
        assert url.startswith("file://")
        assert url.endswith("/index.html")


# =============================================================================
# Start / readiness
# =============================================================================

class TestStart:
    """Tests for start-up and readiness polling."""

    @pytest.mark.asyncio
    async def test_process_exit_fails_before_probing(self, page_file, fast_server_config):
        fast_server_config.command = EXITS_IMMEDIATELY
        transport = CountingTransport(refuse)
        server = StaticServer(page_file, fast_server_config, transport=transport)

        with pytest.raises(ServerStartFailure) as exc_info:
            await server.start()

        assert "failed to start" in str(exc_info.value)
        assert exc_info.value.returncode == 0
        assert server.probe_count == 0
        assert transport.requests == []
        assert server.state is ServerState.TERMINATED

    @pytest.mark.asyncio
    async def test_unreachable_server_exhausts_probe_budget(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE
        transport = CountingTransport(refuse)
        server = StaticServer(page_file, fast_server_config, transport=transport)

        with pytest.raises(ServerUnresponsive) as exc_info:
            await server.start()

        assert server.probe_count == 10
        assert len(transport.requests) == 10
        assert exc_info.value.attempts == 10
        assert "Connection refused" in exc_info.value.last_error
        assert "not responding" in str(exc_info.value)
        # the process is cleaned up before the error propagates
        assert server.process is None
        assert server.state is ServerState.TERMINATED

    @pytest.mark.asyncio
    async def test_probe_attempts_are_spaced_by_fixed_delay(self, page_file, record_sleeps):
        config = ServerConfig(settle_delay=0.25, probe_interval=0.125, command=STAYS_ALIVE)
        server = StaticServer(page_file, config, transport=CountingTransport(refuse))

        with pytest.raises(ServerUnresponsive):
            await server.start()

        assert record_sleeps[0] == 0.25
        assert record_sleeps[1:10] == [0.125] * 9

    @pytest.mark.asyncio
    async def test_non_success_status_is_retried(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE
        transport = CountingTransport(lambda request, attempt: httpx.Response(404))
        server = StaticServer(page_file, fast_server_config, transport=transport)

        with pytest.raises(ServerUnresponsive) as exc_info:
            await server.start()

        assert len(transport.requests) == 10
        assert exc_info.value.last_error == "HTTP 404"

    @pytest.mark.asyncio
    async def test_ready_after_retries(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE

        def responder(request, attempt):
            if attempt < 3:
                raise httpx.ConnectTimeout("timed out", request=request)
            return httpx.Response(200)

        transport = CountingTransport(responder)
        server = StaticServer(page_file, fast_server_config, port=8555, transport=transport)
        try:
            url = await server.start()
            assert url == "http://localhost:8555/index.html"
            assert server.probe_count == 3
            assert all(r.method == "HEAD" for r in transport.requests)
            assert server.state is ServerState.READY
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_server_cannot_be_restarted(self, page_file, fast_server_config):
        fast_server_config.command = EXITS_IMMEDIATELY
        server = StaticServer(page_file, fast_server_config)
        with pytest.raises(ServerStartFailure):
            await server.start()
        with pytest.raises(ServerError):
            await server.start()

    @pytest.mark.asyncio
    async def test_cancel_during_settle_stops_process(self, page_file):
        config = ServerConfig(settle_delay=2.0, command=STAYS_ALIVE)
        server = StaticServer(page_file, config, transport=CountingTransport(refuse))

        async def enter_server():
            async with server:
                pass

        task = asyncio.create_task(enter_server())
        await asyncio.sleep(0.5)
        process = server.process
        assert process is not None and process.poll() is None

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert process.poll() is not None
        assert server.process is None
        assert server.state is ServerState.TERMINATED
        assert server.probe_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_probe_error_stops_process(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE

        def explode(request, attempt):
            raise RuntimeError("transport bug")

        server = StaticServer(page_file, fast_server_config, transport=CountingTransport(explode))
        with pytest.raises(RuntimeError):
            await server.start()
        assert server.process is None
        assert server.state is ServerState.TERMINATED

    @pytest.mark.asyncio
    async def test_readiness_wait_reports_exhaustion(self, page_file, fast_server_config):
        server = StaticServer(page_file, fast_server_config, transport=CountingTransport(refuse))
        assert await server._wait_until_ready() is ProbeOutcome.EXHAUSTED
        assert server.probe_count == 10

        ready = StaticServer(
            page_file,
            fast_server_config,
            transport=CountingTransport(lambda request, attempt: httpx.Response(200)),
        )
        assert await ready._wait_until_ready() is ProbeOutcome.READY
        assert ready.probe_count == 1

    @pytest.mark.asyncio
    async def test_missing_executable_is_start_failure(self, page_file, fast_server_config):
        fast_server_config.command = ["/nonexistent/styleprobe-python", "-m", "http.server"]
        server = StaticServer(page_file, fast_server_config)
        with pytest.raises(ServerStartFailure):
            await server.start()
        assert server.probe_count == 0


# =============================================================================
# Teardown
# =============================================================================

class TestStop:
    """Tests for server teardown."""

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, page_file):
        server = StaticServer(page_file)
        await server.stop()
        await server.stop()
        assert server.state is ServerState.UNSTARTED
        assert server.process is None

    @pytest.mark.asyncio
    async def test_stop_terminates_process(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE
        transport = CountingTransport(lambda request, attempt: httpx.Response(200))
        server = StaticServer(page_file, fast_server_config, transport=transport)
        await server.start()
        process = server.process

        await server.stop()
        await server.stop()

        assert process.poll() is not None
        assert server.state is ServerState.TERMINATED

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform.startswith("win"), reason="SIGTERM cannot be ignored on Windows")
    async def test_stop_kills_process_ignoring_sigterm(self, page_file):
        config = ServerConfig(settle_delay=0.5, shutdown_timeout=0.2, command=IGNORES_SIGTERM)
        transport = CountingTransport(lambda request, attempt: httpx.Response(200))
        server = StaticServer(page_file, config, transport=transport)
        await server.start()
        process = server.process

        await server.stop()

        assert process.poll() is not None
        assert server.state is ServerState.TERMINATED

    @pytest.mark.asyncio
    async def test_context_manager_stops_on_error(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE
        transport = CountingTransport(lambda request, attempt: httpx.Response(200))
        server = StaticServer(page_file, fast_server_config, transport=transport)

        with pytest.raises(RuntimeError):
            async with server:
                process = server.process
                raise RuntimeError("test body failed")

        assert process.poll() is not None


# =============================================================================
# serve() fallback
# =============================================================================

class TestServe:
    """Tests for the caller-level file:// fallback."""

    @pytest.mark.asyncio
    async def test_start_failure_falls_back_to_file_url(self, page_file, fast_server_config):
        fast_server_config.command = EXITS_IMMEDIATELY
        async with serve(page_file, fast_server_config) as target:
            assert target == TargetURL(file_url(page_file), via_server=False)

    @pytest.mark.asyncio
    async def test_unresponsive_falls_back_to_file_url(self, page_file, fast_server_config):
        fast_server_config.command = STAYS_ALIVE
        async with serve(page_file, fast_server_config, transport=CountingTransport(refuse)) as target:
            assert not target.via_server
            assert target.url.startswith("file://")

    @pytest.mark.asyncio
    async def test_disabled_server_uses_file_url(self, page_file):
        async with serve(page_file, ServerConfig(enabled=False)) as target:
            assert str(target) == file_url(page_file)

    @pytest.mark.asyncio
    async def test_missing_page_is_setup_failure(self, tmp_path):
        with pytest.raises(FixtureNotFound):
            async with serve(tmp_path / "missing.html"):
                pass


# =============================================================================
# Real http.server
# =============================================================================

class TestRealServer:
    """Tests against an actual ``python -m http.server`` process."""

    @pytest.mark.asyncio
    async def test_serves_file_at_returned_url(self, page_file):
        config = ServerConfig(settle_delay=0.5)
        async with serve(page_file, config) as target:
            if not target.via_server:
                pytest.skip("port unavailable on this machine")
            port = int(target.url.split(":")[2].split("/")[0])
            assert target.url == f"http://localhost:{port}/index.html"
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.head(target.url)
            assert response.status_code == 200

"""
Static Content Server - Serves one file over HTTP from a short-lived process.

The server is ``python -m http.server`` rooted at the file's directory and
bound to a randomized port. ``start()`` only returns once a HEAD request for
the file succeeds; ``serve()`` wraps it with the file:// fallback.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List, Optional, Union

import httpx

from styleprobe.config import ServerConfig
from styleprobe.errors import (
    FixtureNotFound,
    ServerError,
    ServerStartFailure,
    ServerUnresponsive,
)

logger = logging.getLogger("styleprobe")


class ServerState(Enum):
    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    START_FAILED = "start-failed"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class ProbeOutcome(Enum):
    READY = "ready"
    NOT_READY = "not-ready"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class TargetURL:
    """The URL handed to the browser."""
    url: str
    via_server: bool

    def __str__(self):
        return self.url


def pick_port(config: ServerConfig, rng: Optional[random.Random] = None) -> int:
    """Pick a port from ``[port_base, port_base + port_span)``."""
    rng = rng or random
    return config.port_base + rng.randrange(config.port_span)


def file_url(path: Union[str, Path]) -> str:
    return Path(path).resolve().as_uri()


class StaticServer:
    """
    One static file server process.

    Usage:
        async with StaticServer("page.html") as server:
            print(server.url)
    """

    def __init__(
        self,
        path: Union[str, Path],
        config: Optional[ServerConfig] = None,
        *,
        port: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ServerConfig()
        self.path = Path(path).resolve()
        self.directory = self.path.parent
        self.filename = self.path.name
        self.port = port if port is not None else pick_port(self.config)
        self.state = ServerState.UNSTARTED
        self.probe_count = 0
        self.last_error: Optional[str] = None
        self._process: Optional[subprocess.Popen] = None
        self._transport = transport

    @property
    def url(self) -> str:
        return f"http://{self.config.host}:{self.port}/{self.filename}"

    @property
    def process(self) -> Optional[subprocess.Popen]:
        return self._process

    async def __aenter__(self) -> StaticServer:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _command(self) -> List[str]:
        if self.config.command:
            return [
                arg.format(port=self.port, host=self.config.host, directory=self.directory)
                for arg in self.config.command
            ]
        return [
            sys.executable, "-m", "http.server", str(self.port),
            "--bind", self.config.host,
        ]

    async def start(self) -> str:
        """
        Spawn the server and wait until it answers.

        Returns:
            The server URL for the file.

        Raises:
            ServerStartFailure: The process exited during the settle delay.
            ServerUnresponsive: No 2xx response within the probe budget.
        """
        if self.state is not ServerState.UNSTARTED:
            raise ServerError(
                f"Server already used (state={self.state.value})",
                method="StaticServer.start",
            )
        self.state = ServerState.STARTING

        command = self._command()
        logger.info(f"Starting static server on port {self.port} in {self.directory}")
        try:
            self._process = subprocess.Popen(
                command,
                cwd=self.directory,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self.state = ServerState.START_FAILED
            raise ServerStartFailure(
                f"HTTP server failed to start: {e}",
                method="StaticServer.start",
                command=command[0],
            ) from e

        # from here on the process exists; any failure or cancellation must reap it
        try:
            await asyncio.sleep(self.config.settle_delay)

            if self._process.poll() is not None:
                raise ServerStartFailure(
                    "HTTP server failed to start",
                    returncode=self._process.returncode,
                    method="StaticServer.start",
                    port=self.port,
                )

            if await self._wait_until_ready() is ProbeOutcome.EXHAUSTED:
                raise ServerUnresponsive(
                    f"HTTP server not responding: {self.last_error}",
                    last_error=self.last_error,
                    attempts=self.probe_count,
                    method="StaticServer.start",
                    url=self.url,
                )
        except BaseException:
            self.state = ServerState.START_FAILED
            await self.stop()
            raise

        self.state = ServerState.READY
        logger.info(f"Static server ready at {self.url}")
        return self.url

    async def _probe_once(self, client: httpx.AsyncClient) -> ProbeOutcome:
        self.probe_count += 1
        try:
            response = await client.head(self.url)
        except httpx.HTTPError as e:
            self.last_error = f"{type(e).__name__}: {e}"
            return ProbeOutcome.NOT_READY
        if response.is_success:
            return ProbeOutcome.READY
        self.last_error = f"HTTP {response.status_code}"
        return ProbeOutcome.NOT_READY

    async def _wait_until_ready(self) -> ProbeOutcome:
        """Probe until READY, or return EXHAUSTED once the attempt budget is spent."""
        attempts = self.config.probe_attempts
        async with httpx.AsyncClient(
            timeout=self.config.probe_timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, attempts + 1):
                if await self._probe_once(client) is ProbeOutcome.READY:
                    return ProbeOutcome.READY
                logger.debug(
                    f"Server not ready (attempt {attempt}/{attempts}): {self.last_error}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self.config.probe_interval)

        logger.debug(f"Readiness probe exhausted after {attempts} attempts")
        return ProbeOutcome.EXHAUSTED

    async def stop(self) -> None:
        """Terminate the server process. Safe to call more than once."""
        if self._process is None:
            if self.state is not ServerState.UNSTARTED:
                self.state = ServerState.TERMINATED
            return

        self.state = ServerState.TERMINATING
        process = self._process
        if process.poll() is None:
            logger.info(f"Terminating static server (PID: {process.pid})...")
            process.terminate()
            try:
                await asyncio.wait_for(
                    asyncio.to_thread(process.wait),
                    timeout=self.config.shutdown_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Static server did not exit within {self.config.shutdown_timeout}s, killing"
                )
                process.kill()
                try:
                    await asyncio.wait_for(asyncio.to_thread(process.wait), timeout=2.0)
                except asyncio.TimeoutError:
                    logger.warning(f"Static server (PID: {process.pid}) still alive after kill")
        self._process = None
        self.state = ServerState.TERMINATED


@contextlib.asynccontextmanager
async def serve(
    path: Union[str, Path],
    config: Optional[ServerConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[TargetURL]:
    """
    Serve ``path`` over HTTP, falling back to a file:// URL.

    Yields:
        TargetURL for the page. The server, if any, is stopped on exit.

    Raises:
        FixtureNotFound: The file does not exist, so neither URL would load.
    """
    config = config or ServerConfig()
    page = Path(path).resolve()
    if not page.is_file():
        raise FixtureNotFound(f"Page not found: {page}", method="serve")

    if not config.enabled:
        yield TargetURL(file_url(page), via_server=False)
        return

    server = StaticServer(page, config, transport=transport)
    try:
        try:
            url = await server.start()
        except ServerError as e:
            logger.warning(f"HTTP server unavailable, falling back to file:// ({e})")
            yield TargetURL(file_url(page), via_server=False)
        else:
            yield TargetURL(url, via_server=True)
    finally:
        await server.stop()

"""
styleprobe - Computed-style checks for static pages in headless Chrome.

The harness finds a chromedriver/Chrome pair, serves the page from a local
HTTP server on a random port (or falls back to file://), loads it and reads
computed CSS properties.

Usage:
    from styleprobe import StyleHarness

    async with StyleHarness("page.html") as harness:
        color = await harness.computed_style("h1", "color")

Checks:
    from styleprobe import DEFAULT_CHECKS, run_checks

    results = await run_checks(harness, DEFAULT_CHECKS)
"""
from styleprobe.checks import DEFAULT_CHECKS, CheckResult, StyleCheck, run_checks
from styleprobe.config import HarnessConfig, ServerConfig, chrome_arguments
from styleprobe.errors import (
    CDPConnectionError,
    CDPProtocolError,
    CDPTimeoutError,
    ConfigError,
    FixtureNotFound,
    ServerError,
    ServerStartFailure,
    ServerUnresponsive,
    SessionError,
    StyleProbeError,
)
from styleprobe.harness import StyleHarness
from styleprobe.logs import setup_logging
from styleprobe.platforms import CandidatePath, Platform
from styleprobe.resolver import Environment, resolve_environment
from styleprobe.server import ServerState, StaticServer, TargetURL, serve
from styleprobe.session import CDPSession, PageSession, WebDriverSession, open_session

__version__ = "0.1.0"

__all__ = [
    # Main API
    "StyleHarness",
    "HarnessConfig",
    "ServerConfig",
    # Discovery
    "Platform",
    "CandidatePath",
    "Environment",
    "resolve_environment",
    # Static server
    "StaticServer",
    "ServerState",
    "TargetURL",
    "serve",
    # Sessions
    "PageSession",
    "WebDriverSession",
    "CDPSession",
    "open_session",
    "chrome_arguments",
    # Checks
    "StyleCheck",
    "CheckResult",
    "DEFAULT_CHECKS",
    "run_checks",
    # Errors
    "StyleProbeError",
    "ConfigError",
    "FixtureNotFound",
    "ServerError",
    "ServerStartFailure",
    "ServerUnresponsive",
    "SessionError",
    "CDPConnectionError",
    "CDPTimeoutError",
    "CDPProtocolError",
    # Logging
    "setup_logging",
    # Version
    "__version__",
]

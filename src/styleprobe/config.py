"""
Configuration for the static server and the browser harness.
"""
from __future__ import annotations

import os
import random
import tempfile
import uuid
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from styleprobe.errors import ConfigError

BACKENDS = ("webdriver", "cdp")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _default_user_data_dir() -> str:
    """Generate a unique user data directory for process isolation."""
    return os.path.join(tempfile.gettempdir(), f"styleprobe-chrome-{uuid.uuid4().hex[:8]}")


def _default_cdp_port() -> int:
    return 9222 + random.randrange(100)


@dataclass
class ServerConfig:
    """Configuration for the static file server and its readiness probe."""

    host: str = "localhost"
    port_base: int = 8000
    port_span: int = 1000
    settle_delay: float = 1.5
    probe_attempts: int = 10
    probe_interval: float = 0.4
    probe_timeout: float = 1.0
    shutdown_timeout: float = 5.0
    # argv override; "{port}", "{host}" and "{directory}" are substituted
    command: Optional[List[str]] = None
    enabled: bool = True


@dataclass
class HarnessConfig:
    """Configuration options for a harness run."""

    backend: str = "webdriver"
    headless: bool = True
    window_width: int = 1280
    window_height: int = 720
    page_load_timeout: float = 10.0
    render_settle: float = 1.5
    driver_path: Optional[str] = None
    browser_binary: Optional[str] = None
    user_data_dir: str = field(default_factory=_default_user_data_dir)
    cdp_port: int = field(default_factory=_default_cdp_port)
    driver_log_path: Optional[str] = None
    server: ServerConfig = field(default_factory=ServerConfig)

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"Unknown backend {self.backend!r}, expected one of {', '.join(BACKENDS)}",
                method="HarnessConfig",
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> HarnessConfig:
        """
        Build a config from ``STYLEPROBE_*`` environment variables.

        Keyword overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values = {}

        if "STYLEPROBE_BACKEND" in environ:
            values["backend"] = environ["STYLEPROBE_BACKEND"].strip().lower()
        if "STYLEPROBE_HEADLESS" in environ:
            values["headless"] = _parse_bool("STYLEPROBE_HEADLESS", environ["STYLEPROBE_HEADLESS"])
        if environ.get("STYLEPROBE_DRIVER"):
            values["driver_path"] = environ["STYLEPROBE_DRIVER"]
        if environ.get("STYLEPROBE_BROWSER"):
            values["browser_binary"] = environ["STYLEPROBE_BROWSER"]
        if "STYLEPROBE_PAGE_LOAD_TIMEOUT" in environ:
            raw = environ["STYLEPROBE_PAGE_LOAD_TIMEOUT"]
            try:
                values["page_load_timeout"] = float(raw)
            except ValueError as e:
                raise ConfigError(
                    f"STYLEPROBE_PAGE_LOAD_TIMEOUT must be a number, got {raw!r}",
                    method="HarnessConfig.from_env",
                ) from e

        values.update(overrides)
        config = cls(**values)
        if "STYLEPROBE_NO_SERVER" in environ:
            config.server.enabled = not _parse_bool(
                "STYLEPROBE_NO_SERVER", environ["STYLEPROBE_NO_SERVER"]
            )
        return config


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}", method="HarnessConfig.from_env")


def chrome_arguments(config: HarnessConfig) -> List[str]:
    """Chrome command-line flags for a CI-safe, file://-compatible session."""
    args = []
    if config.headless:
        args.append("--headless=new")
    args.extend([
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-features=VizDisplayCompositor",
        "--use-gl=swiftshader",
        "--allow-file-access-from-files",
        "--disable-web-security",
        f"--window-size={config.window_width},{config.window_height}",
        f"--user-data-dir={config.user_data_dir}",
        "--log-level=3",
    ])
    return args

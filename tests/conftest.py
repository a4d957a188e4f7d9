"""
Pytest configuration and shared fixtures.
"""
import os
import shutil
import sys
from pathlib import Path

import pytest

# Make the src/ layout importable without an install
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from styleprobe.__main__ import DEFAULT_PAGE  # noqa: E402
from styleprobe.config import ServerConfig  # noqa: E402
from styleprobe.resolver import resolve_environment  # noqa: E402
from styleprobe.session import CHROME_NAMES  # noqa: E402


@pytest.fixture
def styled_page() -> Path:
    """The bundled fixture page with the h1 / .highlight / #main-title rules."""
    return DEFAULT_PAGE


@pytest.fixture
def page_file(tmp_path) -> Path:
    """A throwaway HTML file in its own directory."""
    page = tmp_path / "index.html"
    page.write_text("<html><body><h1>hello</h1></body></html>", encoding="utf-8")
    return page


@pytest.fixture
def fast_server_config() -> ServerConfig:
    """Server config with short delays for unit tests."""
    return ServerConfig(
        settle_delay=0.5,
        probe_interval=0.01,
        probe_timeout=0.5,
        shutdown_timeout=2.0,
    )


@pytest.fixture(scope="session")
def environment():
    """The driver/browser pair found on this machine."""
    return resolve_environment()


@pytest.fixture(scope="session")
def chrome_available(environment) -> bool:
    return bool(environment.browser_binary or any(shutil.which(n) for n in CHROME_NAMES))


@pytest.fixture(scope="session")
def chromedriver_available(environment) -> bool:
    return bool(environment.driver_path or shutil.which("chromedriver"))


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires Chrome)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection."""
    # Add markers based on test names or locations
    for item in items:
        if "integration" in item.nodeid.lower():
            item.add_marker(pytest.mark.integration)
        if "slow" in item.nodeid.lower():
            item.add_marker(pytest.mark.slow)

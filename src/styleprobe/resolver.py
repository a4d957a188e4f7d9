"""
Environment Resolver - Picks a chromedriver executable and a Chrome binary.

Both lookups are read-only: candidates are checked for existence (and, for
drivers, the executable bit) but never run. A miss leaves the value unset so
Selenium Manager or the browser launcher falls back to its own discovery.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional

from styleprobe.platforms import (
    BROWSER_CANDIDATES,
    DRIVER_CANDIDATES,
    CandidatePath,
    Platform,
)

logger = logging.getLogger("styleprobe")


@dataclass(frozen=True)
class Environment:
    """Resolved driver/browser pair. ``None`` means use default discovery."""
    platform: Platform
    driver_path: Optional[str] = None
    browser_binary: Optional[str] = None


def _expanded(candidates: Iterable[CandidatePath], env: Mapping[str, str]) -> Iterator[str]:
    for candidate in candidates:
        path = candidate.expand(env)
        if path is None:
            logger.debug(f"Skipping {candidate.template}: environment variable unset")
            continue
        yield path


def first_executable(candidates: Iterable[CandidatePath],
                     env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return the first candidate that is an existing, executable file."""
    env = os.environ if env is None else env
    for path in _expanded(candidates, env):
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        if os.path.exists(path):
            logger.debug(f"Skipping {path}: not executable")
    return None


def first_existing(candidates: Iterable[CandidatePath],
                   env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return the first candidate that exists on disk."""
    env = os.environ if env is None else env
    for path in _expanded(candidates, env):
        if os.path.exists(path):
            return path
    return None


def resolve_environment(
    platform: Optional[Platform] = None,
    env: Optional[Mapping[str, str]] = None,
    *,
    driver_override: Optional[str] = None,
    browser_override: Optional[str] = None,
) -> Environment:
    """
    Resolve the driver executable and browser binary for this machine.

    Args:
        platform: Platform whose candidate table to use. Detected if omitted.
        env: Environment used to expand ``{VAR}`` candidates. Defaults to
            ``os.environ``.
        driver_override: Path tried before the platform's driver candidates.
        browser_override: Path tried before the platform's browser candidates.

    Returns:
        Environment with each path set, or None where nothing matched.
    """
    platform = platform or Platform.current()
    env = os.environ if env is None else env

    driver_candidates = list(DRIVER_CANDIDATES[platform])
    if driver_override:
        driver_candidates.insert(0, CandidatePath(driver_override))
    browser_candidates = list(BROWSER_CANDIDATES[platform])
    if browser_override:
        browser_candidates.insert(0, CandidatePath(browser_override))

    driver_path = first_executable(driver_candidates, env)
    browser_binary = first_existing(browser_candidates, env)

    if driver_path:
        logger.info(f"Using chromedriver at {driver_path}")
    else:
        logger.debug("No chromedriver candidate matched; deferring to default discovery")
    if browser_binary:
        logger.info(f"Using browser binary at {browser_binary}")
    else:
        logger.debug("No browser candidate matched; deferring to platform default")

    return Environment(
        platform=platform,
        driver_path=driver_path,
        browser_binary=browser_binary,
    )

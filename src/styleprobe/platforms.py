"""
Platform detection and candidate-path tables for driver and browser discovery.
"""
from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

_PLACEHOLDER = re.compile(r"\{([A-Z_][A-Z0-9_]*)\}")


class Platform(Enum):
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"

    @classmethod
    def current(cls, sys_platform: Optional[str] = None) -> Platform:
        """Map ``sys.platform`` to a Platform. Unknown unixes count as Linux."""
        name = sys_platform or sys.platform
        if name.startswith(("win32", "cygwin", "msys")):
            return cls.WINDOWS
        if name.startswith("darwin"):
            return cls.MACOS
        return cls.LINUX


@dataclass(frozen=True)
class CandidatePath:
    """
    One entry of a candidate path list.

    ``template`` is either a literal path or contains ``{VAR}`` placeholders
    filled from the environment.
    """
    template: str

    @property
    def env_vars(self) -> Tuple[str, ...]:
        return tuple(_PLACEHOLDER.findall(self.template))

    def expand(self, env: Mapping[str, str]) -> Optional[str]:
        """
        Fill placeholders from ``env``.

        Returns:
            The concrete path, or None when a referenced variable is unset
            or empty.
        """
        values = {}
        for name in self.env_vars:
            value = env.get(name)
            if not value:
                return None
            values[name] = value
        return _PLACEHOLDER.sub(lambda m: values[m.group(1)], self.template)


def _paths(*templates: str) -> Tuple[CandidatePath, ...]:
    return tuple(CandidatePath(t) for t in templates)


DRIVER_CANDIDATES: Dict[Platform, Tuple[CandidatePath, ...]] = {
    Platform.LINUX: _paths(
        "/usr/bin/chromedriver",
        "/usr/local/bin/chromedriver",
        "/snap/bin/chromedriver",
        "./driver/chromedriver",
        "/opt/chromedriver/chromedriver",
    ),
    Platform.MACOS: _paths(
        "/usr/local/bin/chromedriver",
        "/opt/homebrew/bin/chromedriver",
        "/usr/bin/chromedriver",
        "./driver/chromedriver",
        "/opt/chromedriver/chromedriver",
    ),
    Platform.WINDOWS: _paths(
        ".\\driver\\chromedriver.exe",
        "C:\\chromedriver\\chromedriver.exe",
        "C:\\Program Files\\chromedriver\\chromedriver.exe",
        "{USERPROFILE}\\chromedriver.exe",
        "{LOCALAPPDATA}\\chromedriver\\chromedriver.exe",
    ),
}

BROWSER_CANDIDATES: Dict[Platform, Tuple[CandidatePath, ...]] = {
    Platform.LINUX: _paths(
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",
        "/usr/bin/google-chrome",
        "/snap/bin/chromium",
        "/opt/google/chrome/chrome",
    ),
    Platform.MACOS: _paths(
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ),
    Platform.WINDOWS: _paths(
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
        "{LOCALAPPDATA}\\Google\\Chrome\\Application\\chrome.exe",
        "{PROGRAMFILES}\\Google\\Chrome\\Application\\chrome.exe",
    ),
}

"""
Style checks - Computed-style expectations evaluated against a loaded page.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List

from styleprobe.errors import ConfigError

if TYPE_CHECKING:
    from styleprobe.harness import StyleHarness


@dataclass(frozen=True)
class StyleCheck:
    """A computed-style expectation for the first element matching ``selector``."""

    selector: str
    property: str
    expected: str
    mode: str = "contains"

    def matches(self, actual: str) -> bool:
        if self.mode == "equals":
            return actual == self.expected
        return self.expected in actual

    @classmethod
    def parse(cls, spec: str) -> StyleCheck:
        """
        Parse ``SELECTOR:property=value`` (equals) or ``SELECTOR:property~=value``
        (contains). The last ``:`` before the operator separates the selector.
        """
        if "~=" in spec:
            head, expected = spec.split("~=", 1)
            mode = "contains"
        elif "=" in spec:
            head, expected = spec.split("=", 1)
            mode = "equals"
        else:
            raise ConfigError(f"Check {spec!r} has no '=' or '~='", method="StyleCheck.parse")

        selector, sep, prop = head.rpartition(":")
        if not sep or not selector or not prop:
            raise ConfigError(
                f"Check {spec!r} must look like SELECTOR:property=value",
                method="StyleCheck.parse",
            )
        return cls(selector=selector, property=prop.strip(), expected=expected, mode=mode)

    def describe(self) -> str:
        op = "==" if self.mode == "equals" else "contains"
        return f"{self.selector} {self.property} {op} {self.expected!r}"


@dataclass(frozen=True)
class CheckResult:
    check: StyleCheck
    actual: str
    passed: bool


DEFAULT_CHECKS = (
    StyleCheck("h1", "color", "0, 0, 255"),
    StyleCheck(".highlight", "background-color", "255, 255, 0"),
    StyleCheck("#main-title", "text-transform", "uppercase", mode="equals"),
)


async def run_checks(harness: "StyleHarness", checks: Iterable[StyleCheck] = DEFAULT_CHECKS) -> List[CheckResult]:
    """Evaluate each check against the harness's page, in order."""
    results = []
    for check in checks:
        actual = await harness.computed_style(check.selector, check.property)
        results.append(CheckResult(check=check, actual=actual, passed=check.matches(actual)))
    return results

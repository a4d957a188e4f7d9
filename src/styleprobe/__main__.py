#!/usr/bin/env python3
"""
Load a page in headless Chrome and check computed styles.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from styleprobe.checks import DEFAULT_CHECKS, CheckResult, StyleCheck, run_checks
from styleprobe.config import BACKENDS, HarnessConfig
from styleprobe.errors import StyleProbeError
from styleprobe.harness import StyleHarness
from styleprobe.logs import setup_logging

DEFAULT_PAGE = Path(__file__).parent / "fixtures" / "StyledPage.html"


async def probe(page: Path, config: HarnessConfig, checks: Sequence[StyleCheck]) -> List[CheckResult]:
    async with StyleHarness(page, config) as harness:
        print(f"Loaded {harness.target.url}")
        return await run_checks(harness, checks)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check computed CSS styles of a static page.")
    parser.add_argument(
        "page",
        nargs="?",
        type=Path,
        default=DEFAULT_PAGE,
        help="HTML file to load (default: the bundled StyledPage.html).",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=None,
        help="Browser backend (default: $STYLEPROBE_BACKEND or webdriver).",
    )
    parser.add_argument(
        "--no-server",
        action="store_true",
        help="Load the page from file:// instead of a local HTTP server.",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window.",
    )
    parser.add_argument(
        "--check",
        action="append",
        default=[],
        metavar="SPEC",
        help="SELECTOR:property=value or SELECTOR:property~=value; repeatable.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(logging.INFO, debug=args.debug)

    overrides = {}
    if args.backend:
        overrides["backend"] = args.backend
    if args.headed:
        overrides["headless"] = False

    try:
        config = HarnessConfig.from_env(**overrides)
        if args.no_server:
            config.server.enabled = False
        checks = [StyleCheck.parse(spec) for spec in args.check] or list(DEFAULT_CHECKS)
        results = asyncio.run(probe(args.page, config, checks))
    except StyleProbeError as e:
        print(f"❌ Setup failed: {e}", file=sys.stderr)
        return 2

    for result in results:
        mark = "✅" if result.passed else "❌"
        print(f"{mark} {result.check.describe()} (actual: {result.actual!r})")
    return 0 if all(r.passed for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())

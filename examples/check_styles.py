#!/usr/bin/env python3
"""
Style Check Example

Loads the bundled StyledPage.html over a local HTTP server and prints a few
computed styles, then runs the default checks.

Prerequisites:
- Chrome or Chromium installed (plus chromedriver for the webdriver backend)
"""
import asyncio

from styleprobe import DEFAULT_CHECKS, HarnessConfig, StyleHarness, run_checks
from styleprobe.__main__ import DEFAULT_PAGE


async def main():
    # Configure the harness (optional - defaults work fine)
    config = HarnessConfig(
        backend="cdp",
        headless=True,
    )

    async with StyleHarness(DEFAULT_PAGE, config) as harness:
        print(f"Loaded: {harness.target.url}")
        print(f"Driver: {harness.environment.driver_path or 'default discovery'}")
        print(f"Browser: {harness.environment.browser_binary or 'platform default'}")

        # Read individual properties
        print(f"\nh1 color: {await harness.computed_style('h1', 'color')}")
        print(f"#main-title transform: {await harness.computed_style('#main-title', 'text-transform')}")

        # Run the default checks
        print("\nRunning checks...")
        for result in await run_checks(harness, DEFAULT_CHECKS):
            status = "PASS" if result.passed else "FAIL"
            print(f"{status}: {result.check.describe()} (actual: {result.actual!r})")


if __name__ == "__main__":
    asyncio.run(main())

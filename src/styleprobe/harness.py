"""
StyleHarness - Loads one page in a headless browser for style assertions.

Usage:
    async with StyleHarness("page.html") as harness:
        color = await harness.computed_style("h1", "color")
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Optional, Union

from styleprobe.config import HarnessConfig
from styleprobe.errors import StyleProbeError
from styleprobe.resolver import Environment, resolve_environment
from styleprobe.server import TargetURL, serve
from styleprobe.session import PageSession, open_session

logger = logging.getLogger("styleprobe")

# Forces a relayout; headless Chrome occasionally reports stale styles without it.
REFLOW_SCRIPT = (
    "document.body.style.display='none';"
    "document.body.offsetHeight;"
    "document.body.style.display='block';"
)


class StyleHarness:
    """
    Resolves the browser, serves the page and keeps the session open.

    Every resource acquired during ``start()`` is released by ``stop()``,
    including when ``start()`` itself fails part way.
    """

    def __init__(self, page: Union[str, Path], config: Optional[HarnessConfig] = None):
        self.page = Path(page)
        self.config = config or HarnessConfig()
        self.environment: Optional[Environment] = None
        self.session: Optional[PageSession] = None
        self.target: Optional[TargetURL] = None
        self._stack: Optional[contextlib.AsyncExitStack] = None

    async def __aenter__(self) -> StyleHarness:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def start(self) -> None:
        if self._stack is not None:
            raise StyleProbeError("Harness already started", method="StyleHarness.start")

        self.environment = resolve_environment(
            driver_override=self.config.driver_path,
            browser_override=self.config.browser_binary,
        )

        stack = contextlib.AsyncExitStack()
        self._stack = stack
        try:
            self.session = await stack.enter_async_context(
                open_session(self.config, self.environment)
            )
            self.target = await stack.enter_async_context(serve(self.page, self.config.server))
            await self._load()
        except BaseException:
            await self.stop()
            raise

    async def _load(self) -> None:
        logger.info(f"Loading {self.target.url}")
        await self.session.navigate(self.target.url)
        await self.session.wait_for_element("body", self.config.page_load_timeout)
        await asyncio.sleep(self.config.render_settle)
        await self.session.evaluate(REFLOW_SCRIPT)

    async def stop(self) -> None:
        """Stop the server, then quit the browser. Safe to call more than once."""
        stack, self._stack = self._stack, None
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as e:
            logger.warning(f"Error during harness teardown: {e}")
        finally:
            self.session = None
            self.target = None

    async def computed_style(self, selector: str, property_name: str) -> str:
        if self.session is None:
            raise StyleProbeError(
                "Harness not started. Call start() or use async context manager.",
                method="computed_style",
            )
        return await self.session.computed_style(selector, property_name)

"""
Browser sessions - The page operations the harness needs, over two backends.

``WebDriverSession`` drives Chrome through Selenium and chromedriver.
``CDPSession`` launches Chrome itself and talks DevTools Protocol directly.
Both expose the same async interface.
"""
from __future__ import annotations

import abc
import asyncio
import json
import logging
import shutil
import subprocess
from typing import Any, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from styleprobe.cdp import CDPClient, get_page_ws_url
from styleprobe.config import HarnessConfig, chrome_arguments
from styleprobe.errors import CDPConnectionError, SessionError, StyleProbeError
from styleprobe.resolver import Environment

logger = logging.getLogger("styleprobe")

CHROME_NAMES = [
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
]


class PageSession(abc.ABC):
    """A single browser session: create, navigate, evaluate, wait, quit."""

    def __init__(self, config: HarnessConfig, environment: Environment):
        self.config = config
        self.environment = environment

    async def __aenter__(self) -> PageSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.quit()

    @abc.abstractmethod
    async def start(self) -> None:
        ...

    @abc.abstractmethod
    async def navigate(self, url: str) -> None:
        ...

    @abc.abstractmethod
    async def evaluate(self, script: str) -> Any:
        """Run ``script`` as a function body; its ``return`` value comes back."""

    @abc.abstractmethod
    async def wait_for_element(self, selector: str, timeout: float) -> None:
        ...

    @abc.abstractmethod
    async def computed_style(self, selector: str, property_name: str) -> str:
        ...

    @abc.abstractmethod
    async def quit(self) -> None:
        """Close the session. Safe to call more than once."""

    def _remove_profile(self) -> None:
        shutil.rmtree(self.config.user_data_dir, ignore_errors=True)


class WebDriverSession(PageSession):
    """Chrome driven through Selenium WebDriver."""

    def __init__(self, config: HarnessConfig, environment: Environment):
        super().__init__(config, environment)
        self._driver: Optional[webdriver.Chrome] = None

    def _build_options(self) -> Options:
        options = Options()
        if self.environment.browser_binary:
            options.binary_location = self.environment.browser_binary
        for argument in chrome_arguments(self.config):
            options.add_argument(argument)
        return options

    def _build_service(self) -> Service:
        # driver output goes to a file or nowhere; selenium's own loggers are left alone
        log_output = self.config.driver_log_path or subprocess.DEVNULL
        return Service(executable_path=self.environment.driver_path, log_output=log_output)

    def _ensure_driver(self) -> webdriver.Chrome:
        if not self._driver:
            raise SessionError(
                "Session not started. Call start() or use async context manager.",
                method="_ensure_driver",
            )
        return self._driver

    async def start(self) -> None:
        options = self._build_options()
        service = self._build_service()
        try:
            self._driver = await asyncio.to_thread(webdriver.Chrome, service=service, options=options)
        except WebDriverException as e:
            self._remove_profile()
            raise SessionError(
                f"Failed to start Chrome via WebDriver: {e.msg or e}",
                method="WebDriverSession.start",
                driver=self.environment.driver_path or "auto",
            ) from e

        try:
            await asyncio.to_thread(self._driver.set_page_load_timeout, self.config.page_load_timeout)
        except WebDriverException as e:
            await self.quit()
            raise SessionError(
                f"Failed to configure WebDriver session: {e.msg or e}",
                method="WebDriverSession.start",
            ) from e
        except BaseException:
            await self.quit()
            raise
        logger.info("WebDriver session started")

    async def navigate(self, url: str) -> None:
        driver = self._ensure_driver()
        try:
            await asyncio.to_thread(driver.get, url)
        except WebDriverException as e:
            raise SessionError(f"Navigation to {url} failed: {e.msg or e}", method="navigate") from e

    async def evaluate(self, script: str) -> Any:
        driver = self._ensure_driver()
        return await asyncio.to_thread(driver.execute_script, script)

    async def wait_for_element(self, selector: str, timeout: float) -> None:
        driver = self._ensure_driver()
        wait = WebDriverWait(driver, timeout)
        try:
            await asyncio.to_thread(
                wait.until, EC.presence_of_element_located((By.CSS_SELECTOR, selector))
            )
        except TimeoutException as e:
            raise SessionError(
                f"Element {selector!r} not present after {timeout}s",
                method="wait_for_element",
            ) from e

    async def computed_style(self, selector: str, property_name: str) -> str:
        driver = self._ensure_driver()

        def read() -> str:
            element = driver.find_element(By.CSS_SELECTOR, selector)
            return element.value_of_css_property(property_name)

        try:
            return await asyncio.to_thread(read)
        except WebDriverException as e:
            raise SessionError(
                f"Could not read {property_name} of {selector!r}: {e.msg or e}",
                method="computed_style",
            ) from e

    async def quit(self) -> None:
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        try:
            await asyncio.to_thread(driver.quit)
        except WebDriverException as e:
            logger.warning(f"Error quitting WebDriver session: {e}")
        finally:
            self._remove_profile()
        logger.info("WebDriver session stopped")


class CDPSession(PageSession):
    """Chrome launched directly and driven over the DevTools Protocol."""

    connect_attempts = 10
    connect_interval = 0.5

    def __init__(self, config: HarnessConfig, environment: Environment):
        super().__init__(config, environment)
        self._client: Optional[CDPClient] = None
        self._chrome_process: Optional[subprocess.Popen] = None

    def _chrome_executable(self) -> str:
        if self.environment.browser_binary:
            return self.environment.browser_binary
        for name in CHROME_NAMES:
            path = shutil.which(name)
            if path:
                return path
        raise CDPConnectionError(
            "Chrome/Chromium not found. Please install Chrome or Chromium.",
            method="CDPSession._chrome_executable",
        )

    def _ensure_connected(self) -> CDPClient:
        if not self._client:
            raise SessionError(
                "Session not started. Call start() or use async context manager.",
                method="_ensure_connected",
            )
        return self._client

    async def start(self) -> None:
        chrome_args = [
            self._chrome_executable(),
            f"--remote-debugging-port={self.config.cdp_port}",
            "--no-first-run",
            "--no-default-browser-check",
            *chrome_arguments(self.config),
            "about:blank",
        ]
        try:
            self._chrome_process = subprocess.Popen(
                chrome_args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self._remove_profile()
            raise CDPConnectionError(
                f"Failed to launch Chrome: {e}",
                method="CDPSession.start",
                binary=chrome_args[0],
            ) from e
        logger.info(f"Launched Chrome (PID: {self._chrome_process.pid})")

        try:
            ws_url = await self._wait_for_page_target()
            self._client = CDPClient(ws_url)
            await self._client.connect()
        except BaseException:
            await self.quit()
            raise
        logger.info("CDP session started")

    async def _wait_for_page_target(self) -> str:
        for attempt in range(1, self.connect_attempts + 1):
            # fail fast if Chrome crashed
            if self._chrome_process.poll() is not None:
                raise CDPConnectionError(
                    f"Chrome process exited unexpectedly with code {self._chrome_process.returncode}",
                    method="CDPSession.start",
                )
            await asyncio.sleep(self.connect_interval)
            try:
                return await get_page_ws_url(port=self.config.cdp_port)
            except CDPConnectionError:
                logger.debug(f"DevTools endpoint not ready (attempt {attempt}/{self.connect_attempts})")
        raise CDPConnectionError(
            f"Chrome failed to start after {self.connect_attempts * self.connect_interval:g} seconds",
            method="CDPSession.start",
        )

    async def navigate(self, url: str) -> None:
        client = self._ensure_connected()
        await client.navigate(url, timeout=self.config.page_load_timeout)

    async def evaluate(self, script: str) -> Any:
        client = self._ensure_connected()
        return await client.evaluate(f"(() => {{ {script} }})()")

    async def wait_for_element(self, selector: str, timeout: float, check_interval: float = 0.1) -> None:
        client = self._ensure_connected()
        expression = f"document.querySelector({json.dumps(selector)}) !== null"
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not await client.evaluate(expression):
            if loop.time() >= deadline:
                raise SessionError(
                    f"Element {selector!r} not present after {timeout}s",
                    method="wait_for_element",
                )
            await asyncio.sleep(check_interval)

    async def computed_style(self, selector: str, property_name: str) -> str:
        value = await self.evaluate(
            f"const el = document.querySelector({json.dumps(selector)});"
            f" return el ? getComputedStyle(el).getPropertyValue({json.dumps(property_name)}) : null;"
        )
        if value is None:
            raise SessionError(f"No element matches {selector!r}", method="computed_style")
        return value

    async def quit(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None

        if self._chrome_process:
            process, self._chrome_process = self._chrome_process, None
            logger.info("Terminating Chrome process...")
            process.terminate()
            try:
                await asyncio.wait_for(asyncio.to_thread(process.wait), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                try:
                    await asyncio.wait_for(asyncio.to_thread(process.wait), timeout=2.0)
                except asyncio.TimeoutError:
                    logger.warning(f"Chrome (PID: {process.pid}) still alive after kill")
            self._remove_profile()
            logger.info("CDP session stopped")


def open_session(config: HarnessConfig, environment: Environment) -> PageSession:
    """Create the session for ``config.backend``. Call ``start()`` or use ``async with``."""
    if config.backend == "cdp":
        return CDPSession(config, environment)
    if config.backend == "webdriver":
        return WebDriverSession(config, environment)
    raise StyleProbeError(f"Unknown backend {config.backend!r}", method="open_session")

"""
CDP Client - Minimal Chrome DevTools Protocol WebSocket client.

Only what the harness needs: attach to the first page target, navigate,
wait for the document to load and evaluate expressions.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
import websockets
from websockets.asyncio.client import connect

from styleprobe.errors import (
    CDPConnectionError,
    CDPProtocolError,
    CDPTimeoutError,
    SessionError,
)

logger = logging.getLogger("styleprobe")

DEFAULT_COMMAND_TIMEOUT = 10.0


async def get_page_ws_url(host="localhost", port=9222, timeout: float = 1.0):
    """Get the WebSocket URL for the first page target."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(f"http://{host}:{port}/json")
            targets = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise CDPConnectionError(
            f"Failed to connect to Chrome at {host}:{port}",
            method="get_page_ws_url"
        ) from e

    for target in targets:
        if target.get("type") == "page":
            ws_url = target["webSocketDebuggerUrl"]
            logger.debug(f"Found page target, ws_url={ws_url}")
            return ws_url
    raise CDPConnectionError(
        f"No page target found at {host}:{port}",
        method="get_page_ws_url"
    )


class CDPClient:
    """Chrome DevTools Protocol WebSocket client bound to one page target."""

    def __init__(self, ws_url: str, debug: bool = False):
        self.ws_url = ws_url
        self.message_id = 0
        self.pending_message: Dict[int, asyncio.Future] = {}
        self.ws = None
        self.debug = debug
        self._listener: Optional[asyncio.Task] = None
        self._loaded = asyncio.Event()

    async def connect(self):
        """Connect to the page target via WebSocket."""
        logger.info(f"Connecting to Chrome via WebSocket: {self.ws_url}")
        try:
            self.ws = await connect(self.ws_url, max_size=None)
        except Exception as e:
            raise CDPConnectionError(
                f"Failed to connect to Chrome WebSocket: {e}",
                method="connect"
            ) from e

        self._listener = asyncio.create_task(self.listen())
        await self.send("Page.enable")
        await self.send("Runtime.enable")

    async def send(self, method: str, params: Optional[Dict[str, Any]] = None,
                   timeout: float = DEFAULT_COMMAND_TIMEOUT) -> Dict[str, Any]:
        """Send a CDP command and wait for its result."""
        if not self.ws:
            raise CDPConnectionError("WebSocket connection not established", method=method)

        self.message_id += 1
        msg_id = self.message_id
        future = asyncio.get_running_loop().create_future()
        self.pending_message[msg_id] = future

        message = {"id": msg_id, "method": method, "params": params or {}}
        if self.debug:
            logger.debug(f"CDP command: {method} params={params}")

        try:
            await self.ws.send(json.dumps(message))
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise CDPTimeoutError(
                f"CDP command {method} timed out after {timeout}s",
                timeout=timeout,
                method=method,
            ) from e
        except SessionError:
            raise
        except Exception as e:
            raise CDPConnectionError(f"CDP command {method} failed: {e}", method=method) from e
        finally:
            self.pending_message.pop(msg_id, None)

    async def listen(self):
        """Listen for CDP responses. Only the page load event is tracked."""
        try:
            async for raw in self.ws:
                data = json.loads(raw)
                if data.get("method") == "Page.loadEventFired":
                    self._loaded.set()
                    continue
                future = self.pending_message.get(data.get("id"))
                if future is None or future.done():
                    continue
                if "error" in data:
                    error_data = data["error"]
                    future.set_exception(CDPProtocolError(
                        f"CDP Error: {error_data.get('message', 'Unknown CDP error')}",
                        code=error_data.get("code"),
                        cdp_error=error_data,
                    ))
                else:
                    future.set_result(data.get("result", {}))
        except websockets.exceptions.ConnectionClosed:
            logger.debug("WebSocket connection closed")
        finally:
            for future in self.pending_message.values():
                if not future.done():
                    future.set_exception(CDPConnectionError(
                        "WebSocket connection closed",
                        method="listen"
                    ))

    async def evaluate(self, expression: str, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> Any:
        """Evaluate a JavaScript expression and return its value."""
        result = await self.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
            timeout=timeout,
        )
        if "exceptionDetails" in result:
            details = result["exceptionDetails"]
            description = details.get("exception", {}).get("description") or details.get("text")
            raise CDPProtocolError(
                f"Script raised: {description}",
                cdp_error=details,
                method="Runtime.evaluate",
            )
        return result.get("result", {}).get("value")

    async def wait_for_load(self, timeout: float = 15.0):
        """Wait for the ``Page.loadEventFired`` following the last navigation."""
        try:
            await asyncio.wait_for(self._loaded.wait(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise CDPTimeoutError(
                f"Page load timed out after {timeout} seconds",
                timeout=timeout,
                method="wait_for_load",
            ) from e
        logger.debug("Page load event received")

    async def navigate(self, url: str, *, wait_for_load: bool = True, timeout: float = 15.0) -> None:
        """Navigate to a URL and optionally wait for the page to load."""
        self._loaded.clear()
        result = await self.send("Page.navigate", {"url": url}, timeout=timeout)
        if result.get("errorText"):
            raise CDPProtocolError(
                f"Navigation to {url} failed: {result['errorText']}",
                method="Page.navigate",
            )
        if wait_for_load:
            await self.wait_for_load(timeout=timeout)

    async def close(self) -> None:
        """Close the WebSocket connection gracefully."""
        if self.ws:
            try:
                await self.ws.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
            finally:
                self.ws = None
        if self._listener:
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None

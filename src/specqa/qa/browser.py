"""Browser integration used by the TestRunner.

This module provides:
1. BrowserIntegration - The narrow async interface the runner awaits
2. MCPPlaywrightBrowser - Implementation over the Playwright MCP server

The runner never talks to Playwright directly; tests substitute a fake
BrowserIntegration at this boundary.

Playwright MCP tools used:
- browser_navigate, browser_click, browser_type
- browser_take_screenshot, browser_snapshot
- browser_wait_for, browser_evaluate, browser_close
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import time
from typing import Any, Protocol

from specqa.exceptions import BrowserActionError
from specqa.mcp import MCPClient, MCPToolResult

logger = logging.getLogger(__name__)

# Poll interval for selector waits
WAIT_POLL_INTERVAL_S = 0.25

RESULT_HEADING = "### Result"


def evaluation_value(result: Any) -> Any:
    """Decode the value returned by browser_evaluate.

    Playwright MCP answers with markdown sections where the value is the JSON
    text under "### Result"; older servers answer with the bare JSON text.
    Text that is not JSON is returned unchanged.
    """
    if not isinstance(result, str):
        return result
    text = result.strip()
    if RESULT_HEADING in text:
        section = text.split(RESULT_HEADING, 1)[1]
        text = section.split("\n###", 1)[0].strip()
    try:
        return json.loads(text)
    except ValueError:
        return text


# =============================================================================
# Protocol
# =============================================================================


class BrowserIntegration(Protocol):
    """Async browser automation interface.

    Action methods raise BrowserActionError on failure. element_exists never
    raises; it answers False instead.
    """

    async def navigate(self, url: str, timeout_ms: int | None = None) -> None:
        """Load a URL and wait for network quiescence."""
        ...

    async def click(self, selector: str, options: dict[str, Any] | None = None) -> None:
        """Click the element matching selector."""
        ...

    async def type(
        self,
        selector: str,
        text: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        """Type text into the element matching selector."""
        ...

    async def screenshot(
        self,
        path: str,
        options: dict[str, Any] | None = None,
    ) -> bytes | None:
        """Capture the page. Returns image bytes, or None if written to path directly."""
        ...

    async def snapshot(self) -> Any:
        """Return an accessibility snapshot of the page."""
        ...

    async def wait_for(
        self,
        selector: str | None = None,
        time_ms: int | None = None,
        timeout_ms: int = 30_000,
    ) -> None:
        """Wait for a selector to appear, or for a fixed time."""
        ...

    async def element_exists(self, selector: str) -> bool:
        """Side-effect-free existence check."""
        ...

    async def evaluate(self, expression: str, selector: str | None = None) -> Any:
        """Evaluate a JavaScript function in the page."""
        ...

    async def close(self) -> None:
        """Release the browser session."""
        ...


# =============================================================================
# Playwright MCP implementation
# =============================================================================


class MCPPlaywrightBrowser:
    """BrowserIntegration backed by the Playwright MCP server.

    Attributes:
        client: MCPClient connected to the Playwright MCP server

    Example:
        client = MCPClient(server_url="http://localhost:8931/mcp")
        browser = MCPPlaywrightBrowser(client)
        await browser.navigate("http://localhost:3001")
    """

    def __init__(self, client: MCPClient) -> None:
        self.client = client

    async def _call(self, tool_name: str, params: dict[str, Any]) -> MCPToolResult:
        result = await self.client.call_tool(tool_name, params)
        if not result.success:
            raise BrowserActionError(
                f"{tool_name} failed: {result.error or 'unknown error'}",
                action=tool_name,
            )
        return result

    async def navigate(self, url: str, timeout_ms: int | None = None) -> None:
        logger.debug("Navigating to %s", url)
        call = self._call("browser_navigate", {"url": url})
        if timeout_ms is None:
            await call
            return
        try:
            await asyncio.wait_for(call, timeout=timeout_ms / 1000)
        except TimeoutError as e:
            raise BrowserActionError(
                f"Navigation to {url} timed out after {timeout_ms}ms",
                action="browser_navigate",
            ) from e

    async def click(self, selector: str, options: dict[str, Any] | None = None) -> None:
        params: dict[str, Any] = {"element": selector, "ref": selector}
        if options:
            params.update(options)
        await self._call("browser_click", params)

    async def type(
        self,
        selector: str,
        text: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        params: dict[str, Any] = {"element": selector, "ref": selector, "text": text}
        if options:
            params.update(options)
        await self._call("browser_type", params)

    async def screenshot(
        self,
        path: str,
        options: dict[str, Any] | None = None,
    ) -> bytes | None:
        options = options or {}
        result = await self._call(
            "browser_take_screenshot",
            {
                "filename": path,
                "fullPage": bool(options.get("full_page", False)),
                "type": options.get("format", "png"),
            },
        )
        if not result.images:
            return None
        try:
            return base64.b64decode(result.images[0])
        except (binascii.Error, ValueError) as e:
            raise BrowserActionError(
                f"Invalid screenshot payload: {e}",
                action="browser_take_screenshot",
            ) from e

    async def snapshot(self) -> Any:
        return (await self._call("browser_snapshot", {})).result

    async def wait_for(
        self,
        selector: str | None = None,
        time_ms: int | None = None,
        timeout_ms: int = 30_000,
    ) -> None:
        if selector is None:
            await self._call("browser_wait_for", {"time": (time_ms or 0) / 1000})
            return

        deadline = time.monotonic() + timeout_ms / 1000
        while not await self.element_exists(selector):
            if time.monotonic() >= deadline:
                raise BrowserActionError(
                    f"Timed out after {timeout_ms}ms waiting for {selector}",
                    action="browser_wait_for",
                )
            await asyncio.sleep(WAIT_POLL_INTERVAL_S)

    async def element_exists(self, selector: str) -> bool:
        expression = f"() => document.querySelector({json.dumps(selector)}) !== null"
        try:
            result = await self.evaluate(expression)
        except BrowserActionError as e:
            logger.debug("Existence check for %s failed: %s", selector, e)
            return False
        return result is True

    async def evaluate(self, expression: str, selector: str | None = None) -> Any:
        params: dict[str, Any] = {"function": expression}
        if selector:
            params["element"] = selector
            params["ref"] = selector
        return evaluation_value((await self._call("browser_evaluate", params)).result)

    async def close(self) -> None:
        await self._call("browser_close", {})

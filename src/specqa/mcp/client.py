"""MCP client for the Playwright MCP server.

This module provides a small JSON-RPC 2.0 client for Model Context Protocol
servers. The QA runner only needs tool execution ('tools/call') and tool
discovery ('tools/list'); both travel over HTTP.

Example usage:
    async with MCPClient(server_url="http://localhost:8931/mcp") as client:
        tools = await client.discover_tools()
        result = await client.call_tool("browser_snapshot", params={})

References:
    - MCP Specification: https://modelcontextprotocol.io/specification/2025-06-18
    - JSON-RPC 2.0: https://www.jsonrpc.org/specification
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Data Models
# -----------------------------------------------------------------------------


class MCPTool(BaseModel):
    """A tool exposed by an MCP server.

    Attributes:
        name: Unique identifier for the tool
        description: Human-readable description of what the tool does
        input_schema: JSON Schema defining the tool's input parameters
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)


class MCPToolResult(BaseModel):
    """Result of a tool execution.

    Attributes:
        success: Whether the tool executed successfully
        result: Concatenated text content, structured content, or raw payload
        images: Base64 payloads of any image content items
        error: Error message (if unsuccessful)
    """

    success: bool
    result: Any = None
    images: list[str] = Field(default_factory=list)
    error: str | None = None


class JSONRPCError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


# -----------------------------------------------------------------------------
# MCP Client
# -----------------------------------------------------------------------------


class MCPClient:
    """Client for an MCP server speaking JSON-RPC 2.0 over HTTP.

    Transport failures and JSON-RPC errors are folded into an unsuccessful
    MCPToolResult; callers decide whether that is fatal.

    Attributes:
        server_url: The URL of the MCP server endpoint
        server_name: A friendly name used in log messages
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        server_url: str,
        server_name: str = "playwright",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the MCP client.

        Args:
            server_url: The URL of the MCP server endpoint
            server_name: A friendly name for this server connection
            timeout: Request timeout in seconds (default: 60.0)
            transport: Optional httpx transport (used by tests)
        """
        self.server_url = server_url
        self.server_name = server_name
        self.timeout = timeout
        self._transport = transport
        self._request_id = 0
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> MCPClient:
        self._ensure_http_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    def _ensure_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _build_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a JSON-RPC 2.0 request object."""
        request: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "id": self._next_request_id(),
        }
        if params is not None:
            request["params"] = params
        return request

    async def _send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a JSON-RPC request to the MCP server.

        Raises:
            httpx.HTTPError: If the HTTP request fails
            ValueError: If the body is not a JSON-RPC message
        """
        http_client = self._ensure_http_client()
        request = self._build_request(method, params)

        logger.debug(
            "Sending MCP request to %s: method=%s, id=%s",
            self.server_url,
            method,
            request["id"],
        )

        response = await http_client.post(
            self.server_url,
            json=request,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json, text/event-stream",
            },
        )
        response.raise_for_status()

        result: Any
        if response.headers.get("content-type", "").startswith("text/event-stream"):
            result = self._parse_event_stream(response.text, request["id"])
        else:
            result = response.json()
        if not isinstance(result, dict):
            raise ValueError(f"Unexpected MCP response: {result!r}")
        logger.debug("Received MCP response: id=%s", result.get("id"))
        return result

    @staticmethod
    def _parse_event_stream(body: str, request_id: int) -> dict[str, Any]:
        """Return the JSON-RPC message answering request_id from an SSE body.

        Each event's data lines are joined; events for other ids
        (notifications, progress) are skipped.

        Raises:
            ValueError: If no event carries the response
        """
        events: list[list[str]] = [[]]
        for line in body.splitlines():
            if not line.strip():
                events.append([])
            elif line.startswith("data:"):
                events[-1].append(line[5:].lstrip())

        for data_lines in events:
            if not data_lines:
                continue
            message = json.loads("\n".join(data_lines))
            if isinstance(message, dict) and message.get("id") == request_id:
                return message
        raise ValueError(f"No response for request {request_id} in event stream")

    async def discover_tools(self) -> list[MCPTool]:
        """Discover available tools from the MCP server.

        Returns:
            List of available tools, empty on any transport or RPC error
        """
        try:
            response = await self._send_request("tools/list")
        except httpx.HTTPError as e:
            logger.error("HTTP error during tool discovery: %s", e)
            return []
        except ValueError as e:
            logger.error("Malformed response during tool discovery: %s", e)
            return []

        if "error" in response:
            error = JSONRPCError(**response["error"])
            logger.error(
                "Failed to discover tools: %s (code: %d)",
                error.message,
                error.code,
            )
            return []

        tools = [
            MCPTool(
                name=tool_data.get("name", ""),
                description=tool_data.get("description", ""),
                input_schema=tool_data.get("inputSchema", {}),
            )
            for tool_data in response.get("result", {}).get("tools", [])
        ]
        logger.info("Discovered %d tools from %s", len(tools), self.server_name)
        return tools

    async def call_tool(
        self,
        tool_name: str,
        params: dict[str, Any],
    ) -> MCPToolResult:
        """Execute a tool on the MCP server.

        Args:
            tool_name: The name of the tool to execute
            params: Arguments to pass to the tool

        Returns:
            MCPToolResult containing the result or error
        """
        try:
            response = await self._send_request(
                "tools/call",
                params={"name": tool_name, "arguments": params},
            )
        except httpx.ConnectError as e:
            error_msg = f"Connection error: {e}"
            logger.error("Failed to call tool %s: %s", tool_name, error_msg)
            return MCPToolResult(success=False, error=error_msg)
        except httpx.HTTPError as e:
            error_msg = f"HTTP error: {e}"
            logger.error("Failed to call tool %s: %s", tool_name, error_msg)
            return MCPToolResult(success=False, error=error_msg)
        except ValueError as e:
            error_msg = f"Malformed response: {e}"
            logger.error("Failed to call tool %s: %s", tool_name, error_msg)
            return MCPToolResult(success=False, error=error_msg)

        if "error" in response:
            error = JSONRPCError(**response["error"])
            logger.warning(
                "Tool call failed: %s - %s (code: %d)",
                tool_name,
                error.message,
                error.code,
            )
            return MCPToolResult(success=False, error=error.message)

        result = response.get("result", {})
        texts: list[str] = []
        images: list[str] = []
        others: list[Any] = []
        for item in result.get("content", []):
            item_type = item.get("type")
            if item_type == "text":
                texts.append(item.get("text", ""))
            elif item_type == "image":
                images.append(item.get("data", ""))
            else:
                others.append(item)

        extracted: Any = "\n".join(texts) if texts else None
        if "structuredContent" in result:
            structured = result["structuredContent"]
            extracted = (
                structured
                if extracted is None
                else {"content": extracted, "structured": structured}
            )
        if extracted is None and others:
            extracted = others[0] if len(others) == 1 else others

        # Tool-level failures are reported in-band with isError
        if result.get("isError"):
            error_text = extracted if isinstance(extracted, str) else f"{tool_name} failed"
            logger.warning("Tool %s reported an error: %s", tool_name, error_text)
            return MCPToolResult(success=False, result=extracted, error=error_text)

        logger.debug("Tool %s executed successfully on %s", tool_name, self.server_name)
        return MCPToolResult(
            success=True,
            result=extracted if extracted is not None else result,
            images=images,
        )

    async def close(self) -> None:
        """Close the HTTP client connection. Safe to call multiple times."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug("Closed MCP client connection to %s", self.server_name)

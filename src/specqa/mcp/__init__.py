"""MCP (Model Context Protocol) client used to drive Playwright MCP.

Exports:
    - MCPClient: JSON-RPC 2.0 client for tool discovery and execution
    - MCPTool: Tool model
    - MCPToolResult: Tool execution result
"""

from specqa.mcp.client import MCPClient, MCPTool, MCPToolResult

__all__ = [
    "MCPClient",
    "MCPTool",
    "MCPToolResult",
]

"""Routing of MCP tool calls to locally registered tools."""

from __future__ import annotations

import json

from .mcp_errors import ToolNotFoundError
from .mcp_protocol import TextContent, ToolCall, ToolResult
from .tool import Tool, ToolError


class MCPToolRouter:
    """Dispatches tool calls to tools registered by name."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register_tool(self, name: str, tool: Tool) -> None:
        """Register ``tool`` under ``name``, replacing any tool already there."""
        self._tools[name] = tool

    async def handle_call(self, call: ToolCall) -> ToolResult:
        """Invoke the named tool and wrap its output or failure in a ToolResult.

        Raises ToolNotFoundError when no tool has the requested name.
        """
        tool = self._tools.get(call.tool_name)
        if tool is None:
            raise ToolNotFoundError(call.tool_name)
        try:
            output = await tool.invoke(call.input)
        except ToolError as err:
            return ToolResult(
                tool_name=call.tool_name,
                is_error=True,
                content=[TextContent(f"Error: {err}")],
                output=None,
                request_id=call.request_id,
            )
        try:
            text = json.dumps(output, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError):
            text = "<serialization error>"
        return ToolResult(
            tool_name=call.tool_name,
            is_error=False,
            content=[TextContent(text)],
            output=output,
            request_id=call.request_id,
        )
"""Errors raised while talking to an MCP server or routing MCP tool calls."""

from __future__ import annotations

from .tool import ToolError


class McpError(Exception):
    """Base class for MCP failures; ``message`` holds the detail."""

    prefix = "MCP error"

    def __init__(self, message: str) -> None:
        super().__init__(f"{self.prefix}: {message}")
        self.message = message

    def to_tool_error(self) -> ToolError:
        """Return a non-retryable ToolError carrying this error's message."""
        return ToolError(
            self.message,
            component="MCP",
            operation="mcp_error",
            retryable=False,
        )


class TransportError(McpError):
    """The connection to the server failed or could not be used."""

    prefix = "Transport error"


class ProtocolError(McpError):
    """The server answered with an error or a malformed response."""

    prefix = "Protocol error"


class ToolNotFoundError(McpError):
    """No tool is known under the requested name."""

    prefix = "Tool not found"


class InvocationFailedError(McpError):
    """The tool was found but its invocation failed."""

    prefix = "Tool invocation failed"


class SerializationError(McpError):
    """A message could not be encoded or decoded."""

    prefix = "Serialization error"
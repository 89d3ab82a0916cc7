"""Messages exchanged with MCP servers: tool specs, calls, results and error envelopes."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _required(data: Mapping[str, Any], key: str) -> Any:
    if key not in data:
        raise ValueError(f"missing field {key!r}")
    return data[key]


def _string(data: Mapping[str, Any], key: str) -> str:
    value = _required(data, key)
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _optional_string(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string or null")
    return value


@dataclass
class McpToolSpec:
    """A tool as described by an MCP server."""

    name: str
    description: str
    input_schema: Any
    output_schema: Any
    examples: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON form."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(self.input_schema),
            "outputSchema": copy.deepcopy(self.output_schema),
            "examples": copy.deepcopy(self.examples),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "McpToolSpec":
        """Parse the camelCase JSON form; ``examples`` defaults to empty."""
        data = _mapping(data, "tool spec")
        examples = data.get("examples", [])
        if not isinstance(examples, list):
            raise ValueError("field 'examples' must be a list")
        return cls(
            name=_string(data, "name"),
            description=_string(data, "description"),
            input_schema=copy.deepcopy(_required(data, "inputSchema")),
            output_schema=copy.deepcopy(_required(data, "outputSchema")),
            examples=copy.deepcopy(examples),
        )


@dataclass
class ToolCall:
    """A request to invoke a tool."""

    tool_name: str
    input: Any
    request_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON form."""
        return {
            "toolName": self.tool_name,
            "input": copy.deepcopy(self.input),
            "requestId": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolCall":
        """Parse the camelCase JSON form; ``requestId`` is optional."""
        data = _mapping(data, "tool call")
        return cls(
            tool_name=_string(data, "toolName"),
            input=copy.deepcopy(_required(data, "input")),
            request_id=_optional_string(data, "requestId"),
        )


@dataclass
class TextContent:
    """A text content block of a tool result."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        """Return the tagged JSON form ``{"type": "text", "text": ...}``."""
        return {"type": "text", "text": self.text}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TextContent":
        """Parse a content block; only the ``text`` type is known."""
        data = _mapping(data, "content block")
        kind = data.get("type")
        if kind != "text":
            raise ValueError(f"unknown content block type: {kind!r}")
        return cls(_string(data, "text"))


@dataclass
class ToolResult:
    """The outcome of a tool invocation."""

    tool_name: str
    is_error: Optional[bool] = None
    content: Optional[list[TextContent]] = None
    output: Any = None
    request_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON form; absent fields are null."""
        return {
            "toolName": self.tool_name,
            "isError": self.is_error,
            "content": None if self.content is None else [b.to_dict() for b in self.content],
            "output": copy.deepcopy(self.output),
            "requestId": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolResult":
        """Parse the camelCase JSON form; every field but ``toolName`` is optional."""
        data = _mapping(data, "tool result")
        is_error = data.get("isError")
        if is_error is not None and not isinstance(is_error, bool):
            raise ValueError("field 'isError' must be a boolean or null")
        raw_content = data.get("content")
        if raw_content is None:
            content = None
        elif isinstance(raw_content, list):
            content = [TextContent.from_dict(block) for block in raw_content]
        else:
            raise ValueError("field 'content' must be a list or null")
        return cls(
            tool_name=_string(data, "toolName"),
            is_error=is_error,
            content=content,
            output=copy.deepcopy(data.get("output")),
            request_id=_optional_string(data, "requestId"),
        )


@dataclass
class ErrorEnvelope:
    """An error reported by an MCP server."""

    code: str
    message: str
    details: Any = None
    request_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON form."""
        return {
            "code": self.code,
            "message": self.message,
            "details": copy.deepcopy(self.details),
            "requestId": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ErrorEnvelope":
        """Parse the camelCase JSON form."""
        data = _mapping(data, "error envelope")
        return cls(
            code=_string(data, "code"),
            message=_string(data, "message"),
            details=copy.deepcopy(data.get("details")),
            request_id=_optional_string(data, "requestId"),
        )
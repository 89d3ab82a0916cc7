"""Core tool abstractions: capabilities, specifications, errors and the tool base class."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToolCapability(Enum):
    """Properties a tool advertises about how it may be used."""

    STATELESS = "stateless"
    THREAD_SAFE = "thread_safe"
    CPU_INTENSIVE = "cpu_intensive"
    NETWORK_ACCESS = "network_access"


@dataclass
class ToolSpec:
    """Name, description, schemas and examples describing a tool."""

    name: str
    description: str
    input_schema: Any = field(default_factory=dict)
    output_schema: Any = field(default_factory=dict)
    examples: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible copy of the specification."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": copy.deepcopy(self.input_schema),
            "output_schema": copy.deepcopy(self.output_schema),
            "examples": copy.deepcopy(self.examples),
        }


class ToolConfigError(ValueError):
    """A tool configuration field is missing or holds an invalid value."""

    def __init__(self, field_name: str, message: str) -> None:
        super().__init__(f"invalid value for {field_name}: {message}")
        self.field_name = field_name
        self.message = message


class ToolError(Exception):
    """A tool failed while being initialised, invoked or shut down."""

    def __init__(
        self,
        message: str,
        *,
        component: str = "tool",
        operation: str = "invoke",
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.component = component
        self.operation = operation
        self.retryable = retryable


class Tool(ABC):
    """Base class for tools that can be invoked asynchronously."""

    async def initialize(self) -> None:
        """Prepare the tool for use. Tools without setup keep this default."""

    async def shutdown(self) -> None:
        """Release resources held by the tool. Tools without resources keep this default."""

    def capabilities(self) -> list[ToolCapability]:
        """Return the capabilities the tool advertises."""
        return []

    @abstractmethod
    async def invoke(self, input: Any) -> Any:
        """Run the tool on ``input`` and return its output."""

    @abstractmethod
    def spec(self) -> ToolSpec:
        """Return the tool's specification."""
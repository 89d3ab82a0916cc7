"""Tools, a versioned tool registry, JSON Schema validation and MCP client and routing."""

__version__ = "0.1.0"
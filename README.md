# cogni

Building blocks for giving language-model agents tools to call:

- `cogni.tool`: the `Tool` base class, `ToolCapability`, `ToolSpec`
  (name, description, JSON schemas, examples), `ToolConfigError` and `ToolError`;
- `cogni.math`: `MathTool`, which evaluates arithmetic expressions, matrix
  operations and statistics;
- `cogni.search`: `SearchTool`, a web search over a SerpAPI-style JSON
  endpoint with caching and rate limiting;
- `cogni.validation`: `ToolValidator` and `validate_value` for checking specs,
  inputs and outputs against JSON Schema;
- `cogni.registry` and `cogni.registry_types`: `ToolRegistry`, a registry of
  tools by name and semantic version, with dependency checks, cycle detection
  and an invocation history;
- Model Context Protocol support: message types in `cogni.mcp_protocol`
  (`McpToolSpec`, `ToolCall`, `TextContent`, `ToolResult`, `ErrorEnvelope`),
  errors in `cogni.mcp_errors`, the in-process `MCPToolRouter` in
  `cogni.mcp_routing`, and `MCPClient` in `cogni.mcp_client`, which starts an
  MCP server as a child process and talks JSON-RPC to it over stdin/stdout.

## Installing

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

Python 3.10 or later is required.

## Writing a tool

Subclass `Tool` and implement `invoke` (async) and `spec`. `initialize`,
`shutdown` (both async) and `capabilities` have do-nothing defaults.

```python
from cogni.tool import Tool, ToolCapability, ToolSpec

class Echo(Tool):
    def capabilities(self):
        return [ToolCapability.STATELESS]

    async def invoke(self, input):
        return input

    def spec(self):
        return ToolSpec(name="echo", description="Returns its input")
```

Tools report failure by raising `ToolError`, which carries `message`,
`component`, `operation` and `retryable`.

## Validating against JSON Schema

```python
from cogni.validation import InputError, ToolValidator

validator = ToolValidator.default_schemas()

validator.validate_spec({
    "name": "test-tool",
    "description": "A test tool",
    "input_schema": {"type": "string"},
    "output_schema": {"type": "string"},
    "examples": [],
})

try:
    validator.validate_input(123, {"type": "string"})
except InputError as exc:
    print("rejected:", exc)
```

`validate_value(value, schema)` raises `SchemaError` for a bad schema and
`JsonError` listing every violation with its JSON pointer. The validator
methods wrap these as `SpecificationError`, `InputError` or `OutputError`; all
derive from `ValidationError`. With no schema passed, `validate_input` and
`validate_output` use the validator's own schemas, which accept anything by
default.

## The math tool

```python
import json
from cogni.math import MathConfig, MathTool

tool = MathTool.try_new(MathConfig())   # raises ToolConfigError on a bad config

print(await tool.invoke("2 + 3 * 4"))   # '{"type": "scalar", "result": 14.0}'
print(json.loads(await tool.invoke(
    {"type": "matrix", "params": {"operation": "determinant",
                                  "matrices": [[[1, 2], [3, 4]]]}}
)))
```

`invoke` takes a plain expression, or a request as a mapping or JSON text of
the form `{"type": ..., "params": {...}}`, and returns a JSON string
`{"type": "scalar" | "vector" | "matrix" | "complex", "result": ...}`.

- `arithmetic`: `+ - * / % ^ **`, the constants `pi` and `e`, and `sqrt`,
  `abs`, `sin`, `cos`, `tan`, `asin`, `acos`, `atan`, `exp`, `ln`, `log`
  (base 10), `floor`, `ceil`. Results with an imaginary part, such as
  `sqrt(-1)`, come back as `complex`.
- `matrix`: `multiply` (two or more matrices, left to right), `inverse`,
  `determinant`, `eigenvalues`. Eigenvalues are a vector when all are real,
  otherwise a matrix of `[real, imag]` rows.
- `statistics`: `mean`, `std_dev` (sample standard deviation), `z_score`,
  `normal_fit` (the vector `[mean, std_dev]`).

`MathConfig` rejects a `max_matrix_size` or `max_iterations` of zero and a
`precision` outside (0, 10]. Matrices larger than `max_matrix_size`,
singular inverses and eigenvalue iterations that do not settle within
`max_iterations` raise `ToolError`. `parse_math_input`, `math_input_to_dict`
and `MathOutput.to_dict` / `from_dict` convert requests and results to and
from their JSON forms.

## The tool registry

```python
from cogni.registry import ToolRegistry
from cogni.registry_types import ToolDependency

registry = ToolRegistry(max_invocations=100)
await registry.register("dep-a", "1.0.0", Echo(), [])
await registry.register(
    "dep-b", "1.0.0", Echo(),
    [ToolDependency(name="dep-a", version_req="^1.0.0")],
)

print(registry.get_metadata("dep-a", None).version)   # latest version
result = await registry.invoke("dep-b", "1.0.0", "hello")
print(result, len(await registry.get_invocations()))
```

Tool names may hold ASCII letters, digits, `-` and `_`; versions are semantic
versions, and requirements use `^`, `~`, `=`, `>`, `>=`, `<`, `<=`, wildcards
and comma-separated lists (see `version_matches`). Registering initialises the
tool; unregistering shuts it down. Failures raise `InvalidToolName`,
`InvalidToolVersion`, `ToolNotFound`, `ToolAlreadyExists`,
`UnresolvedDependencies`, `CircularDependencies`, `InternalRegistryError`
(for example when another tool depends on the one being unregistered) or
`ToolOperationFailed` (a tool raised `ToolError`); all derive from
`RegistryError`. Each invocation is recorded as a `ToolInvocation`, and only
the latest `max_invocations` are kept.

## Routing MCP calls in process

```python
from cogni.mcp_protocol import ToolCall
from cogni.mcp_routing import MCPToolRouter

router = MCPToolRouter()
router.register_tool("echo", Echo())

result = await router.handle_call(ToolCall(tool_name="echo", input={"x": 1}, request_id="r1"))
print(result.to_dict())
```

A tool that raises `ToolError` produces a `ToolResult` with `is_error` set and
an `Error: ...` text block; an unknown tool name raises `ToolNotFoundError`.

## Talking to an MCP server

```python
from cogni.mcp_client import MCPClient, MCPClientConfig

config = MCPClientConfig(server_path="./my-mcp-server", max_retries=3)
async with await MCPClient.connect(config) as client:
    for spec in await client.list_tools():
        print(spec.name, "-", spec.description)
    result = await client.call_tool("echo", {"text": "hi"}, None)
```

`MCPClientConfig` also takes `args`, `env` (added to the inherited
environment), `startup_timeout_secs`, `max_concurrent_requests`,
`retry_backoff_secs`, and `rate_limit_rps` with `rate_limit_burst` (off when
`rate_limit_rps` is `None`; each tool name, and `"mcp"` for listing, gets its
own bucket). Failed writes, reads, undecodable replies and JSON-RPC errors are
retried up to `max_retries` times, pausing `retry_backoff_secs` times the
attempt number; the last failure is raised as a `TransportError`,
`SerializationError` or `ProtocolError`. Going over the rate limit raises
`TransportError` at once. `close()` closes the server's stdin and kills it if
it has not exited within two seconds. Every MCP error can be turned into a
`ToolError` with `to_tool_error()`.

## Web search

```python
from cogni.search import SearchConfig, SearchInput, SearchTool

tool = SearchTool.try_new(SearchConfig(api_key="placeholder"))
await tool.initialize()
output = await tool.invoke(SearchInput(query="python packaging", max_results=5))
for hit in output.results:
    print(hit.title, hit.url)
await tool.shutdown()
```

`invoke` also accepts a mapping with `query` and `max_results`. Answers are
cached per query and result count for `cache_duration` seconds. Requests
beyond `rate_limit` per second are not queued: they fail with a retryable
`ToolError`. Hits come from the response's `organic_results`, and hits without
a title or URL are dropped (`parse_search_response`).

## What is not included

The package provides tools, their registry and MCP plumbing only. It has no
language-model clients, no agents or planning strategies, no prompt
templates, chains or conversation memory, no MCP server of its own and no
command-line program.
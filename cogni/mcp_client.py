"""A client that starts an MCP server process and talks JSON-RPC to it over stdio."""

from __future__ import annotations

import asyncio
import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from .mcp_errors import McpError, ProtocolError, SerializationError, TransportError
from .mcp_protocol import McpToolSpec, ToolResult

_LINE_LIMIT = 16 * 1024 * 1024
_SHUTDOWN_GRACE_SECS = 2.0

EnvSpec = Union[Mapping[str, str], Iterable[tuple[str, str]]]


@dataclass
class MCPClientConfig:
    """How to start the server and how to pace, limit and retry requests.

    ``env`` is added to the inherited environment. ``rate_limit_rps`` of
    ``None`` disables rate limiting; otherwise each rate-limit group (the
    tool name, or ``"mcp"`` for listing) gets its own token bucket holding
    at most ``rate_limit_burst`` tokens.
    """

    server_path: str
    args: list[str] = field(default_factory=list)
    env: Optional[EnvSpec] = None
    startup_timeout_secs: float = 30.0
    max_concurrent_requests: int = 10
    max_retries: int = 3
    retry_backoff_secs: float = 0.1
    rate_limit_rps: Optional[float] = None
    rate_limit_burst: int = 1

    def __post_init__(self) -> None:
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.retry_backoff_secs < 0:
            raise ValueError("retry_backoff_secs must not be negative")
        if self.startup_timeout_secs <= 0:
            raise ValueError("startup_timeout_secs must be greater than 0")
        if self.rate_limit_rps is not None and self.rate_limit_rps <= 0:
            raise ValueError("rate_limit_rps must be greater than 0")
        if self.rate_limit_burst < 1:
            raise ValueError("rate_limit_burst must be at least 1")


class _GroupRateLimiter:
    """Token buckets keyed by group name."""

    def __init__(self, rate: Optional[float], burst: int) -> None:
        self.rate = rate
        self.capacity = float(burst)
        self._buckets: dict[str, tuple[float, float]] = {}

    def try_acquire(self, group: str) -> bool:
        if self.rate is None:
            return True
        now = time.monotonic()
        tokens, updated = self._buckets.get(group, (self.capacity, now))
        tokens = min(self.capacity, tokens + (now - updated) * self.rate)
        if tokens < 1.0:
            self._buckets[group] = (tokens, now)
            return False
        self._buckets[group] = (tokens - 1.0, now)
        return True


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class MCPClient:
    """A connection to one MCP server process."""

    def __init__(self, process: asyncio.subprocess.Process, config: MCPClientConfig) -> None:
        self._process: Optional[asyncio.subprocess.Process] = process
        self._next_id = 1
        self._semaphore = asyncio.Semaphore(config.max_concurrent_requests)
        self._io_lock = asyncio.Lock()
        self._limiter = _GroupRateLimiter(config.rate_limit_rps, config.rate_limit_burst)
        self.max_retries = config.max_retries
        self.retry_backoff_secs = config.retry_backoff_secs

    @classmethod
    async def connect(cls, config: MCPClientConfig) -> "MCPClient":
        """Start the server process with piped stdin and stdout."""
        env = None
        if config.env is not None:
            env = {**os.environ, **dict(config.env)}
        try:
            process = await asyncio.wait_for(
                asyncio.create_subprocess_exec(
                    config.server_path,
                    *config.args,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    env=env,
                    limit=_LINE_LIMIT,
                ),
                timeout=config.startup_timeout_secs,
            )
        except (OSError, ValueError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Failed to spawn MCP server: {exc}") from exc
        if process.stdin is None:
            raise TransportError("Failed to open stdin")
        if process.stdout is None:
            raise TransportError("Failed to open stdout")
        return cls(process, config)

    async def __aenter__(self) -> "MCPClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def list_tools(self) -> list[McpToolSpec]:
        """Ask the server for its tools (method ``listTools``)."""
        result = await self._request("mcp", "listTools", None)
        if not isinstance(result, list):
            raise SerializationError("expected a list of tool specifications")
        try:
            return [McpToolSpec.from_dict(item) for item in result]
        except ValueError as exc:
            raise SerializationError(str(exc)) from exc

    async def call_tool(
        self, tool_name: str, input: Any, request_id: Optional[str] = None
    ) -> ToolResult:
        """Invoke a tool on the server (method ``callTool``)."""
        params = {"toolName": tool_name, "input": input, "requestId": request_id}
        result = await self._request(tool_name, "callTool", params)
        try:
            return ToolResult.from_dict(result)
        except ValueError as exc:
            raise SerializationError(str(exc)) from exc

    async def close(self) -> None:
        """Close the server's stdin and wait for it to exit, killing it if it lingers."""
        process, self._process = self._process, None
        if process is None:
            return
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        try:
            await asyncio.wait_for(process.wait(), timeout=_SHUTDOWN_GRACE_SECS)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    def _require_open(self) -> asyncio.subprocess.Process:
        if self._process is None:
            raise TransportError("client is closed")
        return self._process

    async def _request(self, group: str, method: str, params: Optional[dict[str, Any]]) -> Any:
        """Send one request, retrying failures with linear backoff; return its ``result``."""
        async with self._semaphore:
            attempt = 0
            while True:
                attempt += 1
                if not self._limiter.try_acquire(group):
                    raise TransportError(f"Rate limit: rate limit exceeded for {group!r}")
                process = self._require_open()
                request_id = self._next_id
                self._next_id += 1
                message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
                if params is not None:
                    message["params"] = params
                try:
                    line = (_compact(message) + "\n").encode("utf-8")
                except (TypeError, ValueError) as exc:
                    raise SerializationError(str(exc)) from exc

                failure: McpError
                try:
                    async with self._io_lock:
                        process.stdin.write(line)
                        await process.stdin.drain()
                        raw = await process.stdout.readline()
                except (OSError, ValueError, asyncio.LimitOverrunError) as exc:
                    failure = TransportError(str(exc) or type(exc).__name__)
                else:
                    try:
                        response = json.loads(raw)
                    except ValueError as exc:
                        failure = SerializationError(str(exc))
                    else:
                        if isinstance(response, dict) and "result" in response:
                            return response["result"]
                        if isinstance(response, dict) and "error" in response:
                            failure = ProtocolError(_compact(response["error"]))
                        else:
                            failure = ProtocolError("No result or error in response")

                if attempt > self.max_retries:
                    raise failure
                await asyncio.sleep(self.retry_backoff_secs * attempt)
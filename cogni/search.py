"""A web search tool backed by a SerpAPI-style JSON endpoint."""

from __future__ import annotations

import hashlib
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

import httpx
from cachetools import TTLCache

from .tool import Tool, ToolCapability, ToolConfigError, ToolError, ToolSpec

_CACHE_SIZE = 1000


@dataclass
class SearchInput:
    """A search query and an optional limit on the number of results."""

    query: str
    max_results: Optional[int] = None


@dataclass
class SearchResult:
    """One search hit."""

    title: str
    url: str
    snippet: str


@dataclass
class SearchOutput:
    """The hits returned by a search."""

    results: list[SearchResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form ``{"results": [...]}``."""
        return {"results": [asdict(r) for r in self.results]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchOutput":
        """Parse the JSON form produced by ``to_dict``."""
        if not isinstance(data, Mapping) or not isinstance(data.get("results"), list):
            raise ValueError("search output must be an object with a 'results' list")
        results = []
        for item in data["results"]:
            if not isinstance(item, Mapping):
                raise ValueError("each search result must be an object")
            try:
                values = [item[key] for key in ("title", "url", "snippet")]
            except KeyError as exc:
                raise ValueError(f"missing field {exc.args[0]!r}") from None
            if not all(isinstance(v, str) for v in values):
                raise ValueError("search result fields must be strings")
            results.append(SearchResult(*values))
        return cls(results)


@dataclass
class SearchConfig:
    """Settings for the search tool."""

    api_key: str = ""
    base_url: str = "https://serpapi.com/search"
    rate_limit: float = 10.0
    cache_duration: int = 3600

    def validate(self) -> None:
        """Raise ToolConfigError if a field is missing or out of range."""
        if not self.api_key:
            raise ToolConfigError("api_key", "missing required field")
        if not self.base_url:
            raise ToolConfigError("base_url", "missing required field")
        if not self.base_url.startswith("http"):
            raise ToolConfigError("base_url", "base_url must be a valid HTTP(S) URL")
        if self.rate_limit <= 0.0:
            raise ToolConfigError("rate_limit", "rate_limit must be greater than 0")
        if self.cache_duration == 0:
            raise ToolConfigError("cache_duration", "cache_duration must be greater than 0")


def cache_key(query: str, max_results: Optional[int] = None) -> str:
    """Return the cache key for a query: ``search:`` and a SHA-256 hex digest."""
    digest = hashlib.sha256(query.encode("utf-8"))
    if max_results is not None:
        digest.update(max_results.to_bytes(8, "little"))
    return f"search:{digest.hexdigest()}"


def _text(item: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        if key in item and item[key] is not None:
            value = item[key]
            return value if isinstance(value, str) else ""
    return ""


def parse_search_response(data: Any) -> SearchOutput:
    """Extract hits from the ``organic_results`` of a search response.

    Hits without a title or URL are dropped; ``link`` is preferred to ``url``
    and ``snippet`` to ``description``.
    """
    results = []
    items = data.get("organic_results") if isinstance(data, Mapping) else None
    if isinstance(items, list):
        for item in items:
            if not isinstance(item, Mapping):
                continue
            title = _text(item, "title")
            url = _text(item, "link", "url")
            snippet = _text(item, "snippet", "description")
            if title and url:
                results.append(SearchResult(title, url, snippet))
    return SearchOutput(results)


class _RateLimiter:
    """A token bucket refilled at ``rate`` tokens per second."""

    def __init__(self, rate: float) -> None:
        self.rate = rate
        self.capacity = max(1.0, rate)
        self.tokens = self.capacity
        self.updated = time.monotonic()

    def try_acquire(self) -> bool:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
        self.updated = now
        if self.tokens < 1.0:
            return False
        self.tokens -= 1.0
        return True


def _error(operation: str, message: str, retryable: bool) -> ToolError:
    return ToolError(message, component="SearchTool", operation=operation, retryable=retryable)


class SearchTool(Tool):
    """Searches the web, caching answers and limiting the request rate."""

    def __init__(self, config: SearchConfig) -> None:
        self.config = config
        self.client: Optional[httpx.AsyncClient] = None
        self._cache: TTLCache = TTLCache(maxsize=_CACHE_SIZE, ttl=config.cache_duration)
        self._limiter = _RateLimiter(config.rate_limit)

    @classmethod
    def try_new(cls, config: SearchConfig) -> "SearchTool":
        """Validate ``config`` and build a tool from it."""
        config.validate()
        return cls(config)

    async def initialize(self) -> None:
        """Open the HTTP client unless one is already set."""
        if self.client is None:
            self.client = httpx.AsyncClient()

    async def shutdown(self) -> None:
        """Close and drop the HTTP client."""
        if self.client is not None:
            await self.client.aclose()
        self.client = None

    def capabilities(self) -> list[ToolCapability]:
        return [ToolCapability.THREAD_SAFE, ToolCapability.NETWORK_ACCESS]

    async def invoke(self, input: Union[SearchInput, Mapping[str, Any]]) -> SearchOutput:
        """Run a search, answering from the cache when the same query was seen recently."""
        request = self._request(input)
        key = cache_key(request.query, request.max_results)
        cached = self._cache.get(key)
        if cached is not None:
            return SearchOutput.from_dict(cached)

        if not self._limiter.try_acquire():
            raise _error(
                "rate_limit",
                f"Rate limit error: rate limit exceeded for {self.config.base_url}",
                True,
            )

        params = [("q", request.query), ("api_key", self.config.api_key)]
        if request.max_results is not None:
            params.append(("num", str(request.max_results)))
        url = f"{self.config.base_url}?{urlencode(params)}"

        try:
            if self.client is not None:
                data = await self._get_json(self.client, url)
            else:
                async with httpx.AsyncClient() as client:
                    data = await self._get_json(client, url)
        except (httpx.HTTPError, ValueError) as exc:
            raise _error("http_get_json", f"HTTP error: {exc}", True) from exc

        output = parse_search_response(data)
        self._cache[key] = output.to_dict()
        return output

    @staticmethod
    async def _get_json(client: httpx.AsyncClient, url: str) -> Any:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _request(input: Union[SearchInput, Mapping[str, Any]]) -> SearchInput:
        if isinstance(input, SearchInput):
            return input
        if isinstance(input, Mapping):
            query = input.get("query")
            max_results = input.get("max_results")
            if not isinstance(query, str):
                raise _error("invoke", "invalid request: 'query' must be a string", False)
            if max_results is not None and (
                isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 0
            ):
                raise _error(
                    "invoke", "invalid request: 'max_results' must be a whole number", False
                )
            return SearchInput(query, max_results)
        raise _error("invoke", f"unsupported input type: {type(input).__name__}", False)

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name="search",
            description="Search the web for information",
            input_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The search query"},
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of results to return",
                        "minimum": 1,
                        "maximum": 100,
                    },
                },
                "required": ["query"],
            },
            output_schema={
                "type": "object",
                "properties": {
                    "results": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "title": {
                                    "type": "string",
                                    "description": "The title of the result",
                                },
                                "url": {
                                    "type": "string",
                                    "description": "The URL of the result",
                                },
                                "snippet": {
                                    "type": "string",
                                    "description": "A snippet or description of the result",
                                },
                            },
                            "required": ["title", "url", "snippet"],
                        },
                    }
                },
                "required": ["results"],
            },
            examples=[],
        )
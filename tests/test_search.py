import dataclasses

import httpx
import pytest

from cogni.search import (
    SearchConfig,
    SearchInput,
    SearchOutput,
    SearchResult,
    SearchTool,
    cache_key,
    parse_search_response,
)
from cogni.tool import ToolCapability, ToolConfigError, ToolError


def create_test_config(**changes):
    config = SearchConfig(
        api_key="placeholder",
        base_url="https://api.search.test",
        rate_limit=10.0,
        cache_duration=3600,
    )
    return dataclasses.replace(config, **changes)


SAMPLE_RESPONSE = {
    "organic_results": [
        {"title": "First", "link": "https://a.example.com", "snippet": "one"},
        {"title": "Second", "url": "https://b.example.com", "description": "two"},
        {"title": "", "link": "https://c.example.com"},
        {"title": "No url"},
    ]
}


def make_tool(config, handler):
    tool = SearchTool(config)
    tool.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return tool


@pytest.mark.asyncio
async def test_tool_creation():
    tool = SearchTool(create_test_config())
    await tool.initialize()
    assert isinstance(tool.client, httpx.AsyncClient)
    await tool.shutdown()
    assert tool.client is None


def test_config_validation_accepts_valid():
    config = create_test_config()
    config.validate()
    assert SearchTool.try_new(config).config is config


@pytest.mark.parametrize(
    ("changes", "field_name"),
    [
        ({"api_key": ""}, "api_key"),
        ({"base_url": ""}, "base_url"),
        ({"base_url": "invalid_url"}, "base_url"),
        ({"rate_limit": 0.0}, "rate_limit"),
        ({"cache_duration": 0}, "cache_duration"),
    ],
)
def test_config_validation_rejects_invalid(changes, field_name):
    config = create_test_config(**changes)
    with pytest.raises(ToolConfigError) as info:
        config.validate()
    assert info.value.field_name == field_name
    with pytest.raises(ToolConfigError):
        SearchTool.try_new(config)


def test_default_config():
    config = SearchConfig()
    assert config.base_url == "https://serpapi.com/search"
    assert config.rate_limit == 10.0
    assert config.cache_duration == 3600


def test_capabilities():
    capabilities = SearchTool(create_test_config()).capabilities()
    assert ToolCapability.THREAD_SAFE in capabilities
    assert ToolCapability.NETWORK_ACCESS in capabilities


def test_cache_key_shape_and_determinism():
    key = cache_key("rust", 5)
    assert key.startswith("search:")
    assert len(key) == len("search:") + 64
    assert key == cache_key("rust", 5)
    assert key != cache_key("rust")
    assert cache_key("rust") != cache_key("python")


def test_parse_search_response_fallbacks_and_filtering():
    output = parse_search_response(SAMPLE_RESPONSE)
    assert output.results == [
        SearchResult("First", "https://a.example.com", "one"),
        SearchResult("Second", "https://b.example.com", "two"),
    ]


def test_parse_search_response_without_results():
    assert parse_search_response({"other": 1}).results == []


def test_output_round_trip():
    output = SearchOutput([SearchResult("t", "https://x.example.com", "s")])
    assert SearchOutput.from_dict(output.to_dict()) == output


def test_output_from_dict_rejects_missing_field():
    with pytest.raises(ValueError):
        SearchOutput.from_dict({"results": [{"title": "t", "url": "u"}]})


def test_spec_names_the_tool():
    spec = SearchTool(create_test_config()).spec()
    assert spec.name == "search"
    assert spec.description == "Search the web for information"
    assert spec.input_schema["required"] == ["query"]


@pytest.mark.asyncio
async def test_invoke_queries_and_caches():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=SAMPLE_RESPONSE)

    tool = make_tool(create_test_config(), handler)
    first = await tool.invoke(SearchInput("rust lang", 3))
    assert [r.title for r in first.results] == ["First", "Second"]
    params = seen[0].url.params
    assert params["q"] == "rust lang"
    assert params["api_key"] == "placeholder"
    assert params["num"] == "3"

    second = await tool.invoke({"query": "rust lang", "max_results": 3})
    assert second == first
    assert len(seen) == 1
    await tool.shutdown()


@pytest.mark.asyncio
async def test_invoke_rate_limited():
    def handler(request):
        return httpx.Response(200, json={"organic_results": []})

    tool = make_tool(create_test_config(rate_limit=1.0), handler)
    assert (await tool.invoke(SearchInput("one"))).results == []
    with pytest.raises(ToolError) as info:
        await tool.invoke(SearchInput("two"))
    assert info.value.retryable is True
    assert info.value.message.startswith("Rate limit error")
    await tool.shutdown()


@pytest.mark.asyncio
async def test_invoke_http_error():
    def handler(request):
        return httpx.Response(500, text="down")

    tool = make_tool(create_test_config(), handler)
    with pytest.raises(ToolError) as info:
        await tool.invoke(SearchInput("q"))
    assert info.value.retryable is True
    assert info.value.message.startswith("HTTP error")
    await tool.shutdown()


@pytest.mark.asyncio
async def test_invoke_rejects_bad_input():
    tool = SearchTool(create_test_config())
    with pytest.raises(ToolError):
        await tool.invoke({"max_results": 2})
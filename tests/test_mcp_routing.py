import json

import pytest

from cogni.mcp_errors import ToolNotFoundError
from cogni.mcp_protocol import ToolCall
from cogni.mcp_routing import MCPToolRouter
from cogni.tool import Tool, ToolError, ToolSpec


class EchoTool(Tool):
    async def invoke(self, input):
        return input

    def spec(self):
        return ToolSpec("echo", "Echo the input")


class FailingTool(Tool):
    async def invoke(self, input):
        raise ToolError("boom")

    def spec(self):
        return ToolSpec("fail", "Always fails")


class OpaqueTool(Tool):
    async def invoke(self, input):
        return {1, 2}

    def spec(self):
        return ToolSpec("opaque", "Returns something JSON cannot hold")


@pytest.mark.asyncio
async def test_successful_call_wraps_output():
    router = MCPToolRouter()
    router.register_tool("echo", EchoTool())
    result = await router.handle_call(ToolCall("echo", {"a": [1, 2]}, "req-7"))
    assert result.tool_name == "echo"
    assert result.is_error is False
    assert result.output == {"a": [1, 2]}
    assert result.request_id == "req-7"
    assert len(result.content) == 1
    assert json.loads(result.content[0].text) == {"a": [1, 2]}
    assert " " not in result.content[0].text


@pytest.mark.asyncio
async def test_failing_tool_gives_error_result():
    router = MCPToolRouter()
    router.register_tool("fail", FailingTool())
    result = await router.handle_call(ToolCall("fail", None, None))
    assert result.is_error is True
    assert result.output is None
    assert result.content[0].text == "Error: boom"
    assert result.request_id is None


@pytest.mark.asyncio
async def test_unknown_tool_raises():
    router = MCPToolRouter()
    with pytest.raises(ToolNotFoundError) as info:
        await router.handle_call(ToolCall("missing", {}))
    assert info.value.message == "missing"


@pytest.mark.asyncio
async def test_unserialisable_output_gets_placeholder_text():
    router = MCPToolRouter()
    router.register_tool("opaque", OpaqueTool())
    result = await router.handle_call(ToolCall("opaque", None))
    assert result.is_error is False
    assert result.content[0].text == "<serialization error>"


@pytest.mark.asyncio
async def test_registering_again_replaces_tool():
    router = MCPToolRouter()
    router.register_tool("t", FailingTool())
    router.register_tool("t", EchoTool())
    result = await router.handle_call(ToolCall("t", "hi"))
    assert result.is_error is False
    assert result.output == "hi"
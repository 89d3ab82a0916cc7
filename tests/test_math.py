import json

import pytest

from cogni.math import (
    ArithmeticInput,
    MathConfig,
    MathOutput,
    MathTool,
    MatrixInput,
    MatrixOperation,
    Number,
    StatisticsInput,
    StatOperation,
    math_input_to_dict,
    parse_math_input,
)
from cogni.tool import ToolCapability, ToolConfigError, ToolError


async def run(tool, request):
    return json.loads(await tool.invoke(request))


def matrix_request(operation, *matrices):
    return {"type": "matrix", "params": {"operation": operation, "matrices": list(matrices)}}


def stats_request(operation, data):
    return {"type": "statistics", "params": {"operation": operation, "data": data}}


def test_tool_creation():
    tool = MathTool(MathConfig())
    assert tool.config == MathConfig()
    assert tool.spec().name == "math"


def test_default_config_values():
    config = MathConfig()
    assert config.max_matrix_size == 100
    assert config.max_iterations == 1000
    assert config.precision == 1e-10
    assert config.validate() is None


@pytest.mark.parametrize(
    "changes, field_name",
    [
        ({"max_matrix_size": 0}, "max_matrix_size"),
        ({"max_iterations": 0}, "max_iterations"),
        ({"precision": 0.0}, "precision"),
        ({"precision": 11.0}, "precision"),
    ],
)
def test_config_validation(changes, field_name):
    with pytest.raises(ToolConfigError) as info:
        MathConfig(**changes).validate()
    assert info.value.field_name == field_name


def test_try_new_validates():
    with pytest.raises(ToolConfigError):
        MathTool.try_new(MathConfig(max_iterations=0))
    assert MathTool.try_new(MathConfig()).config.max_iterations == 1000


def test_capabilities():
    caps = MathTool(MathConfig()).capabilities()
    assert ToolCapability.STATELESS in caps
    assert ToolCapability.THREAD_SAFE in caps
    assert ToolCapability.CPU_INTENSIVE in caps


@pytest.mark.asyncio
async def test_math_tool_initialization():
    tool = MathTool(MathConfig())
    await tool.initialize()
    assert await run(tool, "1 + 1") == {"type": "scalar", "result": 2.0}
    await tool.shutdown()


@pytest.mark.asyncio
async def test_math_tool_invocation():
    tool = MathTool(MathConfig())
    assert await run(tool, "2 + 2") == {"type": "scalar", "result": 4.0}


@pytest.mark.asyncio
async def test_arithmetic_power_and_functions():
    tool = MathTool()
    assert await run(tool, "2 ^ 3") == {"type": "scalar", "result": 8.0}
    assert await run(tool, "sqrt(16) * -(1 + 2)") == {"type": "scalar", "result": -12.0}


@pytest.mark.asyncio
async def test_arithmetic_complex_result():
    result = await run(MathTool(), "sqrt(-4)")
    assert result["type"] == "complex"
    assert result["result"]["real"] == pytest.approx(0.0)
    assert result["result"]["imag"] == pytest.approx(2.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("expression", ["1 / 0", "__import__('os')", "2 +", "x * 2"])
async def test_arithmetic_errors(expression):
    with pytest.raises(ToolError):
        await MathTool().invoke(expression)


@pytest.mark.asyncio
async def test_matrix_multiply():
    request = json.dumps(matrix_request("multiply", [[1, 2], [3, 4]], [[5, 6], [7, 8]]))
    assert await run(MathTool(), request) == {"type": "matrix", "result": [[19.0, 22.0], [43.0, 50.0]]}


@pytest.mark.asyncio
async def test_matrix_determinant():
    result = await run(MathTool(), matrix_request("determinant", [[1, 2], [3, 4]]))
    assert result["type"] == "scalar"
    assert result["result"] == pytest.approx(-2.0)


@pytest.mark.asyncio
async def test_matrix_inverse():
    result = await run(MathTool(), matrix_request("inverse", [[4, 7], [2, 6]]))
    assert result["type"] == "matrix"
    expected = [[0.6, -0.7], [-0.2, 0.4]]
    for row, expected_row in zip(result["result"], expected):
        assert row == pytest.approx(expected_row)


@pytest.mark.asyncio
async def test_singular_inverse_raises():
    with pytest.raises(ToolError):
        await MathTool().invoke(matrix_request("inverse", [[1, 2], [2, 4]]))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "matrix, expected",
    [
        ([[2, 0], [0, 3]], [2.0, 3.0]),
        ([[2, 1], [1, 2]], [1.0, 3.0]),
        ([[2, 0, 0], [0, 3, 4], [0, 4, 9]], [1.0, 2.0, 11.0]),
    ],
)
async def test_real_eigenvalues(matrix, expected):
    result = await run(MathTool(), matrix_request("eigenvalues", matrix))
    assert result["type"] == "vector"
    assert sorted(result["result"]) == pytest.approx(expected)


@pytest.mark.asyncio
async def test_complex_eigenvalues():
    result = await run(MathTool(), matrix_request("eigenvalues", [[0, -1], [1, 0]]))
    assert result["type"] == "matrix"
    pairs = sorted(tuple(pair) for pair in result["result"])
    assert pairs[0] == pytest.approx((0.0, -1.0))
    assert pairs[1] == pytest.approx((0.0, 1.0))


@pytest.mark.asyncio
async def test_matrix_limits_and_shapes():
    tool = MathTool(MathConfig(max_matrix_size=2))
    with pytest.raises(ToolError):
        await tool.invoke(matrix_request("determinant", [[1, 0, 0], [0, 1, 0], [0, 0, 1]]))
    with pytest.raises(ToolError):
        await tool.invoke(matrix_request("determinant", [[1, 2], [3]]))
    with pytest.raises(ToolError):
        await tool.invoke(matrix_request("multiply", [[1, 2]]))
    with pytest.raises(ToolError):
        await tool.invoke(matrix_request("multiply", [[1, 2]], [[1, 2]]))


@pytest.mark.asyncio
async def test_statistics():
    tool = MathTool()
    assert await run(tool, stats_request("mean", [1, 2, 3, 4])) == {"type": "scalar", "result": 2.5}
    assert await run(tool, stats_request("std_dev", [1, 2, 3])) == {"type": "scalar", "result": 1.0}
    z = await run(tool, stats_request("z_score", [1, 2, 3]))
    assert z["type"] == "vector"
    assert z["result"] == pytest.approx([-1.0, 0.0, 1.0])
    fit = await run(tool, stats_request("normal_fit", [1, 2, 3]))
    assert fit == {"type": "vector", "result": [2.0, 1.0]}


@pytest.mark.asyncio
async def test_statistics_errors():
    tool = MathTool()
    with pytest.raises(ToolError):
        await tool.invoke(stats_request("mean", []))
    with pytest.raises(ToolError):
        await tool.invoke(stats_request("std_dev", [5]))
    with pytest.raises(ToolError):
        await tool.invoke(stats_request("z_score", [2, 2, 2]))


@pytest.mark.asyncio
async def test_invalid_json_request():
    with pytest.raises(ToolError):
        await MathTool().invoke('{"type": "matrix"')
    with pytest.raises(ToolError):
        await MathTool().invoke({"type": "unknown", "params": {}})


def test_parse_math_input_variants():
    assert parse_math_input({"type": "arithmetic", "params": {"expression": "1+1"}}) == ArithmeticInput("1+1")
    parsed = parse_math_input(matrix_request("inverse", [[1, 2], [3, 4]]))
    assert parsed == MatrixInput(MatrixOperation.INVERSE, [[1.0, 2.0], [3.0, 4.0]])
    stats = parse_math_input(stats_request("z_score", [1, 2]))
    assert stats == StatisticsInput(StatOperation.Z_SCORE, [1.0, 2.0])


@pytest.mark.parametrize(
    "data",
    [
        {"type": "arithmetic"},
        {"type": "arithmetic", "params": {}},
        {"type": "matrix", "params": {"operation": "transpose", "matrices": []}},
        {"type": "statistics", "params": {"operation": "mean", "data": ["a"]}},
        {"type": "other", "params": {}},
    ],
)
def test_parse_math_input_errors(data):
    with pytest.raises(ValueError):
        parse_math_input(data)


@pytest.mark.parametrize(
    "request_data",
    [
        {"type": "arithmetic", "params": {"expression": "2 * pi"}},
        matrix_request("multiply", [[1.0, 2.0]], [[3.0], [4.0]]),
        stats_request("normal_fit", [1.5, 2.5]),
    ],
)
def test_math_input_round_trip(request_data):
    assert math_input_to_dict(parse_math_input(request_data)) == request_data


def test_math_output_round_trip():
    for output in [
        MathOutput("scalar", 1.5),
        MathOutput("vector", [1.0, 2.0]),
        MathOutput("matrix", [[1.0]]),
        MathOutput("complex", {"real": 1.0, "imag": -1.0}),
    ]:
        assert MathOutput.from_dict(output.to_dict()) == output


def test_math_output_errors():
    with pytest.raises(ValueError):
        MathOutput("tensor", [])
    with pytest.raises(ValueError):
        MathOutput.from_dict({"type": "scalar"})
    with pytest.raises(ValueError):
        MathOutput.from_dict({"type": "complex", "result": {"real": 1.0}})


def test_number_equality():
    assert Number(1.0) == Number(1.0)
    assert Number(1.0) != Number(1.0, 0.0)


def test_spec_enums_match_operations():
    spec = MathTool().spec().to_dict()
    params = spec["input_schema"]["properties"]["params"]["oneOf"]
    assert params[1]["properties"]["operation"]["enum"] == ["multiply", "inverse", "determinant", "eigenvalues"]
    assert params[2]["properties"]["operation"]["enum"] == ["mean", "std_dev", "z_score", "normal_fit"]
    assert spec["output_schema"]["properties"]["type"]["enum"] == ["scalar", "vector", "matrix", "complex"]
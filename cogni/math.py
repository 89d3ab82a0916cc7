"""A tool for arithmetic, matrix and statistical computations."""

from __future__ import annotations

import ast
import cmath
import functools
import json
import math
import operator
from dataclasses import dataclass
from enum import Enum
from statistics import fmean, stdev
from typing import Any, Callable, Mapping, Optional, Union

from .tool import Tool, ToolCapability, ToolConfigError, ToolError, ToolSpec

Matrix = list[list[float]]


@dataclass
class MathConfig:
    """Limits and tolerances used by the math tool."""

    max_matrix_size: int = 100
    max_iterations: int = 1000
    precision: float = 1e-10

    def validate(self) -> None:
        """Raise ToolConfigError if any field is out of range."""
        if self.max_matrix_size == 0:
            raise ToolConfigError("max_matrix_size", "max_matrix_size must be greater than 0")
        if self.max_iterations == 0:
            raise ToolConfigError("max_iterations", "max_iterations must be greater than 0")
        if self.precision <= 0.0:
            raise ToolConfigError("precision", "precision must be greater than 0")
        if self.precision > 10.0:
            raise ToolConfigError("precision", "Precision must be less than or equal to 10")


class MatrixOperation(str, Enum):
    """Matrix operations supported by the tool."""

    MULTIPLY = "multiply"
    INVERSE = "inverse"
    DETERMINANT = "determinant"
    EIGENVALUES = "eigenvalues"


class StatOperation(str, Enum):
    """Statistical operations supported by the tool."""

    MEAN = "mean"
    STD_DEV = "std_dev"
    Z_SCORE = "z_score"
    NORMAL_FIT = "normal_fit"


@dataclass(frozen=True)
class ArithmeticInput:
    """An arithmetic expression to evaluate."""

    expression: str


@dataclass
class MatrixInput:
    """A matrix operation and the matrices it applies to."""

    operation: MatrixOperation
    matrices: list[Matrix]


@dataclass
class StatisticsInput:
    """A statistical operation and the data it applies to."""

    operation: StatOperation
    data: list[float]


MathInput = Union[ArithmeticInput, MatrixInput, StatisticsInput]

_OUTPUT_KINDS = ("scalar", "vector", "matrix", "complex")


@dataclass
class MathOutput:
    """A result tagged as scalar, vector, matrix or complex."""

    kind: str
    result: Any

    def __post_init__(self) -> None:
        if self.kind not in _OUTPUT_KINDS:
            raise ValueError(f"unknown math output type: {self.kind!r}")

    def to_dict(self) -> dict[str, Any]:
        """Return the tagged JSON form ``{"type": ..., "result": ...}``."""
        return {"type": self.kind, "result": self.result}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MathOutput":
        """Build an output from its tagged JSON form."""
        if not isinstance(data, Mapping) or "result" not in data:
            raise ValueError("math output must be an object with 'type' and 'result'")
        kind = data.get("type")
        result = data["result"]
        if kind == "complex" and not (
            isinstance(result, Mapping) and "real" in result and "imag" in result
        ):
            raise ValueError("complex result needs 'real' and 'imag'")
        return cls(kind, result)


@dataclass(frozen=True)
class Number:
    """A real number, or a complex one when ``imag`` is set."""

    real: float
    imag: Optional[float] = None


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _matrix(value: Any) -> Matrix:
    if not isinstance(value, list) or not all(isinstance(row, list) for row in value):
        raise ValueError("a matrix must be a list of rows")
    return [[_number(x) for x in row] for row in value]


def parse_math_input(data: Mapping[str, Any]) -> MathInput:
    """Parse the tagged JSON form ``{"type": ..., "params": {...}}`` of a request."""
    if not isinstance(data, Mapping):
        raise ValueError("math input must be an object")
    kind = data.get("type")
    params = data.get("params")
    if not isinstance(params, Mapping):
        raise ValueError("missing field 'params'")
    try:
        if kind == "arithmetic":
            expression = params["expression"]
            if not isinstance(expression, str):
                raise ValueError("'expression' must be a string")
            return ArithmeticInput(expression)
        if kind == "matrix":
            matrices = params["matrices"]
            if not isinstance(matrices, list):
                raise ValueError("'matrices' must be a list")
            return MatrixInput(
                MatrixOperation(params["operation"]), [_matrix(m) for m in matrices]
            )
        if kind == "statistics":
            values = params["data"]
            if not isinstance(values, list):
                raise ValueError("'data' must be a list")
            return StatisticsInput(StatOperation(params["operation"]), [_number(x) for x in values])
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r}") from None
    raise ValueError(f"unknown math input type: {kind!r}")


def math_input_to_dict(value: MathInput) -> dict[str, Any]:
    """Return the tagged JSON form of a request."""
    if isinstance(value, ArithmeticInput):
        return {"type": "arithmetic", "params": {"expression": value.expression}}
    if isinstance(value, MatrixInput):
        return {
            "type": "matrix",
            "params": {
                "operation": value.operation.value,
                "matrices": [[list(row) for row in m] for m in value.matrices],
            },
        }
    if isinstance(value, StatisticsInput):
        return {
            "type": "statistics",
            "params": {"operation": value.operation.value, "data": list(value.data)},
        }
    raise TypeError(f"not a math input: {value!r}")


def _error(message: str) -> ToolError:
    return ToolError(message, component="MathTool", operation="invoke")


# ---- arithmetic ---------------------------------------------------------

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
    ast.Mod: operator.mod,
}
_UNARY_OPS: dict[type, Callable[[Any], Any]] = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_CONSTANTS = {"pi": math.pi, "e": math.e}
_FUNCTIONS: dict[str, tuple[Callable[[float], Any], Optional[Callable[[complex], Any]]]] = {
    "sqrt": (math.sqrt, cmath.sqrt),
    "abs": (abs, abs),
    "sin": (math.sin, cmath.sin),
    "cos": (math.cos, cmath.cos),
    "tan": (math.tan, cmath.tan),
    "asin": (math.asin, cmath.asin),
    "acos": (math.acos, cmath.acos),
    "atan": (math.atan, cmath.atan),
    "exp": (math.exp, cmath.exp),
    "ln": (math.log, cmath.log),
    "log": (math.log10, cmath.log10),
    "floor": (math.floor, None),
    "ceil": (math.ceil, None),
}


def _apply(name: str, arg: Any) -> Any:
    real_fn, complex_fn = _FUNCTIONS[name]
    if isinstance(arg, complex):
        if complex_fn is None:
            raise ValueError(f"{name} is not defined for complex numbers")
        return complex_fn(arg)
    try:
        return real_fn(arg)
    except ValueError:
        if complex_fn is None:
            raise
        return complex_fn(arg)


def _evaluate(node: ast.AST) -> Any:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return float(node.value)
        raise ValueError(f"unsupported literal: {node.value!r}")
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        return _BIN_OPS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and len(node.args) == 1
        and not node.keywords
    ):
        return _apply(node.func.id, _evaluate(node.args[0]))
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def _evaluate_expression(expression: str, precision: float) -> Number:
    try:
        tree = ast.parse(expression.replace("^", "**").strip(), mode="eval")
    except SyntaxError as exc:
        raise _error(f"invalid expression: {exc.msg}") from None
    try:
        value = _evaluate(tree)
    except ZeroDivisionError:
        raise _error("division by zero") from None
    except (ValueError, TypeError, OverflowError) as exc:
        raise _error(f"cannot evaluate expression: {exc}") from None
    if isinstance(value, complex):
        if abs(value.imag) > precision:
            return Number(value.real, value.imag)
        return Number(value.real)
    return Number(float(value))


# ---- matrices -----------------------------------------------------------


def _check_matrix(matrix: Matrix, limit: int) -> None:
    if not matrix or not matrix[0]:
        raise _error("matrices must not be empty")
    width = len(matrix[0])
    if any(len(row) != width for row in matrix):
        raise _error("matrix rows must all have the same length")
    if len(matrix) > limit or width > limit:
        raise _error(f"matrix exceeds the maximum size of {limit}")


def _multiply(a: Matrix, b: Matrix) -> Matrix:
    if len(a[0]) != len(b):
        raise _error(f"cannot multiply {len(a)}x{len(a[0])} by {len(b)}x{len(b[0])} matrix")
    columns = list(zip(*b))
    return [[sum(x * y for x, y in zip(row, col)) for col in columns] for row in a]


def _determinant(matrix: Matrix) -> float:
    rows = [list(row) for row in matrix]
    size = len(rows)
    det = 1.0
    for k in range(size):
        pivot = max(range(k, size), key=lambda i: abs(rows[i][k]))
        if rows[pivot][k] == 0.0:
            return 0.0
        if pivot != k:
            rows[k], rows[pivot] = rows[pivot], rows[k]
            det = -det
        det *= rows[k][k]
        for i in range(k + 1, size):
            factor = rows[i][k] / rows[k][k]
            rows[i] = [x - factor * y for x, y in zip(rows[i], rows[k])]
    return det


def _inverse(matrix: Matrix, precision: float) -> Matrix:
    size = len(matrix)
    rows = [
        list(row) + [1.0 if i == j else 0.0 for j in range(size)]
        for i, row in enumerate(matrix)
    ]
    for k in range(size):
        pivot = max(range(k, size), key=lambda i: abs(rows[i][k]))
        if abs(rows[pivot][k]) < precision:
            raise _error("matrix is singular")
        rows[k], rows[pivot] = rows[pivot], rows[k]
        lead = rows[k][k]
        rows[k] = [x / lead for x in rows[k]]
        for i in range(size):
            factor = rows[i][k]
            if i != k and factor:
                rows[i] = [x - factor * y for x, y in zip(rows[i], rows[k])]
    return [row[size:] for row in rows]


def _qr(matrix: Matrix) -> tuple[Matrix, Matrix]:
    """Householder QR decomposition."""
    size = len(matrix)
    r = [list(row) for row in matrix]
    q = [[1.0 if i == j else 0.0 for j in range(size)] for i in range(size)]
    for k in range(size - 1):
        x = [r[i][k] for i in range(k, size)]
        norm = math.sqrt(sum(v * v for v in x))
        if norm == 0.0:
            continue
        alpha = -norm if x[0] >= 0 else norm
        v = [x[0] - alpha, *x[1:]]
        vnorm2 = sum(c * c for c in v)
        if vnorm2 == 0.0:
            continue
        for j in range(size):
            factor = 2.0 * sum(c * r[k + i][j] for i, c in enumerate(v)) / vnorm2
            for i, c in enumerate(v):
                r[k + i][j] -= factor * c
        for row in q:
            factor = 2.0 * sum(row[k + i] * c for i, c in enumerate(v)) / vnorm2
            for i, c in enumerate(v):
                row[k + i] -= factor * c
    return q, r


def _quasi_triangular(m: Matrix, tol: float) -> bool:
    size = len(m)
    if any(abs(m[i][j]) >= tol for i in range(size) for j in range(i - 1)):
        return False
    sub = [abs(m[i + 1][i]) >= tol for i in range(size - 1)]
    return not any(a and b for a, b in zip(sub, sub[1:]))


def _block_eigenvalues(a: float, b: float, c: float, d: float) -> list[complex]:
    half_trace = (a + d) / 2.0
    disc = half_trace * half_trace - (a * d - b * c)
    if disc >= 0:
        root = math.sqrt(disc)
        return [complex(half_trace + root), complex(half_trace - root)]
    root = math.sqrt(-disc)
    return [complex(half_trace, root), complex(half_trace, -root)]


def _eigenvalues(matrix: Matrix, max_iterations: int, tol: float) -> list[complex]:
    m = [list(row) for row in matrix]
    for _ in range(max_iterations):
        if _quasi_triangular(m, tol):
            break
        q, r = _qr(m)
        m = _multiply(r, q)
    else:
        if not _quasi_triangular(m, tol):
            raise _error("eigenvalue iteration did not converge")
    values: list[complex] = []
    size = len(m)
    i = 0
    while i < size:
        if i + 1 < size and abs(m[i + 1][i]) >= tol:
            values.extend(_block_eigenvalues(m[i][i], m[i][i + 1], m[i + 1][i], m[i + 1][i + 1]))
            i += 2
        else:
            values.append(complex(m[i][i]))
            i += 1
    return values


class MathTool(Tool):
    """Evaluates arithmetic expressions, matrix operations and statistics."""

    def __init__(self, config: Optional[MathConfig] = None) -> None:
        self.config = config if config is not None else MathConfig()

    @classmethod
    def try_new(cls, config: MathConfig) -> "MathTool":
        """Validate ``config`` and build a tool from it."""
        config.validate()
        return cls(config)

    async def initialize(self) -> None:
        """The math tool needs no setup."""

    async def shutdown(self) -> None:
        """The math tool holds no resources."""

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability.STATELESS,
            ToolCapability.THREAD_SAFE,
            ToolCapability.CPU_INTENSIVE,
        ]

    async def invoke(self, input: Union[str, Mapping[str, Any]]) -> str:
        """Compute a result and return it as a JSON string.

        ``input`` is either a JSON request object (as text or a mapping) or a
        plain arithmetic expression. Eigenvalues come back as a vector when all
        are real, otherwise as a matrix of ``[real, imag]`` rows.
        """
        return json.dumps(self._compute(self._request(input)).to_dict())

    def _request(self, input: Union[str, Mapping[str, Any]]) -> MathInput:
        if isinstance(input, Mapping):
            data: Any = input
        elif isinstance(input, str):
            if not input.lstrip().startswith("{"):
                return ArithmeticInput(input)
            try:
                data = json.loads(input)
            except json.JSONDecodeError as exc:
                raise _error(f"invalid JSON request: {exc.msg}") from None
        else:
            raise _error(f"unsupported input type: {type(input).__name__}")
        try:
            return parse_math_input(data)
        except ValueError as exc:
            raise _error(f"invalid request: {exc}") from None

    def _compute(self, request: MathInput) -> MathOutput:
        if isinstance(request, ArithmeticInput):
            number = _evaluate_expression(request.expression, self.config.precision)
            if number.imag is None:
                return MathOutput("scalar", number.real)
            return MathOutput("complex", {"real": number.real, "imag": number.imag})
        if isinstance(request, MatrixInput):
            return self._matrix(request)
        return self._statistics(request)

    def _matrix(self, request: MatrixInput) -> MathOutput:
        matrices = request.matrices
        if not matrices:
            raise _error("at least one matrix is required")
        for m in matrices:
            _check_matrix(m, self.config.max_matrix_size)
        op = request.operation
        if op is MatrixOperation.MULTIPLY:
            if len(matrices) < 2:
                raise _error("multiply needs at least two matrices")
            return MathOutput("matrix", functools.reduce(_multiply, matrices))
        if len(matrices) != 1:
            raise _error(f"{op.value} needs exactly one matrix")
        (m,) = matrices
        if len(m) != len(m[0]):
            raise _error(f"{op.value} needs a square matrix")
        if op is MatrixOperation.DETERMINANT:
            return MathOutput("scalar", _determinant(m))
        if op is MatrixOperation.INVERSE:
            return MathOutput("matrix", _inverse(m, self.config.precision))
        values = _eigenvalues(m, self.config.max_iterations, self.config.precision)
        if all(v.imag == 0.0 for v in values):
            return MathOutput("vector", [v.real for v in values])
        return MathOutput("matrix", [[v.real, v.imag] for v in values])

    def _statistics(self, request: StatisticsInput) -> MathOutput:
        data = request.data
        if not data:
            raise _error("data must not be empty")
        mean = fmean(data)
        if request.operation is StatOperation.MEAN:
            return MathOutput("scalar", mean)
        if len(data) < 2:
            raise _error("standard deviation needs at least two data points")
        sd = stdev(data)
        if request.operation is StatOperation.STD_DEV:
            return MathOutput("scalar", sd)
        if request.operation is StatOperation.Z_SCORE:
            if sd == 0.0:
                raise _error("z-scores are undefined when the standard deviation is zero")
            return MathOutput("vector", [(x - mean) / sd for x in data])
        return MathOutput("vector", [mean, sd])

    def spec(self) -> ToolSpec:
        number = {"type": "number"}
        return ToolSpec(
            name="math",
            description="Perform mathematical computations",
            input_schema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["arithmetic", "matrix", "statistics"]},
                    "params": {
                        "oneOf": [
                            {
                                "type": "object",
                                "properties": {
                                    "expression": {
                                        "type": "string",
                                        "description": "Arithmetic expression to evaluate",
                                    }
                                },
                                "required": ["expression"],
                            },
                            {
                                "type": "object",
                                "properties": {
                                    "operation": {
                                        "type": "string",
                                        "enum": [op.value for op in MatrixOperation],
                                    },
                                    "matrices": {
                                        "type": "array",
                                        "items": {
                                            "type": "array",
                                            "items": {"type": "array", "items": dict(number)},
                                        },
                                    },
                                },
                                "required": ["operation", "matrices"],
                            },
                            {
                                "type": "object",
                                "properties": {
                                    "operation": {
                                        "type": "string",
                                        "enum": [op.value for op in StatOperation],
                                    },
                                    "data": {"type": "array", "items": dict(number)},
                                },
                                "required": ["operation", "data"],
                            },
                        ]
                    },
                },
                "required": ["type", "params"],
            },
            output_schema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": list(_OUTPUT_KINDS)},
                    "result": {
                        "oneOf": [
                            dict(number),
                            {"type": "array", "items": dict(number)},
                            {
                                "type": "array",
                                "items": {"type": "array", "items": dict(number)},
                            },
                            {
                                "type": "object",
                                "properties": {"real": dict(number), "imag": dict(number)},
                                "required": ["real", "imag"],
                            },
                        ]
                    },
                },
                "required": ["type", "result"],
            },
            examples=[],
        )
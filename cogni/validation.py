"""Validation of tool specifications, inputs and outputs against JSON Schema."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from jsonschema import Draft7Validator, validators
from jsonschema.exceptions import SchemaError as _InvalidSchema


class ValidationError(Exception):
    """Base class for validation failures."""

    prefix = "Validation failed"

    def __init__(self, detail: str) -> None:
        super().__init__(f"{self.prefix}: {detail}")
        self.detail = detail


class SpecificationError(ValidationError):
    """A tool specification does not match its schema."""

    prefix = "Tool specification validation failed"


class InputError(ValidationError):
    """A tool input does not match its schema."""

    prefix = "Tool input validation failed"


class OutputError(ValidationError):
    """A tool output does not match its schema."""

    prefix = "Tool output validation failed"


class SchemaError(ValidationError):
    """The JSON schema itself is invalid."""

    prefix = "Invalid JSON schema"


class JsonError(ValidationError):
    """A JSON value does not satisfy the schema."""

    prefix = "Invalid JSON value"


def _pointer(path: Iterable[Any]) -> str:
    return "".join("/" + str(part).replace("~", "~0").replace("/", "~1") for part in path)


def validate_value(value: Any, schema: Any) -> None:
    """Raise SchemaError or JsonError unless ``value`` satisfies ``schema``."""
    if not isinstance(schema, (dict, bool)):
        raise SchemaError(f"schema must be an object or a boolean, not {type(schema).__name__}")
    validator_cls = validators.validator_for(schema, default=Draft7Validator)
    try:
        validator_cls.check_schema(schema)
    except _InvalidSchema as exc:
        raise SchemaError(exc.message) from exc
    messages = [
        f"{error.message} at {_pointer(error.absolute_path)}"
        for error in validator_cls(schema).iter_errors(value)
    ]
    if messages:
        raise JsonError("; ".join(messages))


_DEFAULT_SPEC_SCHEMA = {
    "type": "object",
    "required": ["name", "description", "input_schema", "output_schema"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string", "minLength": 1},
        "input_schema": {"type": "object"},
        "output_schema": {"type": "object"},
        "examples": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["description", "input", "output"],
                "properties": {
                    "description": {"type": "string"},
                    "input": {},
                    "output": {},
                },
            },
        },
    },
}


@dataclass
class ToolValidator:
    """Validates tool specifications, inputs and outputs against schemas."""

    spec_schema: Any = field(default_factory=dict)
    input_schema: Any = field(default_factory=dict)
    output_schema: Any = field(default_factory=dict)

    @classmethod
    def default_schemas(cls) -> "ToolValidator":
        """A validator with the standard spec schema and permissive input/output schemas."""
        return cls(copy.deepcopy(_DEFAULT_SPEC_SCHEMA), {}, {})

    def validate_spec(self, spec: Any) -> None:
        """Raise SpecificationError unless ``spec`` matches the spec schema."""
        try:
            validate_value(spec, self.spec_schema)
        except ValidationError as err:
            raise SpecificationError(str(err)) from err

    def validate_input(self, input: Any, input_schema: Optional[Any] = None) -> None:
        """Raise InputError unless ``input`` matches ``input_schema`` or the default."""
        schema = self.input_schema if input_schema is None else input_schema
        try:
            validate_value(input, schema)
        except ValidationError as err:
            raise InputError(str(err)) from err

    def validate_output(self, output: Any, output_schema: Optional[Any] = None) -> None:
        """Raise OutputError unless ``output`` matches ``output_schema`` or the default."""
        schema = self.output_schema if output_schema is None else output_schema
        try:
            validate_value(output, schema)
        except ValidationError as err:
            raise OutputError(str(err)) from err
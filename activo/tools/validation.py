"""
Argument validation for capability calls.

Capability arguments arrive from the model as an untyped mapping. Before
dispatch, the executor checks them against the capability's declared JSON
Schema by building a pydantic model from that schema (once per tool) and
validating into it.

Only the subset of JSON Schema that capability declarations use is
understood: top-level object with properties, required, primitive types,
arrays, nested objects, enum and default.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

logger = logging.getLogger(__name__)

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict[str, Any],
    "null": type(None),
}


class ArgumentValidationError(Exception):
    """Raised when capability arguments do not match the declared schema."""

    def __init__(self, tool_name: str, details: list[str]):
        self.tool_name = tool_name
        self.details = details
        super().__init__(f"Invalid arguments for {tool_name}: {'; '.join(details)}")


def _annotation_for(spec: dict[str, Any]) -> Any:
    """Map a JSON Schema property to a Python type annotation."""
    enum = spec.get("enum")
    if enum:
        return Literal[tuple(enum)]

    json_type = spec.get("type")
    if isinstance(json_type, list):
        types = tuple(_annotation_for({**spec, "type": t}) for t in json_type)
        if len(types) == 1:
            return types[0]
        union = types[0]
        for t in types[1:]:
            union = union | t
        return union

    if json_type == "array":
        items = spec.get("items") or {}
        return list[_annotation_for(items)] if items else list[Any]

    return _JSON_TYPES.get(json_type, Any)


def build_arguments_model(tool_name: str, schema: dict[str, Any]) -> type[BaseModel]:
    """
    Build a pydantic model for a capability's parameter schema.

    Required properties become required fields; optional properties
    default to their schema default (or None). Unknown arguments are
    kept so handlers that accept extras still see them.
    """
    properties: dict[str, dict[str, Any]] = schema.get("properties", {}) or {}
    required = set(schema.get("required", []) or [])

    fields: dict[str, Any] = {}
    for prop_name, spec in properties.items():
        annotation = _annotation_for(spec or {})
        description = (spec or {}).get("description")
        if prop_name in required:
            fields[prop_name] = (annotation, Field(..., description=description))
        else:
            default = (spec or {}).get("default")
            fields[prop_name] = (annotation | None, Field(default, description=description))

    model_name = "".join(part.capitalize() for part in tool_name.split("_")) + "Arguments"
    return create_model(
        model_name,
        __config__=ConfigDict(extra="allow"),
        **fields,
    )


def validate_arguments(
    tool_name: str,
    model: type[BaseModel],
    arguments: Any,
) -> dict[str, Any]:
    """
    Validate raw arguments against a generated model.

    Returns:
        Validated arguments as a plain dict; optional arguments the
        model omitted are filled from their schema defaults when set.

    Raises:
        ArgumentValidationError: If the arguments do not conform
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ArgumentValidationError(
            tool_name, [f"expected an object, got {type(arguments).__name__}"]
        )

    try:
        validated = model.model_validate(arguments)
    except ValidationError as e:
        details = []
        for err in e.errors():
            location = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
            details.append(f"{location}: {err.get('msg', 'invalid value')}")
        logger.debug(f"[tool_validation] {tool_name}: {e.error_count()} errors")
        raise ArgumentValidationError(tool_name, details) from e

    result = validated.model_dump(exclude_unset=True)
    result.update(validated.model_extra or {})
    for field_name, field_info in model.model_fields.items():
        if field_name not in result and field_info.default is not None:
            result[field_name] = field_info.default
    return result

"""Structural validation of decoded notebook documents."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from .logging import get_logger
from .models import CELL_TYPES, NBFORMAT_MAJOR, ValidationResult

__all__ = [
    "NOTEBOOK_STRUCTURE_SCHEMA",
    "REQUIRED_TOP_LEVEL_FIELDS",
    "validate_notebook",
]

logger = get_logger(__name__)

REQUIRED_TOP_LEVEL_FIELDS: tuple[str, ...] = ("cells", "metadata", "nbformat", "nbformat_minor")

# Only the shape the editor relies on; output records and metadata content
# are deliberately left open.
NOTEBOOK_STRUCTURE_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": list(REQUIRED_TOP_LEVEL_FIELDS),
    "properties": {
        "cells": {"type": "array", "items": {"$ref": "#/$defs/cell"}},
        "metadata": {"type": "object"},
        "nbformat": {"const": NBFORMAT_MAJOR},
        "nbformat_minor": {"type": "integer", "minimum": 0},
    },
    "$defs": {
        "cell": {
            "type": "object",
            "required": ["cell_type", "source"],
            "properties": {
                "cell_type": {"enum": list(CELL_TYPES)},
                "source": {
                    "anyOf": [
                        {"type": "string"},
                        {"type": "array", "items": {"type": "string"}},
                    ]
                },
            },
        },
    },
}

_REQUIRED_PROPERTY = re.compile(r"^'(?P<name>[^']+)' is a required property")

Draft202012Validator.check_schema(NOTEBOOK_STRUCTURE_SCHEMA)
_VALIDATOR = Draft202012Validator(NOTEBOOK_STRUCTURE_SCHEMA)


def validate_notebook(payload: Any) -> ValidationResult:
    """Check ``payload`` against the notebook's required structure.

    Problems are reported on the returned result, never raised. The first
    problem becomes the result's ``reason``: missing top-level fields, then a
    non-array ``cells``, then cells in index order.
    """

    result = ValidationResult()
    if not isinstance(payload, Mapping):
        result.add_error("Notebook must be a JSON object")
        return result

    missing = [name for name in REQUIRED_TOP_LEVEL_FIELDS if name not in payload]
    if missing:
        result.add_error(f"Missing required fields: {', '.join(missing)}")

    described = [_describe(error) for error in _VALIDATOR.iter_errors(dict(payload))]
    for _key, message, path in sorted(item for item in described if item is not None):
        result.add_error(message, path=path)

    if not result.valid:
        logger.debug("notebook.validate.failed", extra={"context": {"errors": len(result.errors)}})
    return result


def _describe(error: ValidationError) -> tuple[tuple[Any, ...], str, list[Any]] | None:
    path = list(error.absolute_path)

    if not path:
        # Missing top-level fields are reported together up front.
        return None

    field = path[0]
    if field != "cells":
        return (1, str(field)), _describe_top_level(field, error), path

    if len(path) == 1:
        return (2,), "'cells' must be an array", path

    index = path[1]
    if len(path) == 2 and error.validator == "type":
        return (3, index, 0), f"Cell at index {index} must be an object", path

    if len(path) == 2 and error.validator == "required":
        match = _REQUIRED_PROPERTY.match(error.message)
        name = match.group("name") if match else "field"
        if name == "cell_type":
            return (3, index, 1), f"Invalid cell_type at index {index}: missing", path
        return (3, index, 2), f"Missing '{name}' in cell at index {index}", path

    if path[2:] == ["cell_type"]:
        return (3, index, 1), f"Invalid cell_type at index {index}: {error.instance}", path

    if path[2:3] == ["source"]:
        return (3, index, 2), f"Cell source at index {index} must be a string or list of strings", path

    return (3, index, 3), f"Cell at index {index}: {error.message}", path


def _describe_top_level(field: Any, error: ValidationError) -> str:
    if field == "nbformat":
        return f"Unsupported nbformat {error.instance!r}; expected {NBFORMAT_MAJOR}"
    if field == "metadata":
        return "'metadata' must be an object"
    return f"'{field}' {error.message}"

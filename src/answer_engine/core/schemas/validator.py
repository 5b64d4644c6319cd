"""
Schema Validation Utilities

Validates raw answer key and detection payloads against JSON Schemas
before the normalizer migrates them.

The schemas are deliberately permissive about *which* legacy field names
appear (camelCase, snake_case, single vs. list answers) and strict about
the *types* those fields carry, so shape errors surface with a JSON path
instead of as a confusing failure deep inside the normalizer.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema


# Load schemas lazily
_SCHEMAS: dict[str, dict] = {}


def _load_schema(name: str) -> dict:
    """Load a schema from the schemas directory."""
    if name not in _SCHEMAS:
        schema_path = Path(__file__).parent / f"{name}.schema.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")
        with open(schema_path, "r", encoding="utf-8") as f:
            _SCHEMAS[name] = json.load(f)
    return _SCHEMAS[name]


class ValidationError(Exception):
    """Raised when data fails schema validation."""

    def __init__(self, message: str, path: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.path = path
        self.errors = errors or []


def _validate(data: Any, schema_name: str) -> None:
    if not isinstance(data, dict):
        raise ValidationError(
            f"Expected an object, got {type(data).__name__}",
            path="",
        )
    schema = _load_schema(schema_name)
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        raise ValidationError(
            f"Schema validation failed: {first.message}",
            path=".".join(str(p) for p in first.absolute_path),
            errors=[e.message for e in errors],
        )


def validate_answer_key_payload(data: dict[str, Any]) -> None:
    """
    Validate a raw question record.

    Args:
        data: Question record in any supported legacy shape

    Raises:
        ValidationError: If a field has the wrong type or the question
            number is missing
    """
    _validate(data, "answer_key")


def validate_response_payload(data: dict[str, Any]) -> None:
    """
    Validate a raw detection record.

    Raises:
        ValidationError: If the record is not an object, has no question
            number, or a field has the wrong type
    """
    _validate(data, "response")

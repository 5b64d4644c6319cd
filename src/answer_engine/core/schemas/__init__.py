"""
Schemas Package

JSON schema definitions and validation utilities for raw payloads.
"""

from .validator import (
    validate_answer_key_payload,
    validate_response_payload,
    ValidationError,
)

__all__ = [
    "validate_answer_key_payload",
    "validate_response_payload",
    "ValidationError",
]

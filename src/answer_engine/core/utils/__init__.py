"""
Utils Package

Serialization helpers.
"""

from .serialization import (
    canonical_json,
    evaluation_to_json,
    load_answer_key_records,
    load_json_records,
    load_response_records,
    save_evaluation_json,
)

__all__ = [
    "canonical_json",
    "evaluation_to_json",
    "load_answer_key_records",
    "load_json_records",
    "load_response_records",
    "save_evaluation_json",
]

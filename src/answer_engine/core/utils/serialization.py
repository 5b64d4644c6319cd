"""
Serialization Utilities

JSON helpers shared by the command line, the file-backed repository and
the evaluation token.

Raw answer keys and detections are read as plain records; migrating
their legacy shapes is the normalizer's job, so nothing here interprets
field names beyond finding the list of records in a file.

Accepted file layouts:
- a JSON array of records
- a JSON object wrapping the array ("questions" for answer keys,
  "detected_answers" / "answers" / "responses" for detections)
- JSON Lines, one record per line (``.jsonl``)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

from ..models.evaluation import Evaluation


_ANSWER_KEY_CONTAINERS = ("questions", "answerKeys", "answer_keys")
_RESPONSE_CONTAINERS = ("detected_answers", "detectedAnswers", "answers", "responses")


def canonical_json(data: Any) -> str:
    """
    Deterministic JSON text: sorted keys, compact separators.

    Two equal structures always give byte-identical output.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


# ─────────────────────────────────────────────────────────────────────────────
# Record Loading
# ─────────────────────────────────────────────────────────────────────────────

def load_json_records(path: Path, containers: Sequence[str] = ()) -> list[dict[str, Any]]:
    """
    Load a list of JSON object records from a file.

    Args:
        path: .json or .jsonl file
        containers: Object keys that may wrap the record list

    Returns:
        List of record dictionaries

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not valid JSON or holds no record list
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Records file not found: {path}")

    if path.suffix == ".jsonl":
        records = []
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON at {path.name}:{line_num}: {e}") from e
        return _ensure_records(records, path)

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if isinstance(data, dict):
        for container in containers:
            if isinstance(data.get(container), list):
                return _ensure_records(data[container], path)
        raise ValueError(
            f"{path.name}: expected a list of records or an object with one of {list(containers)}"
        )
    if not isinstance(data, list):
        raise ValueError(f"{path.name}: expected a list of records, got {type(data).__name__}")
    return _ensure_records(data, path)


def _ensure_records(items: list, path: Path) -> list[dict[str, Any]]:
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"{path.name}: record {index} is {type(item).__name__}, not an object")
    return items


def load_answer_key_records(path: Path) -> list[dict[str, Any]]:
    """Load raw question records for one paper."""
    return load_json_records(path, _ANSWER_KEY_CONTAINERS)


def load_response_records(path: Path) -> list[dict[str, Any]]:
    """Load raw detection records for one submission."""
    return load_json_records(path, _RESPONSE_CONTAINERS)


# ─────────────────────────────────────────────────────────────────────────────
# Evaluation Output
# ─────────────────────────────────────────────────────────────────────────────

def evaluation_to_json(evaluation: Evaluation) -> str:
    return json.dumps(evaluation.to_dict(), indent=2, ensure_ascii=False)


def save_evaluation_json(evaluation: Evaluation, path: Path) -> None:
    """
    Write an evaluation to a JSON file.

    Args:
        evaluation: Evaluation to save
        path: Output path; parent directories are created
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(evaluation_to_json(evaluation))
        f.write("\n")

"""
Module: engine.config

Purpose:
    Configuration dataclasses for the evaluation engine. Immutable
    configuration with validation on construction.

Key Classes:
    - GradeTable: Ordered percentage thresholds mapped to letter grades
    - EngineConfig: Scoring penalty, fuzzy threshold, grade table, flags

Key Functions:
    - load_engine_config(): Read an EngineConfig from a JSON file

Used By:
    - engine.scoring: wrong_option_penalty, fuzzy_threshold
    - engine.grader: grade_table
    - engine.controller: everything, and the evaluation token
    - cli: --config
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Tuple

from answer_engine.core.models import Confidence


DEFAULT_GRADE_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (90.0, "A+"),
    (80.0, "A"),
    (70.0, "B+"),
    (60.0, "B"),
    (50.0, "C"),
    (40.0, "D"),
    (0.0, "F"),
)


# Decimal places kept when comparing a percentage to thresholds
GRADE_PRECISION = 9


def _format_threshold(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


@dataclass(frozen=True)
class GradeTable:
    """
    Percentage thresholds to letter grades (immutable).

    The grade is the label of the highest threshold <= percentage, so a
    percentage exactly on a threshold gets that threshold's label.

    Attributes:
        thresholds: (threshold, label) pairs; stored sorted descending

    Invariants:
        - at least one entry
        - a 0 threshold exists, so every percentage maps to a label
        - thresholds are unique and labels non-empty

    Example:
        >>> GradeTable().grade_for(80.0)
        'A'
        >>> GradeTable().grade_for(79.99)
        'B+'
    """

    thresholds: Tuple[Tuple[float, str], ...] = DEFAULT_GRADE_THRESHOLDS

    def __post_init__(self) -> None:
        """Validate and sort thresholds on construction."""
        if not self.thresholds:
            raise ValueError("grade table must not be empty")
        normalized = tuple(
            sorted(
                ((float(threshold), str(label)) for threshold, label in self.thresholds),
                key=lambda pair: pair[0],
                reverse=True,
            )
        )
        values = [threshold for threshold, _ in normalized]
        if len(set(values)) != len(values):
            raise ValueError(f"grade table has duplicate thresholds: {values}")
        if any(not math.isfinite(v) or v < 0 for v in values):
            raise ValueError(f"grade thresholds must be finite and non-negative: {values}")
        if values[-1] != 0.0:
            raise ValueError("grade table must contain a 0 threshold")
        if any(not label.strip() for _, label in normalized):
            raise ValueError("grade labels must not be empty")
        object.__setattr__(self, "thresholds", normalized)

    def grade_for(self, percentage: float) -> str:
        """
        Label of the highest threshold <= percentage.

        The percentage is rounded to GRADE_PRECISION places first, so float
        noise such as 59.99999999999999 still reaches the 60 threshold.
        """
        percentage = round(percentage, GRADE_PRECISION)
        for threshold, label in self.thresholds:
            if percentage >= threshold:
                return label
        # Only reachable for negative percentages, which aggregation never produces
        return self.thresholds[-1][1]

    @classmethod
    def from_mapping(cls, mapping: Mapping[Any, str]) -> GradeTable:
        """
        Build from a {threshold: label} mapping.

        Keys may be numbers or numeric strings (JSON object keys).
        """
        if not isinstance(mapping, Mapping):
            raise ValueError(f"grade table must be an object of threshold: label, got {mapping!r}")
        try:
            pairs = tuple((float(k), v) for k, v in mapping.items())
        except (TypeError, ValueError) as e:
            raise ValueError(f"grade thresholds must be numeric: {list(mapping)}") from e
        return cls(thresholds=pairs)

    def to_dict(self) -> Dict[str, str]:
        return {_format_threshold(t): label for t, label in self.thresholds}


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for an evaluation pass (immutable).

    Attributes:
        wrong_option_penalty: Credit removed per wrong multi_choice selection,
            in units of one correct option's weight (default 0.5)
        fuzzy_threshold: Minimum similarity ratio for FUZZY blank matches
        grade_table: Percentage to letter grade table
        validate_payloads: Check raw records against the JSON schemas
        low_confidence_levels: Confidence labels reported in diagnostics

    Invariants:
        - wrong_option_penalty >= 0
        - 0 < fuzzy_threshold <= 1

    Example:
        >>> config = EngineConfig(wrong_option_penalty=1.0)
        >>> config.grade_table.grade_for(95)
        'A+'
    """

    wrong_option_penalty: float = 0.5
    fuzzy_threshold: float = 0.8
    grade_table: GradeTable = field(default_factory=GradeTable)
    validate_payloads: bool = True
    low_confidence_levels: FrozenSet[Confidence] = frozenset({Confidence.LOW})

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        penalty = self.wrong_option_penalty
        if isinstance(penalty, bool) or not isinstance(penalty, (int, float)):
            raise ValueError(f"wrong_option_penalty must be a number: {penalty!r}")
        if not math.isfinite(penalty) or penalty < 0:
            raise ValueError(f"wrong_option_penalty must be non-negative: {penalty}")
        threshold = self.fuzzy_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValueError(f"fuzzy_threshold must be a number: {threshold!r}")
        if not (0 < threshold <= 1):
            raise ValueError(f"fuzzy_threshold must be in (0, 1]: {self.fuzzy_threshold}")
        object.__setattr__(
            self,
            "low_confidence_levels",
            frozenset(Confidence(str(level)) for level in self.low_confidence_levels),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EngineConfig:
        """
        Build from a JSON-style mapping.

        Keys are the field names (snake_case) or their camelCase spelling.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        aliases = {
            "wrongOptionPenalty": "wrong_option_penalty",
            "fuzzyThreshold": "fuzzy_threshold",
            "gradeTable": "grade_table",
            "validatePayloads": "validate_payloads",
            "lowConfidenceLevels": "low_confidence_levels",
        }
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = aliases.get(raw_key, raw_key)
            if key not in known:
                raise ValueError(f"Unknown engine config key: {raw_key!r}")
            kwargs[key] = value

        if "grade_table" in kwargs and not isinstance(kwargs["grade_table"], GradeTable):
            kwargs["grade_table"] = GradeTable.from_mapping(kwargs["grade_table"])
        if "low_confidence_levels" in kwargs:
            try:
                kwargs["low_confidence_levels"] = frozenset(
                    Confidence(str(v).lower()) for v in kwargs["low_confidence_levels"]
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid low_confidence_levels: {e}") from e
        if "wrong_option_penalty" in kwargs and isinstance(kwargs["wrong_option_penalty"], str):
            kwargs["wrong_option_penalty"] = float(kwargs["wrong_option_penalty"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Canonical dictionary; part of the evaluation token."""
        return {
            "wrongOptionPenalty": self.wrong_option_penalty,
            "fuzzyThreshold": self.fuzzy_threshold,
            "gradeTable": self.grade_table.to_dict(),
            "validatePayloads": self.validate_payloads,
            "lowConfidenceLevels": sorted(c.value for c in self.low_confidence_levels),
        }


def load_engine_config(path: Path) -> EngineConfig:
    """
    Load an EngineConfig from a JSON file.

    Args:
        path: JSON file containing an object of config keys

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the JSON is invalid or contains bad values
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in engine config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Engine config must be a JSON object: {path}")
    return EngineConfig.from_dict(data)

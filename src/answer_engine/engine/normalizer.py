"""
Module: engine.normalizer

Purpose:
    Convert heterogeneous question records into canonical AnswerKey
    objects, and raw detector output into DetectedResponse objects.
    Shape migration happens here once; nothing downstream sees legacy
    payloads.

Key Functions:
    - normalize_answer_key(): One raw question record -> AnswerKey
    - normalize_answer_keys(): Whole paper, sorted, unique question numbers
    - parse_response(): One raw detection record -> DetectedResponse
    - parse_responses(): Many detections, input order kept

Supported legacy shapes:
    - correct answers as a list, a JSON-encoded list string, a comma-joined
      string, or a single legacy ``correct_option`` string
    - options as {id: text} or [{id, text, isCorrect, weight}]
    - weights as {id: weight} ("weightages") or [{id, weight}]
    - blanks as a flat list, a list of alternative lists, a {position: ...}
      mapping, or ``blank_positions`` records with per-blank points

Used By:
    - engine.controller
    - storage adapters (answer keys loaded as raw records)
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from answer_engine.core.models import (
    AnswerKey,
    BlankMatchMode,
    Confidence,
    DetectedResponse,
    InvalidAnswerKey,
    InvalidResponse,
    QuestionFormat,
    canonical_option_id,
)
from answer_engine.core.schemas import (
    ValidationError,
    validate_answer_key_payload,
    validate_response_payload,
)

logger = logging.getLogger(__name__)

RawRecord = Mapping[str, Any]

_QUESTION_NUMBER_KEYS = ("questionNumber", "question_number")
_FORMAT_KEYS = ("format", "questionFormat", "question_format")
_MULTI_ANSWER_KEYS = ("correctOptionIds", "correct_option_ids", "correctOptions", "correct_options")
_SINGLE_ANSWER_KEYS = ("correctOption", "correct_option")
_WEIGHT_KEYS = ("optionWeights", "option_weights", "weightages")
_POINTS_KEYS = ("pointsPerBlank", "points_per_blank", "totalMarks", "points")
_EXPECTED_KEYS = ("expectedBlankAnswers", "expected_blank_answers", "expectedAnswers", "expected_answers")
_BLANK_POSITION_KEYS = ("blankPositions", "blank_positions")
_MATCH_TYPE_KEYS = ("matchType", "match_type")

_FORMAT_ALIASES = {
    "single_choice": QuestionFormat.SINGLE_CHOICE,
    "single": QuestionFormat.SINGLE_CHOICE,
    "mcq": QuestionFormat.SINGLE_CHOICE,
    "multi_choice": QuestionFormat.MULTI_CHOICE,
    "multiple_select": QuestionFormat.MULTI_CHOICE,
    "multi_select": QuestionFormat.MULTI_CHOICE,
    "fill_in_blank": QuestionFormat.FILL_IN_BLANK,
    "fill_blanks": QuestionFormat.FILL_IN_BLANK,
    "fill_blank": QuestionFormat.FILL_IN_BLANK,
    "text": QuestionFormat.FILL_IN_BLANK,
    "short_answer": QuestionFormat.FILL_IN_BLANK,
}
# "multiple_choice" is resolved by the number of correct answers
_AMBIGUOUS_CHOICE = ("multiple_choice", "choice", "omr")

# Placeholder the question extractor writes when no answer was visible
_UNKNOWN_ANSWER = "unknown"


# ─────────────────────────────────────────────────────────────────────────────
# Field helpers
# ─────────────────────────────────────────────────────────────────────────────

def _first_present(record: RawRecord, keys: Sequence[str]) -> Any:
    """Value of the first key present with a non-None value."""
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _coerce_positive_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _split_answer_list(value: Any) -> List[str]:
    """
    Flatten the legacy answer shapes to a list of raw strings.

    Handles lists, JSON-encoded list strings, comma-joined strings and
    single scalars. Empty entries are dropped.
    """
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = None
            if isinstance(decoded, list):
                return _split_answer_list(decoded)
        if "," in text:
            return [part.strip() for part in text.split(",") if part.strip()]
        return [text]
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if item is None or isinstance(item, (dict, list, tuple)):
                continue
            text = str(item).strip()
            if text:
                items.append(text)
        return items
    return [str(value).strip()] if str(value).strip() else []


def _dedupe(items: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return tuple(ordered)


def _parse_options(
    raw: Any,
    question_number: int,
) -> Tuple[Tuple[Tuple[str, str], ...], List[str], Dict[str, Any]]:
    """
    Parse the options field.

    Returns:
        (options, ids flagged isCorrect, weights carried on option objects)
    """
    if raw is None:
        return (), [], {}
    options: List[Tuple[str, str]] = []
    flagged: List[str] = []
    weights: Dict[str, Any] = {}

    if isinstance(raw, Mapping):
        for option_id, text in raw.items():
            options.append((canonical_option_id(option_id), "" if text is None else str(text)))
    elif isinstance(raw, (list, tuple)):
        for entry in raw:
            if isinstance(entry, Mapping):
                if entry.get("id") is None:
                    continue
                option_id = canonical_option_id(entry["id"])
                text = entry.get("text")
                options.append((option_id, "" if text is None else str(text)))
                if entry.get("isCorrect") or entry.get("is_correct"):
                    flagged.append(option_id)
                if "weight" in entry:
                    weights[option_id] = entry["weight"]
            elif entry is not None and str(entry).strip():
                # Bare ids: ["A", "B", "C", "D"]
                option_id = canonical_option_id(entry)
                options.append((option_id, option_id))
    else:
        raise InvalidAnswerKey(
            f"Q{question_number}: options must be a mapping or a list",
            question_number=question_number,
            path="options",
        )

    seen = set()
    unique = []
    for option_id, text in options:
        if option_id and option_id not in seen:
            seen.add(option_id)
            unique.append((option_id, text))
    return tuple(unique), flagged, weights


def _parse_weight_field(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return {canonical_option_id(k): v for k, v in raw.items()}
    if isinstance(raw, (list, tuple)):
        return {
            canonical_option_id(entry["id"]): entry.get("weight")
            for entry in raw
            if isinstance(entry, Mapping) and entry.get("id") is not None
        }
    return {}


def _resolve_weights(
    question_number: int,
    correct_ids: Sequence[str],
    raw_weights: Mapping[str, Any],
) -> Tuple[Tuple[str, float], ...]:
    """
    One weight per correct option, in correct-id order.

    Missing or unusable weights default to 1; they are never read as 0.
    Weights for options that are not correct are ignored.
    """
    resolved = []
    for option_id in correct_ids:
        raw = raw_weights.get(option_id)
        weight = _coerce_float(raw)
        if weight is None or weight < 0:
            if raw is not None:
                logger.debug(
                    f"Q{question_number}: weight {raw!r} for option {option_id} unusable, using 1"
                )
            weight = 1.0
        resolved.append((option_id, weight))
    ignored = sorted(set(raw_weights) - set(correct_ids))
    if ignored:
        logger.debug(f"Q{question_number}: ignoring weights for non-correct options {ignored}")
    return tuple(resolved)


def _parse_match_mode(raw: Any, question_number: int) -> BlankMatchMode:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return BlankMatchMode.EXACT
    try:
        return BlankMatchMode(str(raw).strip().lower())
    except ValueError as e:
        raise InvalidAnswerKey(
            f"Q{question_number}: unknown blank match type {raw!r}",
            question_number=question_number,
            path="matchType",
        ) from e


def _alternatives(raw: Any) -> Tuple[str, ...]:
    """Acceptable answers for one blank, placeholders removed."""
    values = raw if isinstance(raw, (list, tuple)) else [raw]
    alternatives = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text and text.lower() != _UNKNOWN_ANSWER:
            alternatives.append(text)
    return tuple(alternatives)


def _parse_expected_blanks(raw: Any) -> List[Tuple[str, ...]]:
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        ordered = []
        for key, value in raw.items():
            position = _coerce_positive_int(key)
            if position is not None:
                ordered.append((position, value))
        return [_alternatives(value) for _, value in sorted(ordered, key=lambda p: p[0])]
    if isinstance(raw, (list, tuple)):
        return [_alternatives(value) for value in raw]
    return [_alternatives(raw)]


def _parse_blank_positions(
    raw: Any,
    question_number: int,
) -> Tuple[List[Tuple[str, ...]], List[BlankMatchMode], Optional[float]]:
    """
    Parse blank_positions records: [{position, expectedAnswers, points, matchType}].

    Returns:
        (alternatives per blank, match mode per blank, summed points or None)
    """
    if isinstance(raw, Mapping):
        raw = list(raw.values())
    if not isinstance(raw, (list, tuple)):
        return [], [], None

    entries = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            continue
        position = _coerce_positive_int(entry.get("position")) or index + 1
        entries.append((position, entry))
    entries.sort(key=lambda pair: pair[0])

    alternatives: List[Tuple[str, ...]] = []
    modes: List[BlankMatchMode] = []
    points_total = 0.0
    saw_points = False
    for _, entry in entries:
        expected = entry.get("expectedAnswers", entry.get("expected_answers"))
        alternatives.append(_alternatives(expected))
        modes.append(_parse_match_mode(entry.get("matchType", entry.get("match_type")), question_number))
        points = _coerce_float(entry.get("points"))
        if points is not None:
            saw_points = True
            points_total += points
        else:
            points_total += 1.0
    return alternatives, modes, (points_total if saw_points else None)


def _resolve_format(
    raw_format: Any,
    question_number: int,
    correct_ids: Sequence[str],
    has_blanks: bool,
) -> QuestionFormat:
    if raw_format is None or (isinstance(raw_format, str) and not raw_format.strip()):
        if has_blanks and not correct_ids:
            return QuestionFormat.FILL_IN_BLANK
        return QuestionFormat.MULTI_CHOICE if len(correct_ids) > 1 else QuestionFormat.SINGLE_CHOICE

    name = str(raw_format).strip().lower()
    if name in _AMBIGUOUS_CHOICE:
        return QuestionFormat.MULTI_CHOICE if len(correct_ids) > 1 else QuestionFormat.SINGLE_CHOICE
    if name in _FORMAT_ALIASES:
        return _FORMAT_ALIASES[name]
    raise InvalidAnswerKey(
        f"Q{question_number}: unknown question format {raw_format!r}",
        question_number=question_number,
        path="format",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Answer keys
# ─────────────────────────────────────────────────────────────────────────────

def normalize_answer_key(
    record: Union[RawRecord, AnswerKey],
    *,
    validate: bool = True,
) -> AnswerKey:
    """
    Convert one raw question record into a canonical AnswerKey.

    Rules:
    1. A multi-answer field wins over a single-answer field.
    2. Missing or unusable weights for correct options default to 1.
    3. A key with no correct option / acceptable blank answer, or with
       non-positive points, is rejected.

    Args:
        record: Raw question mapping, or an AnswerKey (returned unchanged)
        validate: Check the record against answer_key.schema.json first

    Returns:
        Validated AnswerKey

    Raises:
        InvalidAnswerKey: If the record is malformed or under-specified

    Example:
        >>> key = normalize_answer_key({"question_number": 4,
        ...                             "correct_option": "b",
        ...                             "correct_options": "A, C"})
        >>> key.format, key.correct_option_ids
        (<QuestionFormat.MULTI_CHOICE: 'multi_choice'>, ('A', 'C'))
    """
    if isinstance(record, AnswerKey):
        return record
    if not isinstance(record, Mapping):
        raise InvalidAnswerKey(f"Question record must be a mapping, got {type(record).__name__}")

    if validate:
        try:
            validate_answer_key_payload(dict(record))
        except ValidationError as e:
            raw_qn = _first_present(record, _QUESTION_NUMBER_KEYS)
            raise InvalidAnswerKey(
                f"Question record {raw_qn!r} failed validation: {e}",
                question_number=_coerce_positive_int(raw_qn),
                path=e.path,
            ) from e

    question_number = _coerce_positive_int(_first_present(record, _QUESTION_NUMBER_KEYS))
    if question_number is None:
        raise InvalidAnswerKey(
            f"Question record has no positive question number: "
            f"{_first_present(record, _QUESTION_NUMBER_KEYS)!r}",
            path="questionNumber",
        )

    options, flagged_ids, option_weights = _parse_options(record.get("options"), question_number)

    # Multi-answer field generalizes the single one, so it wins when present
    multi_raw = _split_answer_list(_first_present(record, _MULTI_ANSWER_KEYS))
    single_raw = _split_answer_list(_first_present(record, _SINGLE_ANSWER_KEYS))
    answer_texts = multi_raw or single_raw[:1]
    if multi_raw and single_raw:
        logger.debug(f"Q{question_number}: both single and multi answers given, using multi")
    if not answer_texts and flagged_ids:
        answer_texts = flagged_ids

    # Blanks
    blank_alternatives, blank_modes, blank_points = _parse_blank_positions(
        _first_present(record, _BLANK_POSITION_KEYS), question_number
    )
    if not blank_alternatives:
        blank_alternatives = _parse_expected_blanks(_first_present(record, _EXPECTED_KEYS))
        blank_modes = []

    fmt = _resolve_format(
        _first_present(record, _FORMAT_KEYS),
        question_number,
        answer_texts,
        has_blanks=bool(blank_alternatives),
    )

    points_raw = _first_present(record, _POINTS_KEYS)
    if points_raw is None:
        points = blank_points if (fmt is QuestionFormat.FILL_IN_BLANK and blank_points) else 1.0
    else:
        points = _coerce_float(points_raw)
        if points is None:
            raise InvalidAnswerKey(
                f"Q{question_number}: points value {points_raw!r} is not a number",
                question_number=question_number,
                path="pointsPerBlank",
            )

    if fmt is QuestionFormat.FILL_IN_BLANK:
        if not blank_alternatives and answer_texts:
            # Text questions stored their answer in the correct-answer column
            blank_alternatives = [tuple(a for a in answer_texts if a.lower() != _UNKNOWN_ANSWER)]
        if not blank_modes:
            mode = _parse_match_mode(_first_present(record, _MATCH_TYPE_KEYS), question_number)
            blank_modes = [mode] * len(blank_alternatives)
        return AnswerKey(
            question_number=question_number,
            format=fmt,
            points=points,
            expected_blank_answers=tuple(blank_alternatives),
            blank_match_modes=tuple(blank_modes),
        )

    correct_ids = _dedupe(canonical_option_id(a) for a in answer_texts)
    if fmt is QuestionFormat.SINGLE_CHOICE and len(correct_ids) > 1:
        logger.warning(
            f"Q{question_number}: single_choice key lists {len(correct_ids)} correct options "
            f"{list(correct_ids)}; {correct_ids[0]} is treated as the answer"
        )

    raw_weights = dict(option_weights)
    raw_weights.update(_parse_weight_field(_first_present(record, _WEIGHT_KEYS)))

    return AnswerKey(
        question_number=question_number,
        format=fmt,
        points=points,
        options=options,
        correct_option_ids=correct_ids,
        option_weights=_resolve_weights(question_number, correct_ids, raw_weights),
    )


def normalize_answer_keys(
    records: Iterable[Union[RawRecord, AnswerKey]],
    *,
    validate: bool = True,
) -> Tuple[AnswerKey, ...]:
    """
    Normalize a whole paper's answer keys.

    Returns:
        AnswerKeys sorted by question number

    Raises:
        InvalidAnswerKey: On the first invalid record, or when a question
            number appears twice
    """
    keys: Dict[int, AnswerKey] = {}
    for record in records:
        key = normalize_answer_key(record, validate=validate)
        if key.question_number in keys:
            raise InvalidAnswerKey(
                f"Duplicate answer key for question {key.question_number}",
                question_number=key.question_number,
                path="questionNumber",
            )
        keys[key.question_number] = key
    logger.debug(f"Normalized {len(keys)} answer keys")
    return tuple(keys[qn] for qn in sorted(keys))


# ─────────────────────────────────────────────────────────────────────────────
# Detected responses
# ─────────────────────────────────────────────────────────────────────────────

def _parse_blank_answers(raw: Any) -> Tuple[str, ...]:
    """
    Detected blank strings in position order.

    Accepts ["x", "y"], [{"position": 2, "answer": "y"}, ...] or
    {"1": "x", "2": "y"}. Missing positions become empty strings.
    """
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        raw = [{"position": k, "answer": v} for k, v in raw.items()]
    if not isinstance(raw, (list, tuple)):
        return (str(raw),)

    if not any(isinstance(item, Mapping) for item in raw):
        return tuple("" if item is None else str(item) for item in raw)

    by_position: Dict[int, str] = {}
    next_position = 1
    for item in raw:
        if isinstance(item, Mapping):
            position = _coerce_positive_int(item.get("position")) or next_position
            answer = item.get("answer")
        else:
            position, answer = next_position, item
        by_position.setdefault(position, "" if answer is None else str(answer))
        next_position = max(next_position, position + 1)
    if not by_position:
        return ()
    return tuple(by_position.get(p, "") for p in range(1, max(by_position) + 1))


def parse_response(
    record: Union[RawRecord, DetectedResponse],
    *,
    validate: bool = True,
) -> DetectedResponse:
    """
    Convert one raw detection record into a DetectedResponse.

    Args:
        record: Detector output for one question, or a DetectedResponse
        validate: Check against response.schema.json first

    Raises:
        InvalidResponse: If the record has no usable question number or
            fails validation
    """
    if isinstance(record, DetectedResponse):
        return record
    if not isinstance(record, Mapping):
        raise InvalidResponse(f"Detection record must be a mapping, got {type(record).__name__}")

    if validate:
        try:
            validate_response_payload(dict(record))
        except ValidationError as e:
            raise InvalidResponse(f"Detection record failed validation at {e.path!r}: {e}") from e

    raw_qn = _first_present(record, ("questionNumber", "question_number", "question"))
    question_number = _coerce_positive_int(raw_qn)
    if question_number is None:
        raise InvalidResponse(f"Detection record has no positive question number: {raw_qn!r}")

    selected = _split_answer_list(
        _first_present(record, ("selectedOptionIds", "selectedOptions", "selected_options"))
    )
    if not selected:
        selected = _split_answer_list(_first_present(record, ("selectedOption", "selected_option")))[:1]

    return DetectedResponse(
        question_number=question_number,
        selected_option_ids=frozenset(selected),
        blank_answers=_parse_blank_answers(_first_present(record, ("blankAnswers", "blank_answers"))),
        confidence=Confidence.parse(record.get("confidence")),
        marking_type=str(_first_present(record, ("markingType", "marking_type")) or "unknown"),
    )


def parse_responses(
    records: Iterable[Union[RawRecord, DetectedResponse]],
    *,
    validate: bool = True,
) -> Tuple[DetectedResponse, ...]:
    """Parse many detection records, keeping input order."""
    return tuple(parse_response(record, validate=validate) for record in records)

"""
Module: engine.scoring.choice

Purpose:
    Scoring rules for option-selection questions.

Key Functions:
    - score_single_choice(): All-or-nothing against the primary answer
    - score_multi_choice(): Weighted partial credit with a wrong-option penalty

Key Classes:
    - Score: earned credit, exact-match flag and explanation

Used By:
    - engine.scoring.scorer
    - engine.scoring.blanks (Score)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet

from answer_engine.core.models import AnswerKey


@dataclass(frozen=True)
class Score:
    """Outcome of one scoring rule before it is wrapped in a QuestionResult."""
    earned: float
    fully_correct: bool
    explanation: str


def score_single_choice(key: AnswerKey, selected: FrozenSet[str]) -> Score:
    """
    Score a single_choice question.

    Full credit iff the selection is exactly {primary answer}; any other
    selection earns 0. Option ids absent from the key's options count as
    wrong, never as errors.

    Example:
        >>> score_single_choice(key_b, frozenset({"B", "D"})).explanation
        'expected B, got B,D'
    """
    primary = key.primary_option_id
    if not selected:
        return Score(0.0, False, "unanswered")
    if selected == {primary}:
        return Score(float(key.points), True, "correct")
    return Score(0.0, False, f"expected {primary}, got {','.join(sorted(selected))}")


def score_multi_choice(
    key: AnswerKey,
    selected: FrozenSet[str],
    wrong_option_penalty: float = 0.5,
) -> Score:
    """
    Score a multi_choice question with partial credit.

    Formula (C = correct ids, S = selection, w = option weight):

        net    = sum(w[c] for c in C & S) - |S - C| * penalty
        earned = min(points, max(0, points * net / sum(w[c] for c in C)))

    The penalty is in units of one option's weight, so uniform weights of
    1 give (correctCount - 0.5 * wrongCount) / totalCorrect. Selected
    weights are summed in key order, the same order as total_weight, so a
    complete selection earns exactly the key's points.

    Args:
        key: multi_choice answer key
        selected: Canonical selected option ids
        wrong_option_penalty: Credit removed per wrong selection

    Example:
        >>> key = AnswerKey(1, QuestionFormat.MULTI_CHOICE, 2.0,
        ...                 correct_option_ids=("A", "C"))
        >>> score_multi_choice(key, frozenset({"A", "B"})).earned
        0.5
    """
    correct_weight = 0.0
    correct_count = 0
    for option_id, weight in key.option_weights:
        if option_id in selected:
            correct_weight += weight
            correct_count += 1
    wrong_count = len(selected - key.correct_set)

    net_weight = correct_weight - wrong_count * wrong_option_penalty
    if net_weight >= key.total_weight:
        earned = float(key.points)
    else:
        # Multiply before dividing: 3 * 3 / 5 is exactly 1.8, (3 / 5) * 3 is not
        earned = max(0.0, key.points * net_weight / key.total_weight)

    return Score(
        earned=earned,
        fully_correct=selected == key.correct_set,
        explanation=f"{correct_count}/{len(key.correct_option_ids)} correct, {wrong_count} wrong",
    )

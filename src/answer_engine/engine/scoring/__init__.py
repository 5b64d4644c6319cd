"""
Module: engine.scoring

Purpose:
    Format-specific scoring rules. Each rule is a pure function of an
    answer key and a detection and returns a bounded partial-credit value.

Key Functions:
    - score_question(): Dispatch on the key's format
    - score_single_choice(): Exact match against the primary answer
    - score_multi_choice(): Weighted partial credit, clamped at zero
    - score_fill_in_blank(): Proportional credit per matched blank
    - blank_matches(): exact / contains / fuzzy comparison of one blank

Used By:
    - engine.controller
"""

from .choice import Score, score_multi_choice, score_single_choice
from .blanks import blank_matches, normalize_blank_text, score_fill_in_blank
from .scorer import score_all, score_question

__all__ = [
    "Score",
    "score_single_choice",
    "score_multi_choice",
    "blank_matches",
    "normalize_blank_text",
    "score_fill_in_blank",
    "score_question",
    "score_all",
]

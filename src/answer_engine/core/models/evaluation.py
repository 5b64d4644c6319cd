"""
Module: evaluation

Purpose:
    Top-level output of the orchestrator and the identity under which it
    is persisted.

Key Classes:
    - SubmissionIdentity: (paper_id, student_id) logical submission key
    - Evaluation: SubmissionResult + Diagnostics + evaluation token

Used By:
    - engine.controller
    - storage.repository
"""

from __future__ import annotations

from dataclasses import dataclass

from .diagnostics import Diagnostics
from .results import SubmissionResult


@dataclass(frozen=True)
class SubmissionIdentity:
    """
    Identity of one logical submission.

    At most one stored result exists per identity; re-evaluation replaces
    it rather than adding a second record.

    Attributes:
        paper_id: Paper (answer key set) identifier
        student_id: Student identifier (name/roll number as the caller sees fit)
    """

    paper_id: str
    student_id: str

    def __post_init__(self) -> None:
        if not str(self.paper_id).strip():
            raise ValueError("paper_id must not be empty")
        if not str(self.student_id).strip():
            raise ValueError("student_id must not be empty")

    @property
    def label(self) -> str:
        """Display form for logs; not unique, never used as a storage key."""
        return f"{self.paper_id}/{self.student_id}"

    def to_dict(self) -> dict:
        return {"paperId": self.paper_id, "studentId": self.student_id}

    @classmethod
    def from_dict(cls, data: dict) -> SubmissionIdentity:
        return cls(paper_id=str(data["paperId"]), student_id=str(data["studentId"]))


@dataclass(frozen=True)
class Evaluation:
    """
    Complete, immutable output of one evaluation pass.

    Attributes:
        result: The graded submission
        diagnostics: Non-fatal findings
        evaluation_token: sha256 hex digest of the normalized inputs and
            scoring configuration; equal inputs give equal tokens
    """

    result: SubmissionResult
    diagnostics: Diagnostics
    evaluation_token: str

    def to_dict(self) -> dict:
        return {
            "result": self.result.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
            "evaluationToken": self.evaluation_token,
        }

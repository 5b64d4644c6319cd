"""
Module: storage.repository

Purpose:
    Narrow persistence interface used by the orchestrator, plus the
    upsert rule every adapter applies and an in-memory adapter.

    Results are keyed by (paper_id, student_id). A second write for the
    same identity replaces the first instead of adding a record, and a
    write carrying the same evaluation token as the stored one is a
    no-op. Duplicate submissions therefore cannot be stored.

Key Classes:
    - SubmissionRepository: Abstract interface (load keys, save/get result)
    - InMemoryRepository: Thread-safe dict-backed adapter for tests and
      single-process callers
    - StoredResult: What an adapter keeps per identity
    - SaveOutcome: created / replaced / unchanged
    - RepositoryError, PaperNotFoundError

Key Functions:
    - resolve_upsert(): The write rule shared by all adapters

Used By:
    - engine.controller.grade_submission
    - storage.json_store
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from answer_engine.core.models import Evaluation, SubmissionIdentity, SubmissionResult

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Storage could not be read or written."""
    pass


class PaperNotFoundError(RepositoryError):
    """No answer keys are stored for the requested paper."""
    pass


class SaveOutcome(str, Enum):
    """What save_result() did."""
    CREATED = "created"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class StoredResult:
    """
    Persisted result for one submission identity.

    Attributes:
        identity: (paper_id, student_id)
        evaluation_token: Token of the evaluation that produced the result
        revision: 1 on first write, +1 on every replacement
        result: The stored SubmissionResult
    """
    identity: SubmissionIdentity
    evaluation_token: str
    revision: int
    result: SubmissionResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.identity.to_dict(),
            "evaluationToken": self.evaluation_token,
            "revision": self.revision,
            "result": self.result.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StoredResult:
        return cls(
            identity=SubmissionIdentity.from_dict(data),
            evaluation_token=data["evaluationToken"],
            revision=int(data["revision"]),
            result=SubmissionResult.from_dict(data["result"]),
        )


def resolve_upsert(
    existing: Optional[StoredResult],
    identity: SubmissionIdentity,
    evaluation: Evaluation,
) -> Tuple[SaveOutcome, StoredResult]:
    """
    Decide what a write for an identity does.

    Returns:
        (outcome, record to keep). For UNCHANGED the record is `existing`.
    """
    if existing is None:
        return SaveOutcome.CREATED, StoredResult(
            identity=identity,
            evaluation_token=evaluation.evaluation_token,
            revision=1,
            result=evaluation.result,
        )
    if existing.evaluation_token == evaluation.evaluation_token:
        return SaveOutcome.UNCHANGED, existing
    return SaveOutcome.REPLACED, StoredResult(
        identity=identity,
        evaluation_token=evaluation.evaluation_token,
        revision=existing.revision + 1,
        result=evaluation.result,
    )


class SubmissionRepository(ABC):
    """
    Persistence collaborator for the orchestrator.

    Implementations own connection and retry concerns. The engine only
    calls these three methods and passes the repository in explicitly.
    """

    @abstractmethod
    def load_answer_keys(self, paper_id: str) -> List[Mapping[str, Any]]:
        """
        Raw question records for a paper, in any supported shape.

        Raises:
            PaperNotFoundError: If the paper is unknown
            RepositoryError: If storage cannot be read
        """

    @abstractmethod
    def save_result(
        self,
        identity: SubmissionIdentity,
        evaluation: Evaluation,
    ) -> SaveOutcome:
        """
        Store the result for an identity with upsert semantics.

        Returns:
            CREATED, REPLACED or UNCHANGED (see resolve_upsert)
        """

    @abstractmethod
    def get_result(self, identity: SubmissionIdentity) -> Optional[StoredResult]:
        """Stored result for an identity, or None."""


class InMemoryRepository(SubmissionRepository):
    """
    Dict-backed repository.

    Safe to share between threads; every write holds one lock.

    Example:
        >>> repo = InMemoryRepository({"paper-1": [{"question_number": 1, "correct_option": "B"}]})
        >>> repo.load_answer_keys("paper-1")[0]["correct_option"]
        'B'
    """

    def __init__(self, papers: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None):
        self._lock = threading.Lock()
        self._papers: Dict[str, List[Mapping[str, Any]]] = {}
        self._results: Dict[SubmissionIdentity, StoredResult] = {}
        for paper_id, records in (papers or {}).items():
            self.add_paper(paper_id, records)

    def add_paper(self, paper_id: str, records: Iterable[Mapping[str, Any]]) -> None:
        with self._lock:
            self._papers[paper_id] = [dict(r) for r in records]

    def load_answer_keys(self, paper_id: str) -> List[Mapping[str, Any]]:
        with self._lock:
            if paper_id not in self._papers:
                raise PaperNotFoundError(f"Unknown paper: {paper_id}")
            return [dict(r) for r in self._papers[paper_id]]

    def save_result(
        self,
        identity: SubmissionIdentity,
        evaluation: Evaluation,
    ) -> SaveOutcome:
        with self._lock:
            outcome, record = resolve_upsert(
                self._results.get(identity), identity, evaluation
            )
            if outcome is not SaveOutcome.UNCHANGED:
                self._results[identity] = record
        logger.debug(f"{identity.label}: {outcome} (revision {record.revision})")
        return outcome

    def get_result(self, identity: SubmissionIdentity) -> Optional[StoredResult]:
        with self._lock:
            return self._results.get(identity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

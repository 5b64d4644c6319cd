"""
Module: storage.json_store

Purpose:
    File-backed SubmissionRepository for command-line use and small
    deployments.

Directory layout:
    <root>/papers/<paper_id>.json   raw question records for one paper
    <root>/results.json             {"results": {"<paper>": {"<student>": StoredResult}}}

Every write to results.json is a locked read-modify-write, so several
processes may grade into the same directory. The upsert rule is applied
inside the lock, which makes the token comparison and the write atomic.

Dependencies:
    - portalocker (via storage.file_locking)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import portalocker

from answer_engine.core.models import Evaluation, SubmissionIdentity
from answer_engine.core.utils import load_answer_key_records

from .file_locking import (
    locked_file,
    locked_read_json,
    locked_read_modify_write_json,
    locked_write_json,
)
from .repository import (
    PaperNotFoundError,
    RepositoryError,
    SaveOutcome,
    StoredResult,
    SubmissionRepository,
    resolve_upsert,
)

logger = logging.getLogger(__name__)

_SAFE_PAPER_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _empty_results() -> Dict[str, Any]:
    return {"results": {}}


class JsonFileRepository(SubmissionRepository):
    """
    Repository rooted at a directory of JSON files.

    Example:
        >>> repo = JsonFileRepository(Path("grading"))
        >>> repo.add_paper("physics-2024", records)
        >>> outcome = repo.save_result(identity, evaluation)
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.papers_dir = self.root / "papers"
        self.results_path = self.root / "results.json"

    def _paper_path(self, paper_id: str) -> Path:
        if not _SAFE_PAPER_ID.match(paper_id):
            raise RepositoryError(f"Paper id not usable as a file name: {paper_id!r}")
        return self.papers_dir / f"{paper_id}.json"

    def add_paper(self, paper_id: str, records: Iterable[Mapping[str, Any]]) -> Path:
        """Write a paper's raw question records; replaces an existing file."""
        path = self._paper_path(paper_id)
        locked_write_json(path, [dict(r) for r in records])
        logger.debug(f"Stored answer keys for {paper_id} at {path}")
        return path

    def load_answer_keys(self, paper_id: str) -> List[Mapping[str, Any]]:
        path = self._paper_path(paper_id)
        if not path.exists():
            raise PaperNotFoundError(f"No answer keys for paper {paper_id!r} in {self.papers_dir}")
        try:
            with locked_file(path, 'r', portalocker.LOCK_SH):
                return load_answer_key_records(path)
        except (OSError, ValueError) as e:
            raise RepositoryError(f"Cannot read answer keys for {paper_id!r}: {e}") from e

    def save_result(
        self,
        identity: SubmissionIdentity,
        evaluation: Evaluation,
    ) -> SaveOutcome:
        outcome_holder: Dict[str, SaveOutcome] = {}

        def upsert(data: Dict[str, Any]) -> Dict[str, Any]:
            students = data.setdefault("results", {}).setdefault(identity.paper_id, {})
            stored = students.get(identity.student_id)
            existing = StoredResult.from_dict(stored) if stored else None
            outcome, record = resolve_upsert(existing, identity, evaluation)
            if outcome is not SaveOutcome.UNCHANGED:
                students[identity.student_id] = record.to_dict()
            outcome_holder["outcome"] = outcome
            return data

        try:
            locked_read_modify_write_json(self.results_path, upsert, default=_empty_results)
        except (OSError, ValueError, KeyError) as e:
            raise RepositoryError(f"Cannot write result for {identity.label}: {e}") from e

        outcome = outcome_holder["outcome"]
        logger.debug(f"{identity.label}: {outcome}")
        return outcome

    def get_result(self, identity: SubmissionIdentity) -> Optional[StoredResult]:
        try:
            data = locked_read_json(self.results_path, default=_empty_results)
            stored = data.get("results", {}).get(identity.paper_id, {}).get(identity.student_id)
            return StoredResult.from_dict(stored) if stored else None
        except (OSError, ValueError, KeyError) as e:
            raise RepositoryError(f"Cannot read result for {identity.label}: {e}") from e

    def list_results(self) -> List[StoredResult]:
        """Every stored result, ordered by paper then student."""
        try:
            data = locked_read_json(self.results_path, default=_empty_results)
            results = data.get("results", {})
            return [
                StoredResult.from_dict(results[paper_id][student_id])
                for paper_id in sorted(results)
                for student_id in sorted(results[paper_id])
            ]
        except (OSError, ValueError, KeyError) as e:
            raise RepositoryError(f"Cannot read results from {self.results_path}: {e}") from e

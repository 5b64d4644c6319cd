"""
Module: storage

Purpose:
    Persistence collaborators for evaluated submissions. The engine talks
    to storage only through SubmissionRepository; results are upserted
    per (paper_id, student_id) keyed by the evaluation token.

Key Classes:
    - SubmissionRepository: Abstract repository interface
    - InMemoryRepository: Thread-safe in-process adapter
    - JsonFileRepository: portalocker-guarded JSON directory adapter
"""

from .repository import (
    InMemoryRepository,
    PaperNotFoundError,
    RepositoryError,
    SaveOutcome,
    StoredResult,
    SubmissionRepository,
    resolve_upsert,
)
from .json_store import JsonFileRepository

__all__ = [
    "SubmissionRepository",
    "InMemoryRepository",
    "JsonFileRepository",
    "StoredResult",
    "SaveOutcome",
    "RepositoryError",
    "PaperNotFoundError",
    "resolve_upsert",
]

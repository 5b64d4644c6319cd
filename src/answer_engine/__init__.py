"""Top-level package for the Answer Evaluation Engine.

Provides subpackages:
- answer_engine.core – immutable models, payload schemas, serialization
- answer_engine.engine – normalizer, matcher, scoring, grader, orchestrator
- answer_engine.storage – repository interface and adapters
- answer_engine.cli – command line (python -m answer_engine)
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text(encoding="utf-8")
        except OSError:
            content = ""
        for line in content.splitlines():
            if line.strip().startswith("version"):
                # Parse: version = "0.3.0"
                return line.split("=")[1].strip().strip('"').strip("'")

    from importlib.metadata import PackageNotFoundError, version as pkg_version
    try:
        return pkg_version("answer-engine")
    except PackageNotFoundError:
        return "0.0.0"

__version__ = _get_version()

from .engine import EngineConfig, EvaluationError, evaluate_submission, grade_submission

__all__ = [
    "__version__",
    "EngineConfig",
    "EvaluationError",
    "evaluate_submission",
    "grade_submission",
]

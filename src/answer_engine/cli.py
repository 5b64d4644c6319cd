"""Command line for the Answer Evaluation Engine.

Usage:
    python -m answer_engine evaluate --key KEY.json --responses RESP.json
        [--config CFG.json] [--output OUT.json] [-v]
    python -m answer_engine add-paper --store DIR --paper PAPER_ID --key KEY.json
    python -m answer_engine grade --store DIR --paper PAPER_ID --student STUDENT_ID
        --responses RESP.json [--config CFG.json] [--output OUT.json] [-v]

Exit codes:
    0  success
    1  unreadable input, bad configuration or storage failure
    2  the submission could not be evaluated
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from answer_engine.core.models import Evaluation, SubmissionIdentity
from answer_engine.core.utils import (
    evaluation_to_json,
    load_answer_key_records,
    load_response_records,
    save_evaluation_json,
)
from answer_engine.engine import (
    EngineConfig,
    EvaluationError,
    evaluate_submission,
    grade_submission,
    load_engine_config,
)
from answer_engine.storage import JsonFileRepository, RepositoryError

logger = logging.getLogger("answer_engine.cli")

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_EVALUATION_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="answer_engine",
        description="Grade detected answer-sheet responses against an answer key.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="exit codes: 0 success, 1 input or storage error, 2 evaluation failed",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    evaluate = sub.add_parser("evaluate", help="Evaluate one submission from files")
    evaluate.add_argument("--key", "-k", type=Path, required=True, help="Answer key JSON file")
    evaluate.add_argument("--responses", "-r", type=Path, required=True, help="Detected responses JSON file")
    evaluate.add_argument("--config", "-c", type=Path, help="Engine config JSON file")
    evaluate.add_argument("--output", "-o", type=Path, help="Write evaluation JSON here instead of stdout")
    evaluate.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")

    add_paper = sub.add_parser("add-paper", help="Store a paper's answer key in a grading directory")
    add_paper.add_argument("--store", "-s", type=Path, required=True, help="Grading directory")
    add_paper.add_argument("--paper", "-p", required=True, help="Paper id")
    add_paper.add_argument("--key", "-k", type=Path, required=True, help="Answer key JSON file")
    add_paper.add_argument("-v", "--verbose", action="count", default=0)

    grade = sub.add_parser("grade", help="Evaluate a submission and store the result")
    grade.add_argument("--store", "-s", type=Path, required=True, help="Grading directory")
    grade.add_argument("--paper", "-p", required=True, help="Paper id")
    grade.add_argument("--student", required=True, help="Student id")
    grade.add_argument("--responses", "-r", type=Path, required=True, help="Detected responses JSON file")
    grade.add_argument("--config", "-c", type=Path, help="Engine config JSON file")
    grade.add_argument("--output", "-o", type=Path, help="Also write the evaluation JSON here")
    grade.add_argument("-v", "--verbose", action="count", default=0)

    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _load_config(path: Optional[Path]) -> EngineConfig:
    return load_engine_config(path) if path else EngineConfig()


def _emit(evaluation: Evaluation, output: Optional[Path]) -> None:
    if output:
        save_evaluation_json(evaluation, output)
        logger.info(f"Wrote evaluation to {output}")
    else:
        print(evaluation_to_json(evaluation))


def _run_evaluate(args: argparse.Namespace) -> int:
    config = _load_config(args.config)
    answer_keys = load_answer_key_records(args.key)
    responses = load_response_records(args.responses)
    evaluation = evaluate_submission(answer_keys, responses, config)
    _emit(evaluation, args.output)
    return EXIT_OK


def _run_add_paper(args: argparse.Namespace) -> int:
    repository = JsonFileRepository(args.store)
    records = load_answer_key_records(args.key)
    path = repository.add_paper(args.paper, records)
    print(f"Stored {len(records)} answer keys for {args.paper} at {path}")
    return EXIT_OK


def _run_grade(args: argparse.Namespace) -> int:
    config = _load_config(args.config)
    repository = JsonFileRepository(args.store)
    identity = SubmissionIdentity(paper_id=args.paper, student_id=args.student)
    responses = load_response_records(args.responses)
    report = grade_submission(repository, identity, responses, config)
    if args.output:
        save_evaluation_json(report.evaluation, args.output)
    result = report.evaluation.result
    print(
        f"{identity.paper_id} / {identity.student_id}: "
        f"{result.total_score:g}/{result.max_score:g} ({result.percentage:.1f}%) "
        f"grade {result.grade} [{report.outcome}]"
    )
    return EXIT_OK


_COMMANDS = {
    "evaluate": _run_evaluate,
    "add-paper": _run_add_paper,
    "grade": _run_grade,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        return _COMMANDS[args.command](args)
    except EvaluationError as e:
        print(f"Evaluation failed ({e.stage}): {e}", file=sys.stderr)
        return EXIT_EVALUATION_ERROR
    except (OSError, ValueError, RepositoryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())

import pytest
import sys
from pathlib import Path

# Add src to sys.path so we can import answer_engine
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())


# Common test fixtures
@pytest.fixture
def paper_records():
    """Three 2-point questions in the shapes the question store produces."""
    return [
        {"question_number": 1, "question_format": "single_choice",
         "options": {"A": "3", "B": "4", "C": "5", "D": "6"},
         "correct_option": "B", "points": 2},
        {"questionNumber": 2, "format": "multi_choice",
         "options": [{"id": "A", "text": "Mercury"}, {"id": "B", "text": "Moon"},
                     {"id": "C", "text": "Venus"}, {"id": "D", "text": "Sun"}],
         "correctOptionIds": ["A", "C"], "pointsPerBlank": 2},
        {"question_number": 3, "question_format": "fill_blanks",
         "expected_answers": [["Paris"], ["Berlin", "Berlín"]], "points": 2},
    ]


@pytest.fixture
def detected_records():
    """Detector output scoring [2, 0.5, 0] against paper_records."""
    return [
        {"question": 1, "selected_option": "B", "confidence": "high", "marking_type": "circle"},
        {"question": 2, "selectedOptions": ["A", "B"], "confidence": "medium"},
        {"question": 3, "blankAnswers": [{"position": 1, "answer": "Rome"}], "confidence": "low"},
    ]


@pytest.fixture
def write_json(tmp_path: Path):
    """Write JSON data to a file under tmp_path and return its path."""
    import json

    def _write(name: str, data) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write

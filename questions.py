# questions.py
"""
Practice question bank.

The registry is built once at startup from questions.json and never
mutated afterwards; learner progress lives separately in progress.py.
"""
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import structlog

from results import QueryResult

logger = structlog.get_logger(__name__)

DEFAULT_QUESTIONS_FILE = Path(__file__).with_name("questions.json")


class QuestionBankError(Exception):
    """The question file is missing or malformed."""


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    PRO = "pro"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def color(self) -> str:
        return _DIFFICULTY_COLORS[self]


_DIFFICULTY_COLORS = {
    Difficulty.EASY: "#059669",
    Difficulty.MEDIUM: "#d97706",
    Difficulty.HARD: "#dc2626",
    Difficulty.PRO: "#7c3aed",
}


@dataclass(frozen=True)
class PracticeQuestion:
    id: str
    title: str
    description: str
    difficulty: Difficulty
    starter_sql: str = ""
    hint: str = ""
    solution: str = ""
    expected: Optional[QueryResult] = None

    def to_public_dict(self) -> Dict[str, Any]:
        """Learner-facing view: no solution and no expected answer."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty.value,
            "starter_sql": self.starter_sql,
            "hint": self.hint,
            "has_expected_result": self.expected is not None,
        }


def _parse_question(raw: Dict[str, Any]) -> PracticeQuestion:
    try:
        qid = str(raw["id"])
        difficulty = Difficulty(str(raw.get("difficulty", "easy")).lower())
    except KeyError as e:
        raise QuestionBankError(f"Question is missing field {e}") from e
    except ValueError as e:
        raise QuestionBankError(f"Question {raw.get('id')!r}: {e}") from e

    expected = None
    if raw.get("expected") is not None:
        try:
            expected = QueryResult.from_dict(raw["expected"])
        except (TypeError, ValueError) as e:
            raise QuestionBankError(f"Question {qid!r} has an invalid expected result: {e}") from e

    return PracticeQuestion(
        id=qid,
        title=raw.get("title", qid),
        description=raw.get("description", ""),
        difficulty=difficulty,
        starter_sql=raw.get("starter_sql", ""),
        hint=raw.get("hint", ""),
        solution=raw.get("solution", ""),
        expected=expected,
    )


class QuestionRegistry:
    def __init__(self, questions: Sequence[PracticeQuestion]):
        by_id: Dict[str, PracticeQuestion] = {}
        for q in questions:
            if q.id in by_id:
                raise QuestionBankError(f"Duplicate question id {q.id!r}")
            by_id[q.id] = q
        self._questions: Tuple[PracticeQuestion, ...] = tuple(questions)
        self._by_id = by_id

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[PracticeQuestion]:
        return iter(self._questions)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    @property
    def total(self) -> int:
        return len(self._questions)

    def all(self) -> List[PracticeQuestion]:
        return list(self._questions)

    def get(self, question_id: str) -> Optional[PracticeQuestion]:
        return self._by_id.get(question_id)

    def by_difficulty(self, difficulty: Union[str, Difficulty]) -> List[PracticeQuestion]:
        if isinstance(difficulty, str) and difficulty.lower() == "all":
            return self.all()
        level = Difficulty(difficulty.lower() if isinstance(difficulty, str) else difficulty)
        return [q for q in self._questions if q.difficulty is level]

    def counts_by_difficulty(self) -> Dict[str, int]:
        counts = {d.value: 0 for d in Difficulty}
        for q in self._questions:
            counts[q.difficulty.value] += 1
        return counts


def load_questions(path: Union[str, Path] = DEFAULT_QUESTIONS_FILE) -> QuestionRegistry:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise QuestionBankError(f"Cannot read question file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise QuestionBankError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(raw, list):
        raise QuestionBankError(f"{path} must contain a JSON list of questions")

    registry = QuestionRegistry([_parse_question(q) for q in raw])
    logger.info("questions_loaded", path=str(path), count=len(registry))
    return registry

# progress.py
import threading
from typing import Dict, Optional, Set

import structlog

from questions import QuestionRegistry

logger = structlog.get_logger(__name__)

STAT_NAMES = ("totalQueriesExecuted", "successfulQueries", "bestStreak", "currentStreak")


class ProgressStore:
    """
    Completed question ids plus a few counters for one learner.

    Passed explicitly to whoever needs it; all updates go through the
    methods below and are serialized by a lock.
    """

    def __init__(self, completed: Optional[Set[str]] = None,
                 stats: Optional[Dict[str, int]] = None):
        self._lock = threading.Lock()
        self._completed: Set[str] = set(completed or ())
        self._stats: Dict[str, int] = {name: 0 for name in STAT_NAMES}
        if stats:
            for name, value in stats.items():
                self._stats[name] = int(value)

    def record_execution(self, success: bool) -> None:
        with self._lock:
            self._stats["totalQueriesExecuted"] += 1
            if success:
                self._stats["successfulQueries"] += 1

    def mark_completed(self, question_id: str) -> bool:
        """Returns True when the question was not completed before."""
        with self._lock:
            if question_id in self._completed:
                return False
            self._completed.add(question_id)
            current = self._stats["currentStreak"] + 1
            self._stats["currentStreak"] = current
            if current > self._stats["bestStreak"]:
                self._stats["bestStreak"] = current
        logger.info("question_completed", question_id=question_id, streak=current)
        return True

    def reset_streak(self) -> None:
        with self._lock:
            self._stats["currentStreak"] = 0

    def is_completed(self, question_id: str) -> bool:
        with self._lock:
            return question_id in self._completed

    @property
    def completed_count(self) -> int:
        with self._lock:
            return len(self._completed)

    def completed_by_difficulty(self, registry: QuestionRegistry) -> Dict[str, int]:
        counts = {name: 0 for name in registry.counts_by_difficulty()}
        with self._lock:
            completed = set(self._completed)
        for qid in completed:
            question = registry.get(qid)
            if question is not None:
                counts[question.difficulty.value] += 1
        return counts

    def stat(self, name: str) -> int:
        with self._lock:
            return self._stats.get(name, 0)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "completed_questions": sorted(self._completed),
                "stats": dict(self._stats),
            }

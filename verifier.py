# verifier.py
"""
Answer verification: decide whether a learner's result matches the
expected result of a practice question.

The policy is strict: same row count, same column count,
same column names in the same order (case-insensitive), and rows compared
by position. Cells are compared by a pluggable strategy; the default
compares the values' string renderings, so 50000 and 50000.0 differ.
"""
import datetime as dt
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

import structlog

from results import QueryResult

logger = structlog.get_logger(__name__)

CellComparator = Callable[[Any, Any], bool]

DEFAULT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Verdict:
    matched: bool
    reason: Optional[str] = None

    @classmethod
    def match(cls) -> "Verdict":
        return cls(True)

    @classmethod
    def mismatch(cls, reason: str) -> "Verdict":
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.matched


# -------------------------
# Cell comparison strategies
# -------------------------
def exact_string(expected: Any, actual: Any) -> bool:
    return str(expected) == str(actual)


def _as_number(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def numeric_tolerant(tolerance: float = DEFAULT_TOLERANCE) -> CellComparator:
    """Numbers (or numeric strings) compare by value within `tolerance`."""
    limit = Decimal(repr(float(tolerance)))

    def compare(expected: Any, actual: Any) -> bool:
        a, b = _as_number(expected), _as_number(actual)
        if a is not None and b is not None:
            return abs(a - b) <= limit
        return exact_string(expected, actual)

    compare.__name__ = "numeric_tolerant"
    return compare


_TRUE_STRINGS = {"true", "t", "1", "yes"}
_FALSE_STRINGS = {"false", "f", "0", "no"}


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _as_temporal(value: Any, like: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        if isinstance(like, dt.datetime):
            return dt.datetime.fromisoformat(value)
        if isinstance(like, dt.date):
            return dt.date.fromisoformat(value)
        if isinstance(like, dt.time):
            return dt.time.fromisoformat(value)
    except ValueError:
        return value
    return value


def type_aware(expected: Any, actual: Any) -> bool:
    """
    Compare by value where either side carries a real type (number, bool,
    date/time); a string on the other side is parsed to that type first.
    Anything else falls back to exact_string.
    """
    if isinstance(expected, bool) or isinstance(actual, bool):
        a, b = _as_bool(expected), _as_bool(actual)
        if a is not None and b is not None:
            return a == b
        return exact_string(expected, actual)

    numeric_types = (int, float, Decimal)
    if isinstance(expected, numeric_types) or isinstance(actual, numeric_types):
        a, b = _as_number(expected), _as_number(actual)
        if a is not None and b is not None:
            return a == b
        return exact_string(expected, actual)

    temporal_types = (dt.date, dt.time)
    if isinstance(expected, temporal_types) or isinstance(actual, temporal_types):
        a = _as_temporal(expected, actual)
        b = _as_temporal(actual, expected)
        if type(a) is type(b):
            return a == b
        return exact_string(a, b)

    return exact_string(expected, actual)


CELL_STRATEGIES: Dict[str, Callable[..., CellComparator]] = {
    "exact_string": lambda tolerance=DEFAULT_TOLERANCE: exact_string,
    "numeric_tolerant": numeric_tolerant,
    "type_aware": lambda tolerance=DEFAULT_TOLERANCE: type_aware,
}


def get_cell_strategy(name: str, tolerance: float = DEFAULT_TOLERANCE) -> CellComparator:
    try:
        factory = CELL_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown comparison strategy {name!r}; choose one of {sorted(CELL_STRATEGIES)}"
        ) from None
    return factory(tolerance=tolerance)


# -------------------------
# Result comparison
# -------------------------
def cells_equal(expected: Any, actual: Any, cell_equal: CellComparator = exact_string) -> bool:
    if expected is None and actual is None:
        return True
    if expected is None or actual is None:
        return False
    return cell_equal(expected, actual)


def compare_results(expected: QueryResult, actual: QueryResult,
                    cell_equal: CellComparator = exact_string) -> Verdict:
    if expected.row_count != actual.row_count:
        return Verdict.mismatch(
            f"Row count differs: expected {expected.row_count}, got {actual.row_count}"
        )

    if expected.column_count != actual.column_count:
        return Verdict.mismatch(
            f"Column count differs: expected {expected.column_count}, got {actual.column_count}"
        )

    # column order matters; only letter case is ignored
    for pos, (e_name, a_name) in enumerate(zip(expected.column_names, actual.column_names)):
        if e_name.lower() != a_name.lower():
            return Verdict.mismatch(
                f"Column {pos + 1} differs: expected {e_name!r}, got {a_name!r}"
            )

    # rows by position, no unordered matching
    for i, (e_row, a_row) in enumerate(zip(expected.rows, actual.rows)):
        for j, (e_val, a_val) in enumerate(zip(e_row, a_row)):
            if not cells_equal(e_val, a_val, cell_equal):
                return Verdict.mismatch(
                    f"Row {i + 1}, column {expected.column_names[j]!r} differs"
                )

    return Verdict.match()


def check_answer(question, actual: Optional[QueryResult],
                 cell_equal: CellComparator = exact_string) -> Verdict:
    """
    Verify a successful execution against `question.expected`.
    Questions without an expected result accept any successful execution.
    """
    expected = getattr(question, "expected", None)
    if expected is None:
        return Verdict.match()
    if actual is None:
        return Verdict.mismatch("Statement did not return a result set")

    verdict = compare_results(expected, actual, cell_equal)
    if not verdict:
        logger.debug("answer_mismatch", question_id=getattr(question, "id", None),
                     reason=verdict.reason)
    return verdict

# results.py
"""
Result objects shared by the execution facade (db.py), the answer
verifier (verifier.py) and the API.
"""
import datetime as dt
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

ErrorKind = Literal["empty_input", "syntax_error", "engine_unavailable", "unexpected_error"]


def jsonable(value: Any) -> Any:
    """Convert engine values into JSON-friendly scalars."""
    if isinstance(value, float) and not math.isfinite(value):
        # NaN and infinities have no JSON form
        return str(value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime, dt.time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


@dataclass(frozen=True)
class Column:
    name: str
    position: int


@dataclass(frozen=True)
class QueryResult:
    """
    Columnar output of one executed statement.

    column_names keeps projection order and may contain duplicates.
    Every row has exactly len(column_names) values; None means SQL NULL.
    """
    column_names: Tuple[str, ...]
    rows: Tuple[Tuple[Any, ...], ...]
    column_count: int = -1

    def __init__(self, column_names: Sequence[str], rows: Sequence[Sequence[Any]],
                 column_count: Optional[int] = None):
        names = tuple(str(c) for c in column_names)
        declared = len(names) if column_count is None else column_count
        if declared != len(names):
            raise ValueError(
                f"Declared {declared} column(s) but got {len(names)} column name(s)"
            )
        normalized = []
        for i, row in enumerate(rows):
            row = tuple(row)
            if len(row) != declared:
                raise ValueError(
                    f"Row {i} has {len(row)} value(s); expected {declared}"
                )
            normalized.append(row)
        object.__setattr__(self, "column_names", names)
        object.__setattr__(self, "rows", tuple(normalized))
        object.__setattr__(self, "column_count", declared)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def columns(self) -> List[Column]:
        return [Column(name, i) for i, name in enumerate(self.column_names)]

    def row(self, index: int) -> Tuple[Any, ...]:
        return self.rows[index]

    def value(self, row: int, column: int) -> Any:
        return self.rows[row][column]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": list(self.column_names),
            "rows": [[jsonable(v) for v in row] for row in self.rows],
            "row_count": self.row_count,
            "column_count": self.column_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryResult":
        return cls(data.get("columns", []), data.get("rows", []))


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    message: str
    query_result: Optional[QueryResult] = None
    affected_rows: int = 0
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def success_result(cls, message: str, query_result: Optional[QueryResult] = None,
                       affected_rows: int = 0) -> "ExecutionResult":
        return cls(True, message, query_result, affected_rows)

    @classmethod
    def failure(cls, message: str, error_kind: ErrorKind) -> "ExecutionResult":
        return cls(False, message, None, 0, error_kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "result": self.query_result.to_dict() if self.query_result else None,
            "affected_rows": self.affected_rows,
            "error_kind": self.error_kind,
        }


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type: str
    size: Optional[int] = None
    nullable: bool = True

    def __str__(self) -> str:
        size = self.size if self.size is not None else 0
        return f"{self.name} {self.type}({size}) {'NULL' if self.nullable else 'NOT NULL'}"

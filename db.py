# db.py
"""
Execution facade over a single DuckDB connection.

DuckDBEngine is the thin engine adapter (query / statement / prepare /
introspection). DatabaseService sits on top of it and turns free-form SQL
into ExecutionResult / ValidationResult values; SQL errors never escape it.
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

import duckdb
import structlog

from results import ColumnInfo, ExecutionResult, QueryResult, ValidationResult

logger = structlog.get_logger(__name__)

DEFAULT_SETUP_FILE = Path(__file__).with_name("sample_setup.sql")

RESULT_PREFIXES = ("SELECT", "SHOW", "DESCRIBE", "EXPLAIN")

# Statement types that EXPLAIN can bind without running them
_BINDABLE_STATEMENTS = {"SELECT", "INSERT", "UPDATE", "DELETE"}
_DML_STATEMENTS = {"INSERT", "UPDATE", "DELETE"}
_CATALOG_STATEMENTS = {"CREATE", "DROP", "ALTER"}
_RESULT_SET_STATEMENTS = {"SELECT", "EXPLAIN"}


class SqlEngineError(Exception):
    """Base class for errors raised by an engine adapter."""


class SqlSyntaxError(SqlEngineError):
    """The engine rejected the SQL (parse, bind or runtime error)."""


class EngineUnavailableError(SqlEngineError):
    """The connection is missing, closed or could not be established."""


class SqlEngine(Protocol):
    def execute_query(self, sql: str) -> Tuple[List[str], List[Sequence[Any]]]: ...

    def execute_statement(self, sql: str) -> int: ...

    def prepare(self, sql: str) -> None: ...

    def list_tables(self) -> List[str]: ...

    def table_columns(self, table: str) -> List[ColumnInfo]: ...

    def close(self) -> None: ...


# -------------------------
# DuckDB adapter
# -------------------------
class DuckDBEngine:
    def __init__(self, database: str = ":memory:", setup_sql: Optional[str] = None):
        try:
            self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(database=database)
        except duckdb.Error as e:
            raise EngineUnavailableError(f"Could not open database {database!r}: {e}") from e
        self.database = database
        self.setup_sql = setup_sql
        if setup_sql:
            self.run_script(setup_sql)

    @classmethod
    def from_setup_file(cls, database: str = ":memory:",
                        setup_file: Optional[Path] = DEFAULT_SETUP_FILE) -> "DuckDBEngine":
        setup_sql = None
        if setup_file is not None:
            try:
                setup_sql = Path(setup_file).read_text(encoding="utf-8")
            except OSError as e:
                raise EngineUnavailableError(f"Failed to read setup SQL {setup_file}: {e}") from e
        return cls(database=database, setup_sql=setup_sql)

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise EngineUnavailableError("Database connection is closed")
        return self._conn

    def _run(self, sql: str) -> duckdb.DuckDBPyConnection:
        con = self._connection()
        try:
            return con.execute(sql)
        except duckdb.ConnectionException as e:
            raise EngineUnavailableError(str(e)) from e
        except duckdb.Error as e:
            raise SqlSyntaxError(str(e)) from e

    def run_script(self, sql: str) -> None:
        try:
            self._run(sql)
        except SqlSyntaxError as e:
            raise EngineUnavailableError(f"Failed to run setup SQL: {e}") from e

    def execute_query(self, sql: str) -> Tuple[List[str], List[Sequence[Any]]]:
        res = self._run(sql)
        try:
            rows = res.fetchall()
        except duckdb.Error as e:
            raise SqlSyntaxError(str(e)) from e
        cols = [desc[0] for desc in res.description] if res.description else []
        return cols, rows

    def _statement_types(self, sql: str) -> List[str]:
        con = self._connection()
        try:
            return [stmt.type.name for stmt in con.extract_statements(sql)]
        except duckdb.ConnectionException as e:
            raise EngineUnavailableError(str(e)) from e
        except duckdb.Error as e:
            raise SqlSyntaxError(str(e)) from e

    def execute_statement(self, sql: str) -> int:
        """
        Run a non-query statement and return its affected row count.

        Raises SqlSyntaxError, before running anything, when the last
        statement would produce a result set.
        """
        types = self._statement_types(sql)
        if types and types[-1] in _RESULT_SET_STATEMENTS:
            raise SqlSyntaxError(
                "Statement returns a result set; it must start with "
                + ", ".join(RESULT_PREFIXES[:-1]) + " or " + RESULT_PREFIXES[-1]
            )

        res = self._run(sql)
        if not types or types[-1] not in _DML_STATEMENTS or not res.description:
            return 0
        try:
            rows = res.fetchall()
        except duckdb.Error as e:
            raise SqlSyntaxError(str(e)) from e
        # DML reports its row count as a single "Count" value
        if len(rows) == 1 and len(rows[0]) == 1 and isinstance(rows[0][0], int):
            return rows[0][0]
        return 0

    def prepare(self, sql: str) -> None:
        """
        Parse and bind `sql` without executing it.

        Once a script has a CREATE, DROP or ALTER, the statements after it
        are only parsed: they may refer to objects that do not exist until
        the script actually runs.
        """
        con = self._connection()
        try:
            catalog_changed = False
            for stmt in con.extract_statements(sql):
                kind = stmt.type.name
                if kind in _CATALOG_STATEMENTS:
                    catalog_changed = True
                elif kind in _BINDABLE_STATEMENTS and not catalog_changed:
                    con.execute(f"EXPLAIN {stmt.query}")
        except duckdb.ConnectionException as e:
            raise EngineUnavailableError(str(e)) from e
        except duckdb.Error as e:
            raise SqlSyntaxError(str(e)) from e

    def list_tables(self) -> List[str]:
        _, rows = self.execute_query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'main' AND table_type = 'BASE TABLE' "
            "ORDER BY table_name"
        )
        return [r[0] for r in rows]

    def table_columns(self, table: str) -> List[ColumnInfo]:
        con = self._connection()
        try:
            rows = con.execute(
                "SELECT column_name, data_type, character_maximum_length, is_nullable "
                "FROM information_schema.columns "
                "WHERE table_schema = 'main' AND lower(table_name) = lower(?) "
                "ORDER BY ordinal_position",
                [table],
            ).fetchall()
        except duckdb.Error as e:
            raise SqlSyntaxError(str(e)) from e
        return [
            ColumnInfo(name=name, type=data_type, size=size, nullable=(nullable == "YES"))
            for name, data_type, size, nullable in rows
        ]

    def drop_all_tables(self) -> None:
        """
        Drop every base table. A table still referenced by a foreign key
        cannot be dropped yet, so it is retried once the referencing
        tables are gone.
        """
        remaining = self.list_tables()
        while remaining:
            blocked = []
            last_error: Optional[SqlSyntaxError] = None
            for table in remaining:
                try:
                    self._run(f'DROP TABLE IF EXISTS "{table}"')
                except SqlSyntaxError as e:
                    blocked.append(table)
                    last_error = e
            if len(blocked) == len(remaining):
                raise SqlSyntaxError(f"Could not drop tables {blocked}: {last_error}")
            remaining = blocked

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


# -------------------------
# Facade
# -------------------------
def is_result_statement(sql: str) -> bool:
    return sql.strip().upper().startswith(RESULT_PREFIXES)


class DatabaseService:
    """
    Runs learner SQL against one shared engine connection.

    Every engine call is serialized behind a lock, so at most one statement
    is in flight. submit() runs execute() on a single background worker;
    the callback fires on that worker thread.
    """

    def __init__(self, engine: SqlEngine):
        self.engine = engine
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

    @classmethod
    def connect(cls, database: str = ":memory:",
                setup_file: Optional[Path] = DEFAULT_SETUP_FILE) -> "DatabaseService":
        engine = DuckDBEngine.from_setup_file(database=database, setup_file=setup_file)
        logger.info("database_initialized", database=database,
                    setup_file=str(setup_file) if setup_file else None)
        return cls(engine)

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, sql: Optional[str]) -> ExecutionResult:
        sql = (sql or "").strip()
        if not sql:
            return ExecutionResult.failure("Empty query", "empty_input")

        try:
            with self._lock:
                if self._closed:
                    raise EngineUnavailableError("Database connection is closed")
                if is_result_statement(sql):
                    cols, rows = self.engine.execute_query(sql)
                    result = ExecutionResult.success_result(
                        "Query executed successfully", QueryResult(cols, rows)
                    )
                else:
                    affected = self.engine.execute_statement(sql)
                    result = ExecutionResult.success_result(
                        f"Query executed successfully. {affected} row(s) affected.",
                        affected_rows=affected,
                    )
        except EngineUnavailableError as e:
            logger.warning("database_unavailable", error=str(e))
            return ExecutionResult.failure(f"Database unavailable: {e}", "engine_unavailable")
        except SqlSyntaxError as e:
            logger.warning("sql_execution_failed", error=str(e))
            return ExecutionResult.failure(f"SQL Error: {e}", "syntax_error")
        except Exception as e:
            logger.exception("sql_execution_unexpected_error")
            return ExecutionResult.failure(f"Unexpected error: {e}", "unexpected_error")

        logger.info("sql_executed",
                    rows=result.query_result.row_count if result.query_result else None,
                    affected_rows=result.affected_rows)
        return result

    def validate(self, sql: Optional[str]) -> ValidationResult:
        sql = (sql or "").strip()
        if not sql:
            return ValidationResult(False, "Empty query")
        try:
            with self._lock:
                if self._closed:
                    raise EngineUnavailableError("Database connection is closed")
                self.engine.prepare(sql)
        except EngineUnavailableError as e:
            return ValidationResult(False, f"Database unavailable: {e}")
        except SqlSyntaxError as e:
            return ValidationResult(False, f"SQL syntax error: {e}")
        return ValidationResult(True, "SQL syntax is valid")

    def submit(self, sql: str,
               on_complete: Optional[Callable[[ExecutionResult], None]] = None) -> "Future[ExecutionResult]":
        """Execute `sql` off the calling thread. There is no cancellation."""
        with self._lock:
            if self._closed:
                raise EngineUnavailableError("Database connection is closed")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sql-exec")
            future = self._executor.submit(self.execute, sql)
        if on_complete is not None:
            future.add_done_callback(lambda f: on_complete(f.result()))
        return future

    def list_tables(self) -> List[str]:
        with self._lock:
            return self.engine.list_tables()

    def table_columns(self, table: str) -> List[ColumnInfo]:
        with self._lock:
            return self.engine.table_columns(table)

    def reset(self) -> None:
        """Drop every table and reload the sample schema."""
        with self._lock:
            engine = self.engine
            if not isinstance(engine, DuckDBEngine):
                raise SqlEngineError("Reset is only supported for the DuckDB engine")
            engine.drop_all_tables()
            if engine.setup_sql:
                engine.run_script(engine.setup_sql)
        logger.info("database_reset")

    def shutdown(self) -> None:
        """Close the shared connection. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        with self._lock:
            self.engine.close()
        logger.info("database_closed")

"""Tests for the DuckDB engine adapter and the execution facade."""

import threading
from unittest.mock import MagicMock

import pytest

from db import (
    DatabaseService,
    DuckDBEngine,
    EngineUnavailableError,
    SqlSyntaxError,
    is_result_statement,
)

SAMPLE_TABLES = ["customers", "departments", "employee_projects", "employees", "orders", "projects"]


def employee_count(service):
    result = service.execute("SELECT COUNT(*) FROM employees")
    return result.query_result.value(0, 0)


class TestIsResultStatement:
    """Prefix dispatch between query and statement paths."""

    @pytest.mark.parametrize("sql", ["SELECT 1", "  select 1", "SHOW TABLES",
                                     "describe employees", "EXPLAIN SELECT 1"])
    def test_result_prefixes(self, sql):
        assert is_result_statement(sql)

    @pytest.mark.parametrize("sql", ["INSERT INTO t VALUES (1)", "UPDATE t SET a = 1",
                                     "CREATE TABLE t (a INT)", "WITH x AS (SELECT 1) SELECT * FROM x"])
    def test_statement_path(self, sql):
        assert not is_result_statement(sql)


class TestExecuteQueries:
    """Result-set statements against the sample data."""

    def test_select(self, service):
        result = service.execute("SELECT first_name, last_name FROM employees WHERE id = 1")
        assert result.success
        assert result.message == "Query executed successfully"
        assert result.error_kind is None
        assert result.query_result.column_names == ("first_name", "last_name")
        assert result.query_result.rows == (("John", "Doe"),)

    def test_count(self, service):
        assert employee_count(service) == 10

    def test_empty_result_keeps_columns(self, service):
        result = service.execute("SELECT id, email FROM employees WHERE id < 0")
        assert result.success
        assert result.query_result.row_count == 0
        assert result.query_result.column_names == ("id", "email")

    def test_null_values(self, service):
        result = service.execute("SELECT manager_id FROM employees WHERE id = 1")
        assert result.query_result.value(0, 0) is None

    def test_duplicate_column_names(self, service):
        result = service.execute("SELECT id, id FROM departments ORDER BY id LIMIT 1")
        assert result.query_result.column_count == 2

    def test_sql_is_trimmed(self, service):
        assert service.execute("  \n SELECT 1 AS one \n").success


class TestExecuteStatements:
    """Non-result statements report affected rows."""

    def test_insert(self, service):
        result = service.execute(
            "INSERT INTO departments (id, department_name, location) VALUES (6, 'Legal', 'Denver')"
        )
        assert result.success
        assert result.affected_rows == 1
        assert result.message == "Query executed successfully. 1 row(s) affected."
        assert result.query_result is None

    def test_update(self, service):
        result = service.execute("UPDATE employees SET salary = salary + 1 WHERE department_id = 1")
        assert result.affected_rows == 3

    def test_delete(self, service):
        result = service.execute("DELETE FROM orders WHERE status = 'PENDING'")
        assert result.affected_rows == 3

    def test_ddl(self, service):
        result = service.execute("CREATE TABLE scratch (a INTEGER)")
        assert result.success
        assert result.query_result is None
        assert result.affected_rows == 0

    def test_ddl_after_dml_reports_no_rows(self, service):
        result = service.execute("DELETE FROM orders WHERE id = 1; CREATE TABLE scratch (a INTEGER)")
        assert result.success
        assert result.affected_rows == 0

    @pytest.mark.parametrize("sql", [
        "-- how many?\nSELECT 42",
        "/* count */ SELECT COUNT(*) FROM employees",
        "WITH x AS (SELECT 1 AS a) SELECT * FROM x",
        "DELETE FROM orders WHERE id = 1; SELECT 42",
    ])
    def test_result_set_on_statement_path_is_rejected(self, service, sql):
        result = service.execute(sql)
        assert not result.success
        assert result.error_kind == "syntax_error"
        assert "result set" in result.message
        assert "SELECT, SHOW, DESCRIBE or EXPLAIN" in result.message

    def test_rejected_statement_does_not_run(self, service):
        service.execute("DELETE FROM employees; SELECT 1")
        assert employee_count(service) == 10

    def test_engine_rejects_result_set(self, service):
        with pytest.raises(SqlSyntaxError):
            service.engine.execute_statement("-- note\nSELECT 1")


class TestExecuteErrors:
    """Failures come back as result values."""

    def test_empty_input(self, service):
        for sql in ("", "   ", None):
            result = service.execute(sql)
            assert not result.success
            assert result.message == "Empty query"
            assert result.error_kind == "empty_input"

    def test_empty_input_never_reaches_engine(self):
        engine = MagicMock()
        svc = DatabaseService(engine)
        svc.execute("  ")
        engine.execute_query.assert_not_called()
        engine.execute_statement.assert_not_called()

    def test_syntax_error(self, service):
        result = service.execute("SELEC * FROM employees")
        assert not result.success
        assert result.error_kind == "syntax_error"
        assert result.message.startswith("SQL Error: ")

    def test_unknown_table(self, service):
        result = service.execute("SELECT * FROM nope")
        assert result.error_kind == "syntax_error"

    def test_engine_error_message_passed_through(self):
        engine = MagicMock()
        engine.execute_query.side_effect = SqlSyntaxError("near SELEC")
        result = DatabaseService(engine).execute("SELECT 1")
        assert result.message == "SQL Error: near SELEC"

    def test_unexpected_error(self):
        engine = MagicMock()
        engine.execute_statement.side_effect = RuntimeError("boom")
        result = DatabaseService(engine).execute("VACUUM")
        assert not result.success
        assert result.error_kind == "unexpected_error"
        assert result.message == "Unexpected error: boom"

    def test_closed_service(self, service):
        service.shutdown()
        result = service.execute("SELECT 1")
        assert result.error_kind == "engine_unavailable"
        assert result.message.startswith("Database unavailable: ")

    def test_failed_statement_leaves_data_alone(self, service):
        service.execute("INSERT INTO departments (id) VALUES (99)")
        assert service.execute("SELECT COUNT(*) FROM departments").query_result.value(0, 0) == 5


class TestValidate:
    """Syntax checking without execution."""

    def test_valid_select(self, service):
        result = service.validate("SELECT * FROM employees")
        assert result.valid
        assert result.message == "SQL syntax is valid"

    def test_delete_is_not_executed(self, service):
        assert service.validate("DELETE FROM employees").valid
        assert employee_count(service) == 10

    def test_insert_is_not_executed(self, service):
        sql = "INSERT INTO departments (id, department_name) VALUES (7, 'Ops')"
        assert service.validate(sql).valid
        assert service.execute("SELECT COUNT(*) FROM departments").query_result.value(0, 0) == 5

    def test_syntax_error(self, service):
        result = service.validate("SELEC 1")
        assert not result.valid
        assert result.message.startswith("SQL syntax error: ")

    def test_unknown_table_fails_binding(self, service):
        assert not service.validate("SELECT * FROM nope").valid

    def test_statements_after_ddl_are_only_parsed(self, service):
        assert service.validate("CREATE TABLE z (a INTEGER); INSERT INTO z VALUES (1)").valid
        assert service.list_tables() == SAMPLE_TABLES

    def test_syntax_after_ddl_still_checked(self, service):
        assert not service.validate("CREATE TABLE z (a INTEGER); INSERT INTO z VALUS (1)").valid

    def test_empty(self, service):
        result = service.validate("")
        assert not result.valid
        assert result.message == "Empty query"

    def test_closed(self, service):
        service.shutdown()
        result = service.validate("SELECT 1")
        assert not result.valid
        assert result.message.startswith("Database unavailable: ")


class TestSubmit:
    """Background execution."""

    def test_future_result(self, service):
        future = service.submit("SELECT COUNT(*) FROM employees")
        result = future.result(timeout=10)
        assert result.success
        assert result.query_result.value(0, 0) == 10

    def test_callback(self, service):
        done = threading.Event()
        seen = []

        def on_complete(result):
            seen.append(result)
            done.set()

        service.submit("SELEC", on_complete)
        assert done.wait(timeout=10)
        assert seen[0].error_kind == "syntax_error"

    def test_submits_run_in_order(self, service):
        service.submit("DELETE FROM employees WHERE id = 10")
        last = service.submit("SELECT COUNT(*) FROM employees")
        assert last.result(timeout=10).query_result.value(0, 0) == 9

    def test_submit_after_shutdown(self, service):
        service.shutdown()
        with pytest.raises(EngineUnavailableError):
            service.submit("SELECT 1")


class TestIntrospection:
    """Table listing and column metadata."""

    def test_list_tables(self, service):
        assert service.list_tables() == SAMPLE_TABLES

    def test_table_columns(self, service):
        columns = {c.name: c for c in service.table_columns("employees")}
        assert list(columns)[:3] == ["id", "first_name", "last_name"]
        assert columns["first_name"].type == "VARCHAR"
        assert columns["first_name"].nullable is False
        assert columns["email"].nullable is True

    def test_table_lookup_ignores_case(self, service):
        assert len(service.table_columns("EMPLOYEES")) == 9

    def test_unknown_table(self, service):
        assert service.table_columns("nope") == []


class TestLifecycle:
    """Reset and shutdown."""

    def test_reset_restores_sample_data(self, service):
        service.execute("DELETE FROM employees")
        service.execute("CREATE TABLE scratch (a INTEGER)")
        service.reset()
        assert employee_count(service) == 10
        assert service.list_tables() == SAMPLE_TABLES

    def test_reset_drops_tables_referencing_sample_tables(self, service):
        created = service.execute(
            "CREATE TABLE shipments (id INTEGER, order_id INTEGER REFERENCES orders(id))"
        )
        assert created.success
        service.execute("INSERT INTO shipments VALUES (1, 1)")
        service.reset()
        assert service.list_tables() == SAMPLE_TABLES
        assert employee_count(service) == 10

    def test_shutdown_is_idempotent(self, service):
        service.shutdown()
        service.shutdown()
        assert service.closed
        assert service.engine.closed

    def test_missing_setup_file(self, tmp_path):
        with pytest.raises(EngineUnavailableError):
            DatabaseService.connect(setup_file=tmp_path / "missing.sql")

    def test_broken_setup_script(self):
        with pytest.raises(EngineUnavailableError):
            DuckDBEngine(setup_sql="CREATE TABLE (")

    def test_engine_without_setup(self):
        engine = DuckDBEngine()
        try:
            assert engine.list_tables() == []
        finally:
            engine.close()
        with pytest.raises(EngineUnavailableError):
            engine.execute_query("SELECT 1")

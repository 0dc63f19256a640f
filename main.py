#!/usr/bin/env python3
"""
Command-line front end for the SQL practice core.

Usage:
    python main.py highlight "SELECT * FROM employees LIMIT 10;"
    python main.py highlight --html query.sql
    python main.py run "SELECT COUNT(*) FROM employees" --json
    python main.py validate "DELETE FROM employees"
    python main.py check easy_1 answer.sql
    python main.py check --reference "SELECT ..." "SELECT ..."

Exit codes: 0 success / match, 1 failure / mismatch, 2 bad input.
"""
import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from config import AppConfig, ConfigError, load_app_config
from db import DatabaseService, EngineUnavailableError
from highlighter import highlight, render_html
from questions import QuestionBankError, load_questions
from results import ExecutionResult, QueryResult
from verifier import Verdict, check_answer, compare_results

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def read_file_or_string(path_or_sql: Optional[str]) -> Optional[str]:
    """Treat the argument as a file path if one exists, otherwise as inline SQL."""
    if not path_or_sql:
        return None
    candidate = Path(path_or_sql)
    try:
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8")
    except OSError:
        # too long or otherwise not a usable path; treat as SQL
        pass
    return path_or_sql


def format_table(result: QueryResult, max_rows: int = 50) -> str:
    headers = list(result.column_names)
    body = [["NULL" if v is None else str(v) for v in row] for row in result.rows[:max_rows]]
    widths = [len(h) for h in headers]
    for row in body:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def line(cells: List[str]) -> str:
        return " | ".join(cell.ljust(w) for cell, w in zip(cells, widths))

    out = [line(headers), "-+-".join("-" * w for w in widths)]
    out.extend(line(row) for row in body)
    if result.row_count > max_rows:
        out.append(f"... {result.row_count - max_rows} more row(s)")
    out.append(f"({result.row_count} row(s))")
    return "\n".join(out)


def print_execution(result: ExecutionResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return
    print(result.message)
    if result.query_result is not None:
        print(format_table(result.query_result))


def open_database(config: AppConfig) -> DatabaseService:
    setup = Path(config.database.setup_sql) if config.database.setup_sql else None
    return DatabaseService.connect(database=config.database.path, setup_file=setup)


# -------------------------
# Commands
# -------------------------
def cmd_highlight(args, config: AppConfig) -> int:
    text = read_file_or_string(args.sql)
    if text is None:
        print("Provide SQL text or a file path.", file=sys.stderr)
        return EXIT_USAGE
    spans = highlight(text)
    if args.html:
        print(render_html(text, spans))
        return EXIT_OK
    for span in spans:
        print(f"{span.start:>5} {span.end:>5}  {span.kind.value:<8} {text[span.start:span.end]!r}")
    return EXIT_OK


def cmd_run(args, config: AppConfig) -> int:
    sql = read_file_or_string(args.sql)
    db = open_database(config)
    try:
        result = db.execute(sql)
    finally:
        db.shutdown()
    print_execution(result, args.json)
    return EXIT_OK if result.success else EXIT_FAILED


def cmd_validate(args, config: AppConfig) -> int:
    sql = read_file_or_string(args.sql)
    db = open_database(config)
    try:
        result = db.validate(sql)
    finally:
        db.shutdown()
    print(result.message)
    return EXIT_OK if result.valid else EXIT_FAILED


def cmd_check(args, config: AppConfig) -> int:
    student_sql = read_file_or_string(args.sql)
    cell_equal = config.comparison.cell_comparator()

    question = None
    if args.reference is None:
        if not args.question:
            print("Give a question id or --reference SQL.", file=sys.stderr)
            return EXIT_USAGE
        registry = load_questions(config.questions_file)
        question = registry.get(args.question)
        if question is None:
            print(f"Unknown question id {args.question!r}", file=sys.stderr)
            return EXIT_USAGE

    db = open_database(config)
    try:
        student = db.execute(student_sql)
        reference = db.execute(read_file_or_string(args.reference)) if args.reference else None
    finally:
        db.shutdown()

    if not student.success:
        verdict = Verdict.mismatch(student.message)
    elif reference is not None:
        if not reference.success or reference.query_result is None or student.query_result is None:
            print(f"Reference query did not produce a result: {reference.message}", file=sys.stderr)
            return EXIT_USAGE
        verdict = compare_results(reference.query_result, student.query_result, cell_equal)
    else:
        verdict = check_answer(question, student.query_result, cell_equal)

    if args.json:
        print(json.dumps({
            "correct": verdict.matched,
            "reason": verdict.reason,
            "execution": student.to_dict(),
        }, indent=2, default=str))
    elif verdict:
        print("Correct! Your answer matches the expected result.")
    else:
        print("Not quite right: your answer doesn't match the expected result.")
        if not student.success:
            print(student.message)
        elif question is not None and question.hint:
            print(f"Hint: {question.hint}")
    return EXIT_OK if verdict else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Highlight, run and check SQL practice answers.")
    parser.add_argument("--config", help="Path to a sqltutor.yaml config file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("highlight", help="Show how the editor would colour SQL")
    p.add_argument("sql", help="SQL text or path to a .sql file")
    p.add_argument("--html", action="store_true", help="Render HTML instead of span listing")
    p.set_defaults(func=cmd_highlight)

    p = sub.add_parser("run", help="Execute SQL against the sample database")
    p.add_argument("sql", help="SQL text or path to a .sql file")
    p.add_argument("--json", action="store_true", help="Output JSON (machine readable)")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("validate", help="Check SQL syntax without executing it")
    p.add_argument("sql", help="SQL text or path to a .sql file")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("check", help="Verify an answer against a question or a reference query")
    p.add_argument("question", nargs="?", help="Practice question id")
    p.add_argument("sql", help="Student SQL text or path to a .sql file")
    p.add_argument("--reference", help="Reference SQL (text or file) instead of a question id")
    p.add_argument("--json", action="store_true", help="Output JSON (machine readable)")
    p.set_defaults(func=cmd_check)

    return parser


def configure_logging() -> None:
    """Send log lines to stderr; stdout carries only command output."""
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(file=sys.stderr))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        config = load_app_config(Path(args.config) if args.config else None)
        return args.func(args, config)
    except (ConfigError, QuestionBankError) as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE
    except EngineUnavailableError as e:
        print(f"Database unavailable: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())

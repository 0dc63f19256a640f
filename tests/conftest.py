"""Shared fixtures: a sample-loaded DuckDB service, the question bank, config."""

import pytest
import structlog

from config import AppConfig, DatabaseConfig, clear_config_cache
from db import DEFAULT_SETUP_FILE, DatabaseService
from questions import DEFAULT_QUESTIONS_FILE, load_questions


@pytest.fixture
def service():
    """In-memory database loaded with the sample schema and data."""
    svc = DatabaseService.connect(database=":memory:", setup_file=DEFAULT_SETUP_FILE)
    yield svc
    svc.shutdown()


@pytest.fixture
def registry():
    """The bundled question bank."""
    return load_questions(DEFAULT_QUESTIONS_FILE)


@pytest.fixture
def app_config():
    """Default config pinned to an in-memory database."""
    return AppConfig(database=DatabaseConfig(path=":memory:",
                                             setup_sql=str(DEFAULT_SETUP_FILE)))


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Every test starts without cached config or SQLTUTOR_* overrides."""
    for name in ("SQLTUTOR_CONFIG", "SQLTUTOR_DATABASE", "SQLTUTOR_SETUP_SQL",
                 "SQLTUTOR_QUESTIONS", "SQLTUTOR_COMPARISON", "SQLTUTOR_NUMERIC_TOLERANCE"):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any structlog configuration a CLI run installed."""
    yield
    structlog.reset_defaults()

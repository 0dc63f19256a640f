# config.py
"""Application configuration loader.

Reads sqltutor.yaml (or the file named by SQLTUTOR_CONFIG) when present,
falls back to built-in defaults, and lets single keys be overridden from
the environment:

    SQLTUTOR_DATABASE           database path, ":memory:" by default
    SQLTUTOR_SETUP_SQL          schema + sample data script
    SQLTUTOR_QUESTIONS          question bank JSON
    SQLTUTOR_COMPARISON         exact_string | numeric_tolerant | type_aware
    SQLTUTOR_NUMERIC_TOLERANCE  tolerance for numeric_tolerant
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml

from verifier import CELL_STRATEGIES, DEFAULT_TOLERANCE, CellComparator, get_cell_strategy

logger = structlog.get_logger(__name__)

CONFIG_FILE = Path("sqltutor.yaml")
PROJECT_DIR = Path(__file__).resolve().parent


class ConfigError(Exception):
    """Configuration file or value is invalid."""


@dataclass
class DatabaseConfig:
    path: str = ":memory:"
    setup_sql: Optional[str] = str(PROJECT_DIR / "sample_setup.sql")


@dataclass
class ComparisonConfig:
    strategy: str = "exact_string"
    numeric_tolerance: float = DEFAULT_TOLERANCE

    def cell_comparator(self) -> CellComparator:
        return get_cell_strategy(self.strategy, self.numeric_tolerance)


@dataclass
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    comparison: ComparisonConfig = field(default_factory=ComparisonConfig)
    questions_file: str = str(PROJECT_DIR / "questions.json")


_cached_config: Optional[AppConfig] = None


def _parse_config(data: Dict[str, Any]) -> AppConfig:
    db = data.get("database") or {}
    comparison = data.get("comparison") or {}
    defaults = AppConfig()

    try:
        tolerance = float(comparison.get("numeric_tolerance", defaults.comparison.numeric_tolerance))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"comparison.numeric_tolerance must be a number: {e}") from e

    return AppConfig(
        database=DatabaseConfig(
            path=str(db.get("path", defaults.database.path)),
            setup_sql=db.get("setup_sql", defaults.database.setup_sql),
        ),
        comparison=ComparisonConfig(
            strategy=str(comparison.get("strategy", defaults.comparison.strategy)),
            numeric_tolerance=tolerance,
        ),
        questions_file=str(data.get("questions_file", defaults.questions_file)),
    )


def _apply_env(config: AppConfig) -> AppConfig:
    if os.getenv("SQLTUTOR_DATABASE"):
        config.database.path = os.environ["SQLTUTOR_DATABASE"]
    if os.getenv("SQLTUTOR_SETUP_SQL"):
        config.database.setup_sql = os.environ["SQLTUTOR_SETUP_SQL"]
    if os.getenv("SQLTUTOR_QUESTIONS"):
        config.questions_file = os.environ["SQLTUTOR_QUESTIONS"]
    if os.getenv("SQLTUTOR_COMPARISON"):
        config.comparison.strategy = os.environ["SQLTUTOR_COMPARISON"]
    if os.getenv("SQLTUTOR_NUMERIC_TOLERANCE"):
        try:
            config.comparison.numeric_tolerance = float(os.environ["SQLTUTOR_NUMERIC_TOLERANCE"])
        except ValueError as e:
            raise ConfigError(f"SQLTUTOR_NUMERIC_TOLERANCE must be a number: {e}") from e
    return config


def _validate(config: AppConfig) -> AppConfig:
    if config.comparison.strategy not in CELL_STRATEGIES:
        raise ConfigError(
            f"Unknown comparison strategy {config.comparison.strategy!r}; "
            f"choose one of {sorted(CELL_STRATEGIES)}"
        )
    if config.comparison.numeric_tolerance < 0:
        raise ConfigError("numeric_tolerance must not be negative")
    return config


def load_app_config(path: Optional[Path] = None, force_reload: bool = False) -> AppConfig:
    """Load configuration from YAML + environment, cached after the first call.

    Args:
        path: Explicit config file. Defaults to $SQLTUTOR_CONFIG or sqltutor.yaml.
        force_reload: Ignore the cached config.
    """
    global _cached_config

    if _cached_config is not None and not force_reload and path is None:
        return _cached_config

    config_path = Path(path or os.getenv("SQLTUTOR_CONFIG") or CONFIG_FILE)
    data: Dict[str, Any] = {}
    if config_path.exists():
        logger.debug("loading_app_config", source=str(config_path))
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
    else:
        logger.debug("using_default_config")

    _cached_config = _validate(_apply_env(_parse_config(data)))
    return _cached_config


def clear_config_cache() -> None:
    """Forget the cached config (tests, or after editing the file)."""
    global _cached_config
    _cached_config = None

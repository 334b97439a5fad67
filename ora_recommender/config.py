"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``ORA_RECS_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Scoring weights, the diff-to-multiplier table, the score floor and the
completion threshold are policy constants and live next to the code that
applies them, not here.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/ora_recommender.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Filesystem paths for fixture data."""

    model_config = ConfigDict(frozen=True)

    seed_file: str = "config/seed/sample_catalog.json"


class OnboardingConfig(BaseModel):
    """Designated onboarding question ids read by the answer extractor."""

    model_config = ConfigDict(frozen=True)

    intentions_question_id: str = "intentions"
    life_situation_question_id: str = "life_situation"
    practice_levels_question_id: str = "practice_levels"
    time_commitment_question_id: str = "time_commitment"
    default_time_commitment: str = "10-20"


class RecommendationConfig(BaseModel):
    """Engine output and collaborator-read settings."""

    model_config = ConfigDict(frozen=True)

    algorithm_version: str = "1.0.0"
    max_recommendations: int = 5
    catalog_read_batch_size: int = 500
    program_lookup_limit: int = 10   # collaborator's one-call "in" ceiling

    @field_validator("max_recommendations", "catalog_read_batch_size", "program_lookup_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class BatchConfig(BaseModel):
    """Weekly batch run settings."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = 100
    max_workers: Optional[int] = None   # None → one worker per user in a batch
    weekly_weekday: int = 0             # 0 = Monday
    weekly_time: str = "03:00"          # UTC HH:MM

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"batch_size must be >= 1, got {v}.")
        return v

    @field_validator("weekly_weekday")
    @classmethod
    def validate_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError(f"weekly_weekday must be in 0..6, got {v}.")
        return v

    @field_validator("weekly_time")
    @classmethod
    def validate_weekly_time(cls, v: str) -> str:
        parts = v.split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError(f"weekly_time must be HH:MM, got '{v}'.")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"weekly_time out of range: '{v}'.")
        return v

    @property
    def workers(self) -> int:
        return self.max_workers or self.batch_size


class ApiConfig(BaseModel):
    """HTTP surface settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = ["*"]
    auth_tokens: list[str] = []
    http_requires_auth: bool = False


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/ora_recommender.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    The orchestrator, API and CLI commands all receive an ``AppConfig``
    instance. It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    onboarding: OnboardingConfig = OnboardingConfig()
    recommendations: RecommendationConfig = RecommendationConfig()
    batch: BatchConfig = BatchConfig()
    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply ORA_RECS_* env vars to the raw config dict.

    Supported overrides:
      ORA_RECS_DB_PATH     → raw["database"]["db_path"]
      ORA_RECS_LOG_LEVEL   → raw["logging"]["level"]
      ORA_RECS_DEBUG       → raw["debug"]
      ORA_RECS_API_TOKENS  → raw["api"]["auth_tokens"] (comma-separated)
    """
    if db_path := os.environ.get("ORA_RECS_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("ORA_RECS_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("ORA_RECS_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    if tokens := os.environ.get("ORA_RECS_API_TOKENS"):
        raw.setdefault("api", {})["auth_tokens"] = [
            t.strip() for t in tokens.split(",") if t.strip()
        ]

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        data=DataConfig(**raw.get("data", {})),
        onboarding=OnboardingConfig(**raw.get("onboarding", {})),
        recommendations=RecommendationConfig(**raw.get("recommendations", {})),
        batch=BatchConfig(**raw.get("batch", {})),
        api=ApiConfig(**raw.get("api", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )

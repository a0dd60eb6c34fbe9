"""Configuration loader for exam-quizzer.

Settings come from, in order of precedence: CLI overrides, ``EXAM_QUIZZER_*``
environment variables, the TOML file, and built-in defaults. The TOML file
lives at ``<workspace>/config/exam_quizzer.toml`` unless ``--config`` or
``EXAM_QUIZZER_CONFIG`` points elsewhere; a missing default file is fine,
a missing explicit one is an error.
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from exam_quizzer.core import config as core_config
from exam_quizzer.core import workspace as workspace_mod

CONFIG_FILENAME = "exam_quizzer.toml"
CONFIG_ENV = "EXAM_QUIZZER_CONFIG"
ENV_PREFIX = "EXAM_QUIZZER_"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class QuizzerConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class QuizConfig:
    duration_minutes: int

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


@dataclass(frozen=True)
class DocumentsConfig:
    max_bytes: int


@dataclass(frozen=True)
class AIConfig:
    model: str
    temperature: float
    max_output_tokens: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizzerConfig:
    quiz: QuizConfig
    documents: DocumentsConfig
    ai: AIConfig
    logging: LoggingConfig


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of env and file options."""

    duration_minutes: Optional[int] = None
    model: Optional[str] = None
    log_level: Optional[str] = None
    verbose: Optional[bool] = None


@dataclass(frozen=True)
class LoadResult:
    """Resolved configuration plus the workspace it was loaded against."""

    config: QuizzerConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML > defaults."""

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env

    try:
        layout = workspace_mod.ensure_workspace(
            env=env_map, path=workspace_path
        )
    except workspace_mod.WorkspaceError as exc:
        raise QuizzerConfigError(str(exc)) from exc

    requested = _resolve_config_path(config_path, env_map, layout)
    tree = default_tree()
    loaded_path: Optional[Path] = None
    if requested.exists():
        try:
            core_config.merge_defaults(tree, core_config.load_toml(requested))
        except core_config.TomlConfigError as exc:
            raise QuizzerConfigError(str(exc)) from exc
        loaded_path = requested
    elif config_path is not None or (env_map.get(CONFIG_ENV) or "").strip():
        raise QuizzerConfigError(f"Config file not found: {requested}")

    _apply_env(tree, env_map)
    _apply_overrides(tree, overrides)
    return LoadResult(
        config=_build_config(tree), layout=layout, config_path=loaded_path
    )


def default_tree() -> MutableMapping[str, Any]:
    """Return a fresh copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    """Return the TOML template written by ``exam-quizzer config init``."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    try:
        return core_config.write_toml_template(
            path, template=config_template(), overwrite=overwrite, mode=mode
        )
    except core_config.TomlConfigError as exc:
        raise QuizzerConfigError(str(exc)) from exc


def default_config_path(layout: workspace_mod.WorkspaceLayout) -> Path:
    return layout.path_for("config") / CONFIG_FILENAME


def _resolve_config_path(
    explicit: Optional[Path],
    env_map: Mapping[str, str],
    layout: workspace_mod.WorkspaceLayout,
) -> Path:
    if explicit is not None:
        return explicit.expanduser()
    env_candidate = (env_map.get(CONFIG_ENV) or "").strip()
    if env_candidate:
        return Path(env_candidate).expanduser()
    return default_config_path(layout)


def _apply_env(tree: MutableMapping[str, Any], env_map: Mapping[str, str]) -> None:
    duration = _env_string(env_map, "DURATION_MINUTES")
    if duration is not None:
        tree["quiz"]["duration_minutes"] = _env_int(
            duration, "DURATION_MINUTES"
        )
    max_bytes = _env_string(env_map, "MAX_BYTES")
    if max_bytes is not None:
        tree["documents"]["max_bytes"] = _env_int(max_bytes, "MAX_BYTES")
    model = _env_string(env_map, "MODEL")
    if model is not None:
        tree["ai"]["model"] = model
    level = _env_string(env_map, "LOG_LEVEL")
    if level is not None:
        tree["logging"]["level"] = level


def _apply_overrides(
    tree: MutableMapping[str, Any], overrides: ConfigOverrides
) -> None:
    if overrides.duration_minutes is not None:
        tree["quiz"]["duration_minutes"] = overrides.duration_minutes
    if overrides.model is not None:
        tree["ai"]["model"] = overrides.model
    if overrides.log_level is not None:
        tree["logging"]["level"] = overrides.log_level
    if overrides.verbose is not None:
        tree["logging"]["verbose"] = overrides.verbose


def _env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _env_int(raw: str, key: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise QuizzerConfigError(
            f"{ENV_PREFIX}{key} must be an integer, got '{raw}'."
        ) from exc


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise QuizzerConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QuizzerConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise QuizzerConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise QuizzerConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise QuizzerConfigError(f"'{field}' must be a boolean.")
    return value


def _build_config(tree: Mapping[str, Any]) -> QuizzerConfig:
    quiz = tree["quiz"]
    documents = tree["documents"]
    ai = tree["ai"]
    log = tree["logging"]

    level = _require_string(log["level"], field="logging.level").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise QuizzerConfigError(
            "logging.level must be one of " + ", ".join(_LOG_LEVELS) + "."
        )

    return QuizzerConfig(
        quiz=QuizConfig(
            duration_minutes=_require_positive_int(
                quiz["duration_minutes"], field="quiz.duration_minutes"
            ),
        ),
        documents=DocumentsConfig(
            max_bytes=_require_positive_int(
                documents["max_bytes"], field="documents.max_bytes"
            ),
        ),
        ai=AIConfig(
            model=_require_string(ai["model"], field="ai.model"),
            temperature=_require_float_range(
                ai["temperature"],
                field="ai.temperature",
                min_value=0.0,
                max_value=2.0,
            ),
            max_output_tokens=_require_positive_int(
                ai["max_output_tokens"], field="ai.max_output_tokens"
            ),
        ),
        logging=LoggingConfig(
            level=level,
            verbose=_require_bool(log["verbose"], field="logging.verbose"),
        ),
    )


_DEFAULTS: dict[str, Any] = {
    "quiz": {
        "duration_minutes": 90,
    },
    "documents": {
        "max_bytes": 10 * 1024 * 1024,
    },
    "ai": {
        "model": "gpt-4o-mini",
        "temperature": 0.0,
        "max_output_tokens": 8000,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# exam-quizzer configuration

[quiz]
# Time allowed for an imported exam before it is submitted automatically
duration_minutes = 90

[documents]
# Reject PDFs larger than this many bytes (default 10 MB)
max_bytes = 10485760

[ai]
# Chat model used to extract questions from the PDF
model = "gpt-4o-mini"
# Sampling temperature (0.0-2.0); keep low for faithful transcription
temperature = 0.0
max_output_tokens = 8000

[logging]
level = "INFO"
# Echo log records to stderr as well as the JSON log file
verbose = false
"""

"""JSON-lines logging for exam-quizzer commands."""

from __future__ import annotations

import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
    "release_logger",
]

_FILE_TAG = "_exam_quizzer_file"
_CONSOLE_TAG = "_exam_quizzer_console"
_FALLBACK_DIRNAME = "exam-quizzer-logs"

# Attributes every LogRecord carries; anything else came in via ``extra``.
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    filename: str | None = None,
) -> tuple[logging.Logger, Path]:
    """Attach a rotating JSON file handler (and optional stderr echo).

    Calling this repeatedly for the same ``name`` reuses the existing file
    handler instead of stacking duplicates. Returns the logger and the path
    the file handler actually writes to, which may be a temp-dir fallback
    when ``log_dir`` is not writable.
    """

    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)

    log_name = filename or f"{name.rsplit('.', 1)[-1]}.log"
    target = _writable_file(_writable_dir(log_dir), log_name)

    handler = _tagged(logger, _FILE_TAG)
    if handler is None:
        handler, target = _open_file_handler(
            target, log_name, max_bytes=max_bytes, backup_count=backup_count
        )
        setattr(handler, _FILE_TAG, True)
        logger.addHandler(handler)
    else:
        handler.baseFilename = str(target)  # type: ignore[attr-defined]
    handler.setLevel(logging.DEBUG if verbose else _level_number(level))

    console = _tagged(logger, _CONSOLE_TAG)
    if verbose and console is None:
        console = logging.StreamHandler(stream=sys.stderr)
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        setattr(console, _CONSOLE_TAG, True)
        logger.addHandler(console)
    elif not verbose and console is not None:
        logger.removeHandler(console)
        console.close()
    if console is not None and verbose:
        console.setLevel(logging.DEBUG)

    return logger, Path(target)


def release_logger(logger: logging.Logger) -> None:
    """Flush and detach the handlers installed by :func:`configure_logger`."""

    for handler in list(logger.handlers):
        if getattr(handler, _FILE_TAG, False) or getattr(
            handler, _CONSOLE_TAG, False
        ):
            handler.flush()
            logger.removeHandler(handler)
            handler.close()


def _tagged(logger: logging.Logger, tag: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, tag, False):
            return handler
    return None


def _open_file_handler(
    path: Path, filename: str, *, max_bytes: int, backup_count: int
) -> tuple[RotatingFileHandler, Path]:
    try:
        handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except PermissionError:
        path = _writable_file(_writable_dir(_fallback_dir()), filename)
        handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    handler.setFormatter(JsonLogFormatter())
    return handler, path


def _level_number(level: str) -> int:
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)


def _writable_dir(log_dir: Path) -> Path:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        log_dir = _fallback_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
    try:
        log_dir.chmod(0o700)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return log_dir


def _writable_file(log_dir: Path, filename: str) -> Path:
    path = log_dir / filename
    try:
        path.touch(exist_ok=True)
    except PermissionError:  # pragma: no cover - depends on filesystem
        path = _writable_dir(_fallback_dir()) / filename
        path.touch(exist_ok=True)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


def _fallback_dir() -> Path:
    return Path(tempfile.gettempdir()) / _FALLBACK_DIRNAME

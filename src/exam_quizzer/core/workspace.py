"""Data-home layout for configs, logs and stored exam results."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

WORKSPACE_ENV = "EXAM_QUIZZER_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".exam-quizzer-data"

_SUBDIRS = {
    "config": "config",
    "logs": "logs",
    "results": "results",
}


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace paths and whether each one was just created."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise KeyError(f"Unknown workspace directory '{key}'.") from exc

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Resolve (and by default create) the workspace directories.

    An explicit ``path`` wins over ``EXAM_QUIZZER_DATA_HOME``, which wins
    over ``~/.exam-quizzer-data``. Only the implicit default falls back to
    the temp directory when the home directory is not writable.
    """

    env_map = os.environ if env is None else env
    base, explicit = _resolve_base(env_map, path)
    candidates = [base]
    fallback = Path(tempfile.gettempdir()) / "exam-quizzer-data"
    if create and not explicit and fallback != base:
        candidates.append(fallback)

    error: PermissionError | None = None
    for candidate in candidates:
        try:
            return _build_layout(candidate, create=create)
        except PermissionError as exc:
            error = exc
    raise WorkspaceError(f"Unable to prepare workspace at {base}") from error


def _resolve_base(
    env: Mapping[str, str], override: Path | None
) -> tuple[Path, bool]:
    if override is not None:
        return override.expanduser().resolve(), True
    custom = (env.get(WORKSPACE_ENV) or "").strip()
    if custom:
        return Path(custom).expanduser().resolve(), True
    return DEFAULT_WORKSPACE.resolve(), False


def _build_layout(base: Path, *, create: bool) -> WorkspaceLayout:
    if base.exists() and not base.is_dir():
        raise WorkspaceError(
            f"Configured workspace exists and is not a directory: {base}"
        )
    created = {"home": _ensure_dir(base) if create else False}
    directories: dict[str, Path] = {}
    for key, relative in _SUBDIRS.items():
        target = base / relative
        if target.exists() and not target.is_dir():
            raise WorkspaceError(
                f"Expected workspace directory for '{key}' but found a "
                f"file: {target}"
            )
        created[key] = _ensure_dir(target) if create else False
        directories[key] = target
    return WorkspaceLayout(
        home=base,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _ensure_dir(path: Path) -> bool:
    existed = path.is_dir()
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return not existed

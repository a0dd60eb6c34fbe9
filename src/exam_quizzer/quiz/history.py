"""JSONL persistence for finished exams and history browsing helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .models import ExamResult

__all__ = [
    "RESULTS_FILENAME",
    "JsonlResultSink",
    "ExamHistory",
    "reconcile_selection",
]

RESULTS_FILENAME = "results.jsonl"


class JsonlResultSink:
    """Append each finished :class:`ExamResult` as one JSON line."""

    def __init__(
        self, path: Path, *, logger: Optional[logging.Logger] = None
    ) -> None:
        self.path = Path(path)
        self._logger = logger or logging.getLogger(__name__)

    def store(self, result: ExamResult) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(result.to_dict(), ensure_ascii=False))
            fh.write("\n")
        try:
            self.path.chmod(0o600)
        except PermissionError:  # pragma: no cover - depends on filesystem
            pass
        self._logger.info(
            "Stored exam result",
            extra={"result_id": result.id, "path": self.path},
        )


class ExamHistory:
    """Read side of the results file, newest entries first."""

    def __init__(
        self, path: Path, *, logger: Optional[logging.Logger] = None
    ) -> None:
        self.path = Path(path)
        self._logger = logger or logging.getLogger(__name__)

    def list(self) -> List[ExamResult]:
        if not self.path.exists():
            return []
        results: List[ExamResult] = []
        with self.path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    results.append(ExamResult.from_dict(json.loads(line)))
                except ValueError:
                    # json.JSONDecodeError is a ValueError too.
                    self._logger.warning(
                        "Skipping unreadable history entry",
                        extra={"path": self.path, "line": lineno},
                    )
        results.reverse()
        return results

    def get(self, result_id: str) -> Optional[ExamResult]:
        for result in self.list():
            if result.id == result_id:
                return result
        return None

    def clear(self) -> int:
        """Delete every stored result and return how many there were."""

        removed = len(self.list())
        self.path.unlink(missing_ok=True)
        return removed


def reconcile_selection(
    items: Sequence[ExamResult] | Iterable[ExamResult],
    selected_id: Optional[str],
) -> Optional[str]:
    """Return the id that should be selected after ``items`` changed.

    A selection that still exists is kept; otherwise the first item is
    selected, or nothing when the history is empty.
    """
    ids = [item.id for item in items]
    if selected_id is not None and selected_id in ids:
        return selected_id
    return ids[0] if ids else None

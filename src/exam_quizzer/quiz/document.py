"""Pre-import checks for exam documents."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import DocumentError
from .session import PDF_MIME_TYPE

__all__ = ["DEFAULT_MAX_BYTES", "ExamDocument", "read_document"]

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
_PDF_MAGIC = b"%PDF-"


@dataclass(frozen=True)
class ExamDocument:
    """Validated document bytes ready for ``begin_import``."""

    path: Path
    data: bytes
    mime_type: str = PDF_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


def read_document(
    path: Path, *, max_bytes: int = DEFAULT_MAX_BYTES
) -> ExamDocument:
    """Read ``path`` after checking it is a PDF within ``max_bytes``."""

    path = Path(path).expanduser()
    if not path.is_file():
        raise DocumentError(f"Document not found: {path}")
    size = path.stat().st_size
    if size == 0:
        raise DocumentError(f"Document is empty: {path}")
    if size > max_bytes:
        raise DocumentError(
            f"Document is {_megabytes(size)} MB; the limit is "
            f"{_megabytes(max_bytes)} MB."
        )
    data = path.read_bytes()
    if not data.startswith(_PDF_MAGIC) and path.suffix.lower() != ".pdf":
        raise DocumentError("Only PDF documents are supported.")
    return ExamDocument(path=path, data=data)


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}"

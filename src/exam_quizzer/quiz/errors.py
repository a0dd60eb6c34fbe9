"""Exception taxonomy for document ingestion and quiz sessions."""

from __future__ import annotations

__all__ = [
    "ExamQuizzerError",
    "IngestionError",
    "EmptyResultError",
    "MalformedQuestionError",
    "InvalidTransitionError",
    "DocumentError",
]


class ExamQuizzerError(RuntimeError):
    """Base class for errors raised by exam_quizzer."""


class IngestionError(ExamQuizzerError):
    """The gateway failed or returned nothing usable for this import."""


class EmptyResultError(IngestionError):
    """The gateway response contained no questions."""

    def __init__(
        self,
        message: str = "The document could not be parsed into any questions.",
    ) -> None:
        super().__init__(message)


class MalformedQuestionError(ExamQuizzerError):
    """A single raw question is missing a field needed to key it."""

    def __init__(self, index: int, message: str) -> None:
        super().__init__(f"Question #{index + 1}: {message}")
        self.index = index


class InvalidTransitionError(ExamQuizzerError):
    """An event arrived in a state that does not accept it.

    Sessions never raise this to callers; the event is dropped and the
    rejection is logged at DEBUG level.
    """

    def __init__(self, event: str, state: str) -> None:
        super().__init__(f"'{event}' is not accepted in state '{state}'")
        self.event = event
        self.state = state


class DocumentError(ExamQuizzerError):
    """The document failed the type or size checks before import."""

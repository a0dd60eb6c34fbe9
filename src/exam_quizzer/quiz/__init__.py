"""Exam ingestion, timed quiz sessions and scoring."""

from .errors import (
    DocumentError,
    EmptyResultError,
    ExamQuizzerError,
    IngestionError,
    InvalidTransitionError,
    MalformedQuestionError,
)
from .models import (
    UNKNOWN_TYPE,
    ExamResult,
    Option,
    Question,
    QuestionSet,
    TypeTally,
    build_question_set,
    parse_gateway_payload,
)
from .scoring import score, summarize_by_type
from .session import (
    DEFAULT_DURATION_SECONDS,
    PDF_MIME_TYPE,
    ExamImporter,
    ExtractionGateway,
    QuizSession,
    ResultSink,
    SessionSnapshot,
    SessionState,
)
from .timer import CountdownTimer, ThreadTickScheduler, TickScheduler
from .history import ExamHistory, JsonlResultSink, reconcile_selection
from .document import ExamDocument, read_document

__all__ = [
    "DocumentError",
    "EmptyResultError",
    "ExamQuizzerError",
    "IngestionError",
    "InvalidTransitionError",
    "MalformedQuestionError",
    "UNKNOWN_TYPE",
    "ExamResult",
    "Option",
    "Question",
    "QuestionSet",
    "TypeTally",
    "build_question_set",
    "parse_gateway_payload",
    "score",
    "summarize_by_type",
    "DEFAULT_DURATION_SECONDS",
    "PDF_MIME_TYPE",
    "ExamImporter",
    "ExtractionGateway",
    "QuizSession",
    "ResultSink",
    "SessionSnapshot",
    "SessionState",
    "CountdownTimer",
    "ThreadTickScheduler",
    "TickScheduler",
    "ExamHistory",
    "JsonlResultSink",
    "reconcile_selection",
    "ExamDocument",
    "read_document",
]

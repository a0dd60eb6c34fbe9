"""Quiz session state machine and the import controller that drives it.

A :class:`QuizSession` moves through ``idle -> processing -> quiz ->
finished`` (or back to ``idle`` when ingestion fails). User events and
countdown ticks are serialized through the session lock, and every exit
from ``quiz`` releases the countdown before anything else happens, so a
late tick can never finalize a session twice.

:class:`ExamImporter` is the caller-facing surface. It owns the current
session, runs the extraction gateway on a worker, and discards the previous
session whenever a new document is imported. Gateway responses that arrive
for a discarded session are ignored.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import Callable, Protocol

from .errors import EmptyResultError, IngestionError, InvalidTransitionError
from .models import ExamResult, QuestionSet, build_question_set
from .models import parse_gateway_payload
from .scoring import Clock, score
from .timer import CountdownTimer, ThreadTickScheduler, TickScheduler

__all__ = [
    "DEFAULT_DURATION_SECONDS",
    "PDF_MIME_TYPE",
    "SessionState",
    "SessionSnapshot",
    "QuizSession",
    "ExtractionGateway",
    "ResultSink",
    "ExamImporter",
]

DEFAULT_DURATION_SECONDS = 90 * 60
PDF_MIME_TYPE = "application/pdf"

FinishCallback = Callable[[ExamResult], None]
ErrorCallback = Callable[[str], None]


class SessionState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    QUIZ = "quiz"
    FINISHED = "finished"


class ExtractionGateway(Protocol):
    """Turns a document into raw question records; raises on failure."""

    def extract(self, document: bytes, mime_type: str = PDF_MIME_TYPE): ...


class ResultSink(Protocol):
    """Stores a finished result; raises on failure."""

    def store(self, result: ExamResult) -> None: ...


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session for rendering."""

    session_id: str
    state: SessionState
    remaining_seconds: int
    total_duration_seconds: int
    answers: Mapping[int, str]
    question_set: QuestionSet | None
    error: str | None
    result: ExamResult | None

    @property
    def answered_count(self) -> int:
        return len(self.answers)


class QuizSession:
    """One exam attempt: state, answer ledger and countdown."""

    def __init__(
        self,
        *,
        total_duration_seconds: int = DEFAULT_DURATION_SECONDS,
        scheduler: TickScheduler | None = None,
        on_finish: FinishCallback | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if (
            isinstance(total_duration_seconds, bool)
            or not isinstance(total_duration_seconds, int)
            or total_duration_seconds <= 0
        ):
            raise ValueError("total_duration_seconds must be a positive int")
        self.session_id = uuid.uuid4().hex
        self._total = total_duration_seconds
        self._remaining = total_duration_seconds
        self._state = SessionState.IDLE
        self._question_set: QuestionSet | None = None
        self._answers: dict[int, str] = {}
        self._result: ExamResult | None = None
        self._error: str | None = None
        self._discarded = False
        self._on_finish = on_finish
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._timer = CountdownTimer(
            scheduler or ThreadTickScheduler(self._logger), self._on_tick
        )

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def total_duration_seconds(self) -> int:
        return self._total

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def question_set(self) -> QuestionSet | None:
        return self._question_set

    @property
    def answers(self) -> Mapping[int, str]:
        with self._lock:
            return MappingProxyType(dict(self._answers))

    @property
    def result(self) -> ExamResult | None:
        return self._result

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def discarded(self) -> bool:
        return self._discarded

    @property
    def timer_active(self) -> bool:
        return self._timer.active

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                state=self._state,
                remaining_seconds=self._remaining,
                total_duration_seconds=self._total,
                answers=MappingProxyType(dict(self._answers)),
                question_set=self._question_set,
                error=self._error,
                result=self._result,
            )

    # -- transitions -----------------------------------------------------

    def begin_processing(self) -> bool:
        """``idle -> processing`` while the gateway call is outstanding."""

        with self._lock:
            if self._discarded or self._state is not SessionState.IDLE:
                return self._reject("begin_import")
            self._state = SessionState.PROCESSING
            self._error = None
        self._log("Import started")
        return True

    def start(self, question_set: QuestionSet) -> bool:
        """``processing -> quiz``: bind questions and start the countdown."""

        if not len(question_set):
            return self.fail(str(EmptyResultError()))
        with self._lock:
            if self._discarded or self._state is not SessionState.PROCESSING:
                return self._reject("start")
            self._question_set = question_set
            self._answers = {}
            self._remaining = self._total
            self._state = SessionState.QUIZ
            self._timer.start()
        self._log("Quiz started", question_count=len(question_set))
        return True

    def fail(self, message: str) -> bool:
        """``processing -> idle`` keeping only the user-facing message."""

        with self._lock:
            if self._discarded or self._state is not SessionState.PROCESSING:
                return self._reject("fail")
            self._state = SessionState.IDLE
            self._question_set = None
            self._answers = {}
            self._remaining = self._total
            self._error = message
        self._logger.warning(
            "Import failed",
            extra={"session_id": self.session_id, "reason": message},
        )
        return True

    def answer(self, question_number: int, option_key: str) -> bool:
        """Record (or overwrite) the selection for ``question_number``."""

        with self._lock:
            if self._discarded or self._state is not SessionState.QUIZ:
                return self._reject("answer")
            assert self._question_set is not None
            if question_number not in self._question_set:
                self._logger.debug(
                    "Ignoring answer for unknown question",
                    extra={
                        "session_id": self.session_id,
                        "question_number": question_number,
                    },
                )
                return False
            self._answers[question_number] = option_key
        return True

    def submit(self) -> ExamResult | None:
        """Finalize now, whatever time is left. No-op outside ``quiz``."""

        with self._lock:
            if self._discarded or self._state is not SessionState.QUIZ:
                self._reject("submit")
                return None
            result = self._finalize()
        self._announce(result, trigger="submitted")
        return result

    def discard(self) -> None:
        """Drop the session: cancel the countdown and ignore late events."""

        with self._lock:
            self._discarded = True
            self._timer.stop()
        self._log("Session discarded")

    def _on_tick(self, token: object) -> None:
        with self._lock:
            if not self._timer.is_current(token):
                return
            if self._state is not SessionState.QUIZ:
                self._timer.stop()
                return
            if self._remaining > 1:
                self._remaining -= 1
                return
            self._remaining = 0
            result = self._finalize()
        self._announce(result, trigger="expired")

    def _finalize(self) -> ExamResult:
        # Caller holds the lock and has checked the state is QUIZ.
        try:
            self._timer.stop()
        finally:
            assert self._question_set is not None
            self._result = score(
                self._question_set,
                self._answers,
                self._total - self._remaining,
                clock=self._clock,
            )
            self._state = SessionState.FINISHED
        return self._result

    def _announce(self, result: ExamResult, *, trigger: str) -> None:
        self._logger.info(
            "Quiz finished",
            extra={
                "session_id": self.session_id,
                "trigger": trigger,
                "score": result.score,
                "question_count": result.total_questions,
                "time_taken_seconds": result.time_taken_seconds,
            },
        )
        if self._on_finish is not None:
            self._on_finish(result)

    def _reject(self, event: str) -> bool:
        error = InvalidTransitionError(event, self._state.value)
        self._logger.debug(
            str(error),
            extra={"session_id": self.session_id, "discarded": self._discarded},
        )
        return False

    def _log(self, message: str, **extra: object) -> None:
        self._logger.info(
            message,
            extra={
                "session_id": self.session_id,
                "state": self._state.value,
                **extra,
            },
        )


class ExamImporter:
    """Caller-facing controller: import, answer, submit, observe."""

    def __init__(
        self,
        gateway: ExtractionGateway,
        *,
        sink: ResultSink | None = None,
        total_duration_seconds: int = DEFAULT_DURATION_SECONDS,
        scheduler: TickScheduler | None = None,
        executor: Executor | None = None,
        on_finish: FinishCallback | None = None,
        on_error: ErrorCallback | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._gateway = gateway
        self._sink = sink
        self._duration = total_duration_seconds
        self._scheduler = scheduler
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="exam-quizzer-import"
        )
        self._on_finish = on_finish
        self._on_error = on_error
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._closed = False
        self._settled.set()
        self._session = self._new_session()

    @property
    def session(self) -> QuizSession:
        return self._session

    def begin_import(
        self, document: bytes, mime_type: str = PDF_MIME_TYPE
    ) -> QuizSession:
        """Discard the current session and start importing ``document``.

        The gateway runs on the importer's executor; this call returns the
        new session right away in ``processing`` state. Raises
        ``RuntimeError`` once the importer has been closed.
        """

        settled = threading.Event()
        with self._lock:
            if self._closed:
                raise RuntimeError("ExamImporter is closed")
            previous = self._session
            session = self._new_session()
            self._session = session
            self._settled = settled
        previous.discard()
        session.begin_processing()
        try:
            future = self._executor.submit(self._extract, document, mime_type)
        except RuntimeError as exc:
            session.fail(f"The document could not be processed: {exc}")
            settled.set()
            raise
        future.add_done_callback(
            partial(self._on_extracted, session, settled)
        )
        return session

    def answer(self, question_number: int, option_key: str) -> bool:
        return self._session.answer(question_number, option_key)

    def submit(self) -> ExamResult | None:
        return self._session.submit()

    def snapshot(self) -> SessionSnapshot:
        return self._session.snapshot()

    def wait_until_ready(self, timeout: float | None = None) -> bool:
        """Block until the latest import has settled into quiz or idle."""

        return self._settled.wait(timeout)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self._session.discard()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "ExamImporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.close()

    def _new_session(self) -> QuizSession:
        return QuizSession(
            total_duration_seconds=self._duration,
            scheduler=self._scheduler,
            on_finish=self._on_session_finished,
            clock=self._clock,
            logger=self._logger,
        )

    def _extract(self, document: bytes, mime_type: str) -> QuestionSet:
        raw = self._gateway.extract(document, mime_type)
        return build_question_set(parse_gateway_payload(raw))

    def _on_extracted(
        self,
        session: QuizSession,
        settled: threading.Event,
        future: Future,
    ) -> None:
        try:
            with self._lock:
                stale = session is not self._session
            if stale or session.discarded or future.cancelled():
                self._logger.debug(
                    "Dropping stale extraction response",
                    extra={"session_id": session.session_id},
                )
                return
            try:
                question_set = future.result()
            except IngestionError as exc:
                message = str(exc)
            except Exception as exc:
                self._logger.exception(
                    "Extraction gateway failed",
                    extra={"session_id": session.session_id},
                )
                message = f"The document could not be processed: {exc}"
            else:
                session.start(question_set)
                return
            if session.fail(message) and self._on_error is not None:
                self._on_error(message)
        finally:
            settled.set()

    def _on_session_finished(self, result: ExamResult) -> None:
        if self._sink is not None:
            try:
                self._sink.store(result)
            except Exception:
                self._logger.exception(
                    "Failed to store exam result",
                    extra={"result_id": result.id},
                )
        if self._on_finish is not None:
            self._on_finish(result)

"""Question and result data structures plus gateway payload normalization.

Raw gateway records use the camelCase shape the extraction prompt asks for
(``questionNumber``, ``questionText``, ``passage``, ``options``,
``correctAnswer``, ``questionType``); snake_case spellings are accepted too.
Beyond keying by ``number`` nothing is validated: an answer key that matches
no option, or an option list with odd entries, is carried through as-is and
simply never scores.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .errors import EmptyResultError, IngestionError, MalformedQuestionError

__all__ = [
    "UNKNOWN_TYPE",
    "Option",
    "Question",
    "QuestionSet",
    "TypeTally",
    "ExamResult",
    "build_question_set",
    "parse_gateway_payload",
]

UNKNOWN_TYPE = "unknown"

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


@dataclass(frozen=True)
class Option:
    """A single answer option shown as ``key) value``."""

    key: str
    value: str


@dataclass(frozen=True)
class Question:
    """Immutable question as extracted from the exam document."""

    number: int
    text: str
    options: tuple[Option, ...]
    correct_answer: str
    passage: str | None = None
    type: str = UNKNOWN_TYPE

    def option_for(self, key: str | None) -> Option | None:
        if key is None:
            return None
        for option in self.options:
            if option.key == key:
                return option
        return None

    def option_keys(self) -> list[str]:
        return [option.key for option in self.options]

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionNumber": self.number,
            "questionText": self.text,
            "passage": self.passage,
            "options": [
                {"key": option.key, "value": option.value}
                for option in self.options
            ],
            "correctAnswer": self.correct_answer,
            "questionType": self.type,
        }

    @classmethod
    def from_raw(cls, record: Mapping[str, Any], index: int) -> "Question":
        """Normalize one raw gateway record.

        Raises :class:`MalformedQuestionError` only when the question number
        is missing or unusable, since everything else is keyed by it.
        """

        number = _coerce_number(
            _first(record, "questionNumber", "question_number", "number"),
            index,
        )
        text = _first(record, "questionText", "question_text", "text")
        passage = _first(record, "passage")
        qtype = _first(record, "questionType", "question_type", "type")
        answer = _first(record, "correctAnswer", "correct_answer", "answer")
        return cls(
            number=number,
            text=str(text or "").strip(),
            options=tuple(_iter_options(record.get("options"))),
            correct_answer=str(answer or "").strip(),
            passage=str(passage) if passage else None,
            type=str(qtype).strip() if qtype else UNKNOWN_TYPE,
        )


class QuestionSet(Sequence[Question]):
    """Questions ordered ascending by number; immutable once built."""

    __slots__ = ("_questions", "_by_number")

    def __init__(self, questions: Sequence[Question]) -> None:
        # sorted() is stable, so equal numbers keep their input order.
        ordered = tuple(sorted(questions, key=lambda q: q.number))
        self._questions = ordered
        self._by_number = MappingProxyType({q.number: q for q in ordered})

    def __len__(self) -> int:
        return len(self._questions)

    def __getitem__(self, index):  # type: ignore[override]
        return self._questions[index]

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuestionSet):
            return NotImplemented
        return self._questions == other._questions

    def __hash__(self) -> int:
        return hash(self._questions)

    def __repr__(self) -> str:
        return f"QuestionSet({len(self)} questions)"

    def __deepcopy__(self, memo: dict[int, Any]) -> "QuestionSet":
        # Questions are frozen, so a fresh container is a full snapshot.
        return QuestionSet(self._questions)

    def numbers(self) -> tuple[int, ...]:
        return tuple(q.number for q in self._questions)

    def get(self, number: int) -> Question | None:
        return self._by_number.get(number)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Question):
            return item in self._questions
        return item in self._by_number


@dataclass(frozen=True)
class TypeTally:
    """Correct/total counts for one question type."""

    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total


@dataclass(frozen=True)
class ExamResult:
    """Frozen outcome of a finished quiz session."""

    id: str
    timestamp: str
    questions: QuestionSet
    answers: Mapping[int, str]
    time_taken_seconds: int
    score: int
    total_questions: int
    performance_by_type: Mapping[str, TypeTally] = field(
        default_factory=dict
    )

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.score / self.total_questions

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if q.number in self.answers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "questions": [q.to_dict() for q in self.questions],
            "userAnswers": {
                str(number): key for number, key in self.answers.items()
            },
            "timeTaken": self.time_taken_seconds,
            "score": self.score,
            "totalQuestions": self.total_questions,
            "performanceByType": {
                qtype: {"correct": tally.correct, "total": tally.total}
                for qtype, tally in self.performance_by_type.items()
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ExamResult":
        try:
            payload = _require_mapping(payload, "result")
            questions = build_question_set(payload["questions"])
            answers = {
                int(number): str(key)
                for number, key in _require_mapping(
                    payload.get("userAnswers") or {}, "userAnswers"
                ).items()
            }
            performance: dict[str, TypeTally] = {}
            for qtype, counts in _require_mapping(
                payload.get("performanceByType") or {}, "performanceByType"
            ).items():
                counts = _require_mapping(counts, f"performanceByType.{qtype}")
                performance[str(qtype)] = TypeTally(
                    correct=int(counts.get("correct", 0)),
                    total=int(counts.get("total", 0)),
                )
            return cls(
                id=str(payload["id"]),
                timestamp=str(payload.get("timestamp", "")),
                questions=questions,
                answers=MappingProxyType(answers),
                time_taken_seconds=int(payload.get("timeTaken", 0)),
                score=int(payload.get("score", 0)),
                total_questions=int(
                    payload.get("totalQuestions", len(questions))
                ),
                performance_by_type=MappingProxyType(performance),
            )
        except (KeyError, TypeError, ValueError, IngestionError) as exc:
            raise ValueError(f"Invalid stored exam result: {exc}") from exc


def build_question_set(raw: Any) -> QuestionSet:
    """Build a :class:`QuestionSet` from the gateway's raw question list.

    Empty, missing or non-list input raises :class:`EmptyResultError`. A
    record that cannot be keyed (missing/invalid number, or a number used
    twice) fails the whole batch as :class:`IngestionError`.
    """

    if not raw or not isinstance(raw, list):
        raise EmptyResultError()
    questions: list[Question] = []
    seen: set[int] = set()
    try:
        for index, record in enumerate(raw):
            if not isinstance(record, Mapping):
                raise MalformedQuestionError(index, "expected an object")
            question = Question.from_raw(record, index)
            if question.number in seen:
                raise MalformedQuestionError(
                    index, f"duplicate question number {question.number}"
                )
            seen.add(question.number)
            questions.append(question)
    except MalformedQuestionError as exc:
        raise IngestionError(
            f"The extracted questions could not be ordered: {exc}"
        ) from exc
    return QuestionSet(questions)


def parse_gateway_payload(payload: Any) -> list[Any] | None:
    """Pull the raw question list out of a gateway response.

    Accepts JSON text (optionally inside a fenced code block), a mapping
    with a ``questions`` key, or a bare list. Returns ``None`` when no list
    is present; undecodable text raises :class:`IngestionError`.
    """

    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        text = payload.strip()
        if not text:
            return None
        fenced = _FENCED_JSON.search(text)
        if fenced:
            text = fenced.group(1).strip()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise IngestionError(
                f"The extraction service returned invalid JSON: {exc}"
            ) from exc
    if isinstance(payload, Mapping):
        payload = payload.get("questions")
    if isinstance(payload, list):
        return payload
    return None


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _coerce_number(value: Any, index: int) -> int:
    if value is None:
        raise MalformedQuestionError(index, "missing question number")
    if isinstance(value, bool):
        raise MalformedQuestionError(index, f"invalid number {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise MalformedQuestionError(index, f"invalid number {value!r}")
    return value


def _iter_options(raw: Any) -> Iterator[Option]:
    if isinstance(raw, Mapping):
        for key, value in raw.items():
            yield Option(str(key).strip(), str(value).strip())
        return
    if not isinstance(raw, (list, tuple)):
        return
    for position, item in enumerate(raw):
        fallback = chr(ord("A") + position)
        if isinstance(item, Mapping):
            key = str(item.get("key") or "").strip() or fallback
            value = _first(item, "value", "text")
            yield Option(key, str(value or "").strip())
        else:
            yield Option(fallback, str(item).strip())


def _require_mapping(value: Any, field: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"'{field}' must be an object")
    return value

"""Pure scoring of a finished quiz."""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Callable

from .models import ExamResult, QuestionSet, TypeTally, UNKNOWN_TYPE

__all__ = ["Clock", "score", "summarize_by_type"]

Clock = Callable[[], datetime]


def score(
    question_set: QuestionSet,
    answers: Mapping[int, str],
    time_taken_seconds: int,
    *,
    clock: Clock | None = None,
) -> ExamResult:
    """Grade ``answers`` against ``question_set`` and freeze the outcome.

    Unanswered questions count as incorrect. Only ``id`` and ``timestamp``
    depend on the clock; every other field is a function of the inputs.
    """

    now = (clock or _local_now)()
    questions = copy.deepcopy(question_set)
    ledger = dict(answers)
    performance = summarize_by_type(questions, ledger)
    correct = sum(tally.correct for tally in performance.values())
    return ExamResult(
        id=f"{now.isoformat()}-{uuid.uuid4().hex[:8]}",
        timestamp=now.strftime("%c"),
        questions=questions,
        answers=MappingProxyType(ledger),
        time_taken_seconds=max(0, int(time_taken_seconds)),
        score=correct,
        total_questions=len(questions),
        performance_by_type=MappingProxyType(performance),
    )


def summarize_by_type(
    question_set: QuestionSet, answers: Mapping[int, str]
) -> dict[str, TypeTally]:
    """Tally correct/total per question type, in first-seen type order."""

    counts: dict[str, list[int]] = {}
    for question in question_set:
        tally = counts.setdefault(question.type or UNKNOWN_TYPE, [0, 0])
        tally[1] += 1
        if answers.get(question.number) == question.correct_answer:
            tally[0] += 1
    return {
        qtype: TypeTally(correct=correct, total=total)
        for qtype, (correct, total) in counts.items()
    }


def _local_now() -> datetime:
    return datetime.now().astimezone()

"""Rendering helpers layered on top of QuestionSet order."""

from __future__ import annotations

from typing import Iterator, NamedTuple, Optional

from .models import Question, QuestionSet

__all__ = [
    "QuestionView",
    "format_time",
    "is_low_time",
    "iter_question_views",
    "index_of",
    "passage_for",
]

LOW_TIME_SECONDS = 300


class QuestionView(NamedTuple):
    index: int
    question: Question
    show_passage: bool


def format_time(seconds: int) -> str:
    """Format a countdown as ``MM:SS``; minutes may exceed 59."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def is_low_time(seconds: int) -> bool:
    return seconds < LOW_TIME_SECONDS


def passage_for(question_set: QuestionSet, index: int) -> Optional[str]:
    """Passage to display above ``question_set[index]``, if any.

    A passage is shown only when it differs (by value) from the passage of
    the question immediately before it.
    """
    question = question_set[index]
    if not question.passage:
        return None
    if index > 0 and question_set[index - 1].passage == question.passage:
        return None
    return question.passage


def iter_question_views(question_set: QuestionSet) -> Iterator[QuestionView]:
    for index, question in enumerate(question_set):
        yield QuestionView(
            index=index,
            question=question,
            show_passage=passage_for(question_set, index) is not None,
        )


def index_of(question_set: QuestionSet, number: int) -> Optional[int]:
    """Position of question ``number`` for navigation, or ``None``."""
    for index, question in enumerate(question_set):
        if question.number == number:
            return index
    return None

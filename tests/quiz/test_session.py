from __future__ import annotations

import logging

import pytest

from fixtures import fixed_clock

from exam_quizzer.quiz.models import QuestionSet, build_question_set
from exam_quizzer.quiz.session import QuizSession, SessionState


@pytest.fixture
def question_set(raw_questions) -> QuestionSet:
    return build_question_set(raw_questions)


def _quiz(scheduler, question_set, **kwargs) -> QuizSession:
    session = QuizSession(scheduler=scheduler, clock=fixed_clock, **kwargs)
    assert session.begin_processing()
    assert session.start(question_set)
    return session


@pytest.mark.parametrize("bad", [0, -1, True, 1.5])
def test_duration_must_be_positive_int(bad, scheduler) -> None:
    with pytest.raises(ValueError):
        QuizSession(total_duration_seconds=bad, scheduler=scheduler)


def test_new_session_is_idle_and_ignores_quiz_events(
    scheduler, question_set
) -> None:
    session = QuizSession(scheduler=scheduler)

    assert session.state is SessionState.IDLE
    assert session.remaining_seconds == 5400
    assert not session.answer(1, "A")
    assert session.submit() is None
    assert not session.start(question_set)
    assert not session.fail("nope")
    assert session.state is SessionState.IDLE
    assert scheduler.handles == []


def test_start_binds_questions_and_starts_countdown(
    scheduler, question_set
) -> None:
    session = _quiz(scheduler, question_set, total_duration_seconds=600)

    snap = session.snapshot()
    assert snap.state is SessionState.QUIZ
    assert snap.question_set == question_set
    assert snap.remaining_seconds == 600
    assert snap.answered_count == 0
    assert session.timer_active
    assert len(scheduler.live) == 1

    scheduler.fire(5)
    assert session.remaining_seconds == 595


def test_answers_overwrite_and_unknown_numbers_are_ignored(
    scheduler, question_set
) -> None:
    session = _quiz(scheduler, question_set)

    assert session.answer(1, "B")
    assert session.answer(1, "A")
    assert not session.answer(42, "A")
    # Keys are not checked against the options; they just never score.
    assert session.answer(2, "Q")

    assert dict(session.answers) == {1: "A", 2: "Q"}
    with pytest.raises(TypeError):
        session.answers[3] = "C"  # type: ignore[index]


def test_manual_submit_scores_elapsed_time(scheduler, question_set) -> None:
    finished = []
    session = _quiz(
        scheduler, question_set, total_duration_seconds=90,
        on_finish=finished.append,
    )
    scheduler.fire(10)
    session.answer(1, "A")
    session.answer(2, "B")
    session.answer(3, "A")

    result = session.submit()

    assert result is not None
    assert result.score == 2
    assert result.total_questions == 3
    assert result.time_taken_seconds == 10
    assert session.state is SessionState.FINISHED
    assert session.result is result
    assert finished == [result]
    assert not session.timer_active
    assert scheduler.live == []


def test_expiry_finalizes_exactly_once(scheduler, question_set) -> None:
    finished = []
    session = _quiz(
        scheduler, question_set, total_duration_seconds=90,
        on_finish=finished.append,
    )
    handle = scheduler.handles[0]
    session.answer(1, "A")

    scheduler.fire(89)
    assert session.remaining_seconds == 1
    assert session.state is SessionState.QUIZ

    scheduler.fire()
    assert session.state is SessionState.FINISHED
    assert session.remaining_seconds == 0
    assert len(finished) == 1
    result = finished[0]
    assert result.time_taken_seconds == 90
    assert result.score == 1

    # Late ticks and events after the end change nothing.
    handle.callback()
    scheduler.fire(3)
    assert session.submit() is None
    assert not session.answer(2, "B")
    assert session.result is result
    assert len(finished) == 1


def test_in_flight_tick_after_submit_is_dropped(
    scheduler, question_set
) -> None:
    finished = []
    session = _quiz(
        scheduler, question_set, total_duration_seconds=5,
        on_finish=finished.append,
    )
    handle = scheduler.handles[0]
    scheduler.fire(4)
    result = session.submit()

    handle.callback()

    assert session.remaining_seconds == 1
    assert session.result is result
    assert finished == [result]


def test_start_with_empty_set_fails_back_to_idle(scheduler) -> None:
    session = QuizSession(scheduler=scheduler)
    session.begin_processing()

    assert not session.start(QuestionSet([]))
    assert session.state is SessionState.IDLE
    assert session.error == (
        "The document could not be parsed into any questions."
    )
    assert scheduler.handles == []


def test_fail_clears_state_and_keeps_message(scheduler, caplog) -> None:
    caplog.set_level(logging.WARNING)
    session = QuizSession(
        scheduler=scheduler,
        logger=logging.getLogger("tests.exam_quizzer.session"),
    )
    session.begin_processing()

    assert session.fail("The extraction service request failed: boom")

    snap = session.snapshot()
    assert snap.state is SessionState.IDLE
    assert snap.question_set is None
    assert snap.answers == {}
    assert snap.error == "The extraction service request failed: boom"
    assert "Import failed" in caplog.text

    # A retry clears the previous message.
    assert session.begin_processing()
    assert session.error is None


def test_discard_stops_countdown_and_rejects_events(
    scheduler, question_set
) -> None:
    session = _quiz(scheduler, question_set, total_duration_seconds=30)
    scheduler.fire(3)

    session.discard()
    scheduler.handles[0].callback()

    assert session.discarded
    assert not session.timer_active
    assert session.remaining_seconds == 27
    assert not session.answer(1, "A")
    assert session.submit() is None
    assert session.result is None

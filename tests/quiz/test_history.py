from __future__ import annotations

import json
import logging
import stat

from fixtures import fixed_clock

from exam_quizzer.quiz.history import (
    ExamHistory,
    JsonlResultSink,
    reconcile_selection,
)
from exam_quizzer.quiz.models import build_question_set
from exam_quizzer.quiz.scoring import score


def _result(raw_questions, answers):
    return score(
        build_question_set(raw_questions), answers, 42, clock=fixed_clock
    )


def test_sink_appends_json_lines(tmp_path, raw_questions) -> None:
    path = tmp_path / "results" / "results.jsonl"
    sink = JsonlResultSink(path)
    first = _result(raw_questions, {1: "A"})
    second = _result(raw_questions, {1: "A", 2: "B"})

    sink.store(first)
    sink.store(second)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["id"] for line in lines] == [first.id, second.id]
    assert json.loads(lines[1])["score"] == 2
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_history_lists_newest_first(tmp_path, raw_questions) -> None:
    path = tmp_path / "results.jsonl"
    sink = JsonlResultSink(path)
    older = _result(raw_questions, {})
    newer = _result(raw_questions, {3: "C"})
    sink.store(older)
    sink.store(newer)

    history = ExamHistory(path)
    results = history.list()

    assert [r.id for r in results] == [newer.id, older.id]
    assert results[0] == newer
    assert history.get(older.id) == older
    assert history.get("missing") is None


def test_history_skips_unreadable_lines(tmp_path, raw_questions, caplog):
    caplog.set_level(logging.WARNING)
    path = tmp_path / "results.jsonl"
    kept = _result(raw_questions, {})
    JsonlResultSink(path).store(kept)
    with path.open("a", encoding="utf-8") as fh:
        fh.write("{broken\n\n")
        fh.write(json.dumps({"id": "no-questions"}) + "\n")
        wrong_answers = dict(kept.to_dict(), userAnswers=[1, 2])
        fh.write(json.dumps(wrong_answers) + "\n")
        wrong_tally = dict(kept.to_dict(), performanceByType={"A": 5})
        fh.write(json.dumps(wrong_tally) + "\n")
        fh.write(json.dumps([kept.id]) + "\n")

    history = ExamHistory(
        path, logger=logging.getLogger("tests.exam_quizzer.history")
    )

    assert [r.id for r in history.list()] == [kept.id]
    assert caplog.text.count("Skipping unreadable history entry") == 5


def test_history_clear(tmp_path, raw_questions) -> None:
    path = tmp_path / "results.jsonl"
    history = ExamHistory(path)
    assert history.list() == []
    assert history.clear() == 0

    JsonlResultSink(path).store(_result(raw_questions, {}))
    JsonlResultSink(path).store(_result(raw_questions, {}))

    assert history.clear() == 2
    assert not path.exists()
    assert history.list() == []


def test_reconcile_selection(raw_questions) -> None:
    first = _result(raw_questions, {})
    second = _result(raw_questions, {})

    assert reconcile_selection([first, second], second.id) == second.id
    assert reconcile_selection([first, second], "gone") == first.id
    assert reconcile_selection([first, second], None) == first.id
    assert reconcile_selection([], first.id) is None

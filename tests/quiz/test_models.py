from __future__ import annotations

import copy

import pytest

from exam_quizzer.quiz.errors import (
    EmptyResultError,
    IngestionError,
    MalformedQuestionError,
)
from exam_quizzer.quiz.models import (
    UNKNOWN_TYPE,
    Option,
    Question,
    QuestionSet,
    build_question_set,
    parse_gateway_payload,
)


def test_build_question_set_orders_by_number(raw_questions) -> None:
    question_set = build_question_set(raw_questions)

    assert question_set.numbers() == (1, 2, 3)
    first = question_set[0]
    assert first.text == "Choose the synonym of 'rapid'."
    assert first.options[0] == Option("A", "fast")
    assert first.correct_answer == "A"
    assert first.type == "vocabulary"
    assert first.passage is None
    assert question_set[1].passage == question_set[2].passage


def test_build_question_set_rejects_empty_input() -> None:
    for raw in (None, [], {}, "questions"):
        with pytest.raises(EmptyResultError) as excinfo:
            build_question_set(raw)
        assert str(excinfo.value) == (
            "The document could not be parsed into any questions."
        )


def test_build_question_set_wraps_unkeyable_records() -> None:
    with pytest.raises(IngestionError) as excinfo:
        build_question_set([{"questionText": "No number"}])
    assert "Question #1: missing question number" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, MalformedQuestionError)
    assert excinfo.value.__cause__.index == 0


def test_build_question_set_rejects_duplicates_and_non_objects() -> None:
    with pytest.raises(IngestionError, match="duplicate question number 4"):
        build_question_set(
            [{"questionNumber": 4}, {"questionNumber": 4}]
        )
    with pytest.raises(IngestionError, match="expected an object"):
        build_question_set([{"questionNumber": 1}, "oops"])


@pytest.mark.parametrize("bad", [0, -3, True, "abc", 2.5])
def test_question_number_must_be_positive_integer(bad) -> None:
    with pytest.raises(MalformedQuestionError):
        Question.from_raw({"questionNumber": bad}, 0)


def test_from_raw_accepts_loose_shapes() -> None:
    snake = Question.from_raw(
        {
            "question_number": "7",
            "question_text": "  Pick one ",
            "options": {"A": "yes", "B": "no"},
            "correct_answer": "B",
        },
        0,
    )
    assert snake.number == 7
    assert snake.text == "Pick one"
    assert snake.option_keys() == ["A", "B"]
    assert snake.type == UNKNOWN_TYPE

    bare = Question.from_raw(
        {"number": 2.0, "options": ["red", "blue"], "answer": "Z"}, 1
    )
    assert bare.number == 2
    assert bare.options == (Option("A", "red"), Option("B", "blue"))
    # An answer key that matches no option is kept as-is.
    assert bare.correct_answer == "Z"
    assert bare.option_for("Z") is None
    assert bare.option_for("B") == Option("B", "blue")


def test_question_to_dict_uses_wire_names(raw_questions) -> None:
    question = build_question_set(raw_questions).get(2)
    assert question is not None

    payload = question.to_dict()
    assert payload["questionNumber"] == 2
    assert payload["correctAnswer"] == "B"
    assert payload["questionType"] == "reading"
    assert payload["options"][1] == {"key": "B", "value": "The river"}


def test_question_set_lookup_and_equality(raw_questions) -> None:
    question_set = build_question_set(raw_questions)
    again = build_question_set(raw_questions)

    assert question_set == again
    assert hash(question_set) == hash(again)
    assert 3 in question_set
    assert 9 not in question_set
    assert question_set[0] in question_set
    assert question_set.get(9) is None

    cloned = copy.deepcopy(question_set)
    assert cloned == question_set
    assert cloned is not question_set


def test_question_set_sort_is_stable() -> None:
    first = Question(5, "first", (), "A")
    second = Question(5, "second", (), "A")
    earlier = Question(1, "earlier", (), "A")

    ordered = QuestionSet([first, second, earlier])
    assert [q.text for q in ordered] == ["earlier", "first", "second"]


def test_parse_gateway_payload_variants(raw_questions) -> None:
    fenced = '```json\n{"questions": [{"questionNumber": 1}]}\n```'
    assert parse_gateway_payload(fenced) == [{"questionNumber": 1}]
    assert parse_gateway_payload(b'[{"questionNumber": 2}]') == [
        {"questionNumber": 2}
    ]
    assert parse_gateway_payload({"questions": raw_questions}) == raw_questions
    assert parse_gateway_payload({"items": []}) is None
    assert parse_gateway_payload("   ") is None
    assert parse_gateway_payload(None) is None

    with pytest.raises(IngestionError, match="invalid JSON"):
        parse_gateway_payload("{not json")

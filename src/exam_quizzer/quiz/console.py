"""Rich-rendered terminal runner for an imported exam.

The runner is only a caller of :class:`~exam_quizzer.quiz.session.ExamImporter`:
it reads commands, forwards answers and submission, and re-reads the session
snapshot after every prompt so a countdown that expired while the user was
typing ends the loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Mapping, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import ExamResult, Question, QuestionSet
from .presentation import (
    QuestionView,
    format_time,
    index_of,
    is_low_time,
    iter_question_views,
)
from .session import ExamImporter, SessionSnapshot, SessionState

__all__ = [
    "ConsoleCommand",
    "parse_console_command",
    "run_console_quiz",
    "answer_grid",
    "render_result",
]

InputProvider = Callable[[], str]


@dataclass(frozen=True)
class ConsoleCommand:
    """Normalized command parsed from console input."""

    type: Literal["select", "next", "prev", "goto", "submit", "quit"]
    value: str | None = None


def parse_console_command(
    raw: str | None, option_keys: Sequence[str] = ()
) -> ConsoleCommand | None:
    """Parse raw user input into a structured command.

    A single token naming one of ``option_keys`` always selects that option,
    so a question with an option ``N`` or ``Q`` is still answerable; the
    long forms (``next``, ``prev``, ``submit``, ``quit``) stay available.
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    folded = text.casefold()
    if any(key.casefold() == folded for key in option_keys):
        return ConsoleCommand("select", text)
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return ConsoleCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return ConsoleCommand("prev")
    if lowered in {"s", "submit"}:
        return ConsoleCommand("submit")
    if lowered in {"q", "quit", "exit"}:
        return ConsoleCommand("quit")
    parts = text.split()
    if parts[0].lower() in {"g", "goto"}:
        if len(parts) == 2 and parts[1].isdigit():
            return ConsoleCommand("goto", parts[1])
        return None
    if len(parts) == 1:
        return ConsoleCommand("select", parts[0])
    return None


def run_console_quiz(
    importer: ExamImporter,
    console: Console,
    input_provider: InputProvider,
) -> ExamResult | None:
    """Drive the importer's active quiz until it is finalized.

    Returns the finished result, or ``None`` when the importer was not in
    ``quiz`` state to begin with.
    """

    snapshot = importer.snapshot()
    if snapshot.state is not SessionState.QUIZ:
        console.print(
            Panel(
                snapshot.error or "No exam is loaded.",
                title="Exam",
                border_style="yellow",
            )
        )
        return None

    assert snapshot.question_set is not None
    views = tuple(iter_question_views(snapshot.question_set))
    index = 0
    while True:
        snapshot = importer.snapshot()
        if snapshot.state is not SessionState.QUIZ:
            break
        view = views[index]
        _render_question(console, snapshot, view)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted; submitting.[/]")
            importer.submit()
            break
        if importer.snapshot().state is not SessionState.QUIZ:
            console.print("\n[bold red]Time is up. Answers were submitted.[/]")
            break
        command = parse_console_command(raw, view.question.option_keys())
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        index = _apply_command(command, importer, snapshot, index, console)

    result = importer.snapshot().result
    if result is not None:
        render_result(console, result)
    return result


def _apply_command(
    command: ConsoleCommand,
    importer: ExamImporter,
    snapshot: SessionSnapshot,
    index: int,
    console: Console,
) -> int:
    question_set = snapshot.question_set
    assert question_set is not None
    question = question_set[index]
    if command.type == "select" and command.value:
        key = _match_key(question, command.value)
        if key is None:
            console.print(
                f"[red]'{command.value}' is not a valid choice for "
                f"question {question.number}.[/red]"
            )
        elif importer.answer(question.number, key):
            console.print(f"Selected [bold]{key}[/] for {question.number}.")
        return index
    if command.type == "next":
        return min(index + 1, len(question_set) - 1)
    if command.type == "prev":
        return max(index - 1, 0)
    if command.type == "goto" and command.value:
        target = index_of(question_set, int(command.value))
        if target is None:
            console.print(f"[red]No question numbered {command.value}.[/red]")
            return index
        return target
    if command.type in {"submit", "quit"}:
        importer.submit()
    return index


def _match_key(question: Question, raw: str) -> str | None:
    exact = question.option_for(raw)
    if exact is not None:
        return exact.key
    folded = raw.casefold()
    for key in question.option_keys():
        if key.casefold() == folded:
            return key
    return None


def _render_question(
    console: Console, snapshot: SessionSnapshot, view: QuestionView
) -> None:
    question_set = snapshot.question_set
    assert question_set is not None
    index, question = view.index, view.question
    remaining = snapshot.remaining_seconds
    clock_style = "bold red" if is_low_time(remaining) else "bold"
    header = Text.assemble(
        (f"Question {question.number}", "bold cyan"),
        (f" ({index + 1}/{len(question_set)})", "dim"),
        ("  ⏱ ", ""),
        (format_time(remaining), clock_style),
    )
    console.print()
    console.rule(header)

    if view.show_passage:
        console.print(
            Panel(question.passage or "", title="Passage", border_style="blue")
        )
    console.print(Text(question.text, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Option")
    selected = snapshot.answers.get(question.number)
    for option in question.options:
        marker = "•" if option.key == selected else " "
        value = Text(option.value)
        if option.key == selected:
            value.stylize("bold green")
        table.add_row(option.key, Text(marker + " ") + value)
    console.print(table)

    console.print(answer_grid(question_set, snapshot.answers, index))
    console.print(
        Text(
            f"Answered {snapshot.answered_count}/{len(question_set)} | "
            "Commands: option key, n/next, p/prev, g <number>, "
            "submit, quit",
            style="dim",
        )
    )


def answer_grid(
    question_set: QuestionSet, answers: Mapping[int, str], current: int
) -> Text:
    """One cell per question number; answered cells are highlighted."""

    grid = Text()
    for position, question in enumerate(question_set):
        style = "bold green" if question.number in answers else "dim"
        if position == current:
            style += " reverse"
        if position:
            grid.append(" ")
        grid.append(f" {question.number} ", style=style)
    return grid


def render_result(console: Console, result: ExamResult) -> None:
    """Print the overview, per-type breakdown and per-question outcome."""

    console.print()
    console.rule(Text("Exam Result", style="bold magenta"))

    overview = Table(
        show_header=False, box=box.MINIMAL_DOUBLE_HEAD, expand=False
    )
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Finished", result.timestamp)
    overview.add_row("Score", f"{result.score}/{result.total_questions}")
    overview.add_row("Answered", str(result.answered_count))
    overview.add_row("Accuracy", f"{result.accuracy * 100:.1f}%")
    overview.add_row("Time taken", format_time(result.time_taken_seconds))
    console.print(overview)

    if result.performance_by_type:
        per_type = Table(title="By question type", box=box.SIMPLE)
        per_type.add_column("Type")
        per_type.add_column("Correct", justify="right")
        per_type.add_column("Total", justify="right")
        per_type.add_column("Accuracy", justify="right")
        for qtype, tally in result.performance_by_type.items():
            per_type.add_row(
                qtype,
                str(tally.correct),
                str(tally.total),
                f"{tally.accuracy * 100:.1f}%",
            )
        console.print(per_type)

    responses = Table(title="Responses", box=box.SIMPLE, expand=True)
    responses.add_column("#", justify="right")
    responses.add_column("Type")
    responses.add_column("Your answer")
    responses.add_column("Correct answer")
    responses.add_column("Result", justify="center")
    for question in result.questions:
        chosen = result.answers.get(question.number)
        outcome = "✅" if chosen == question.correct_answer else "❌"
        responses.add_row(
            str(question.number),
            question.type,
            chosen or "—",
            question.correct_answer or "—",
            outcome,
        )
    console.print(responses)

"""Command-line entry point: ``exam-quizzer``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from exam_quizzer.core import workspace as workspace_mod
from exam_quizzer.core.ai import load_client
from exam_quizzer.core.logging import configure_logger, release_logger

from .config import (
    ConfigOverrides,
    QuizzerConfigError,
    default_config_path,
    load_config,
    write_template,
)
from .quiz.console import render_result, run_console_quiz
from .quiz.document import read_document
from .quiz.errors import DocumentError
from .quiz.gateway import OpenAIExtractionGateway
from .quiz.history import RESULTS_FILENAME, ExamHistory, JsonlResultSink
from .quiz.presentation import format_time
from .quiz.session import ExamImporter, SessionState

LOGGER_NAME = "exam_quizzer"


def _results_path(layout: workspace_mod.WorkspaceLayout) -> Path:
    return layout.path_for("results") / RESULTS_FILENAME


def _prompt(console: Console) -> Callable[[], str]:
    return lambda: console.input("[bold]> [/]")


def _cmd_init(args: argparse.Namespace) -> int:
    try:
        layout = workspace_mod.ensure_workspace(path=args.path)
    except workspace_mod.WorkspaceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    status = "created" if layout.created.get("home") else "exists"
    lines = [f"Workspace ready at {layout.home} ({status})"]
    width = max(len(name) for name in layout.directories)
    for name, directory in layout.items():
        state = "created" if layout.created.get(name) else "exists"
        lines.append(f"  {name.ljust(width)}  {directory} ({state})")
    sys.stdout.write("\n".join(lines) + "\n")
    return 0


def _cmd_config_init(args: argparse.Namespace) -> int:
    try:
        if args.path is not None:
            target = args.path
        else:
            layout = workspace_mod.ensure_workspace(path=args.workspace)
            target = default_config_path(layout)
        written = write_template(target, overwrite=args.force)
    except (QuizzerConfigError, workspace_mod.WorkspaceError) as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    sys.stdout.write(f"Wrote config template to {written}\n")
    return 0


def _cmd_take(args: argparse.Namespace) -> int:
    overrides = ConfigOverrides(
        duration_minutes=args.duration_minutes,
        model=args.model,
        log_level=args.log_level,
        verbose=True if args.verbose else None,
    )
    try:
        loaded = load_config(
            config_path=args.config,
            overrides=overrides,
            workspace_path=args.workspace,
        )
    except QuizzerConfigError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    config = loaded.config

    try:
        document = read_document(args.pdf, max_bytes=config.documents.max_bytes)
    except DocumentError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2

    try:
        client = load_client()
    except RuntimeError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1

    logger, log_path = configure_logger(
        LOGGER_NAME,
        log_dir=loaded.layout.path_for("logs"),
        level=config.logging.level,
        verbose=config.logging.verbose,
    )
    logger.debug("take command invoked", extra={"document": document.path})
    gateway = OpenAIExtractionGateway(
        client,
        model=config.ai.model,
        temperature=config.ai.temperature,
        max_output_tokens=config.ai.max_output_tokens,
        logger=logger,
    )
    sink = JsonlResultSink(_results_path(loaded.layout), logger=logger)
    console = Console()
    try:
        with ExamImporter(
            gateway,
            sink=sink,
            total_duration_seconds=config.quiz.duration_seconds,
            logger=logger,
        ) as importer:
            with console.status("Extracting questions from the PDF..."):
                importer.begin_import(document.data, document.mime_type)
                importer.wait_until_ready()
            snapshot = importer.snapshot()
            if snapshot.state is not SessionState.QUIZ:
                console.print(
                    f"[red]{snapshot.error or 'The document was not imported.'}"
                    "[/red]"
                )
                return 1
            console.print(
                f"Loaded {len(snapshot.question_set or ())} questions. "
                f"You have {format_time(snapshot.remaining_seconds)}."
            )
            result = run_console_quiz(importer, console, _prompt(console))
    finally:
        release_logger(logger)

    if result is None:
        return 1
    console.print(f"[dim]Saved as {result.id}. Log: {log_path}[/dim]")
    return 0


def _history_for(workspace: Optional[Path]) -> ExamHistory:
    layout = workspace_mod.ensure_workspace(path=workspace)
    return ExamHistory(_results_path(layout))


def _cmd_history(args: argparse.Namespace) -> int:
    try:
        history = _history_for(args.workspace)
    except workspace_mod.WorkspaceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    if args.clear:
        removed = history.clear()
        sys.stdout.write(f"Removed {removed} stored result(s).\n")
        return 0
    results = history.list()
    if not results:
        sys.stdout.write("No exam results stored yet.\n")
        return 1
    table = Table(title="Exam history", box=box.SIMPLE)
    table.add_column("ID", overflow="fold")
    table.add_column("Finished")
    table.add_column("Score", justify="right")
    table.add_column("Time", justify="right")
    for result in results:
        table.add_row(
            result.id,
            result.timestamp,
            f"{result.score}/{result.total_questions}",
            format_time(result.time_taken_seconds),
        )
    Console().print(table)
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    try:
        history = _history_for(args.workspace)
    except workspace_mod.WorkspaceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    result = history.get(args.result_id)
    if result is None:
        sys.stdout.write(f"No stored result with id '{args.result_id}'.\n")
        return 1
    render_result(Console(), result)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="exam-quizzer",
        description="Turn an exam PDF into a timed quiz and score it.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp_init = sub.add_parser("init", help="Bootstrap the workspace")
    sp_init.add_argument(
        "--path",
        type=Path,
        help="Workspace root (defaults to EXAM_QUIZZER_DATA_HOME or "
        "~/.exam-quizzer-data)",
    )

    sp_cfg = sub.add_parser("config", help="Configuration helpers")
    cfg_sub = sp_cfg.add_subparsers(dest="action", required=True)
    sp_cfg_init = cfg_sub.add_parser("init", help="Write the config template")
    sp_cfg_init.add_argument("--path", type=Path)
    sp_cfg_init.add_argument("--workspace", type=Path)
    sp_cfg_init.add_argument("--force", action="store_true")

    sp_take = sub.add_parser("take", help="Import a PDF and take the exam")
    sp_take.add_argument("pdf", type=Path)
    sp_take.add_argument("--duration-minutes", type=int)
    sp_take.add_argument("--model")
    sp_take.add_argument("--config", type=Path)
    sp_take.add_argument("--workspace", type=Path)
    sp_take.add_argument("--log-level")
    sp_take.add_argument("--verbose", action="store_true")

    sp_hist = sub.add_parser("history", help="List stored exam results")
    sp_hist.add_argument("--workspace", type=Path)
    sp_hist.add_argument(
        "--clear", action="store_true", help="Delete all stored results"
    )

    sp_rep = sub.add_parser("report", help="Show a stored exam result")
    sp_rep.add_argument("result_id")
    sp_rep.add_argument("--workspace", type=Path)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.command == "init":
        return _cmd_init(args)
    if args.command == "config" and args.action == "init":
        return _cmd_config_init(args)
    if args.command == "take":
        return _cmd_take(args)
    if args.command == "history":
        return _cmd_history(args)
    if args.command == "report":
        return _cmd_report(args)
    parser.print_help()  # pragma: no cover - argparse enforces commands
    return 2


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())

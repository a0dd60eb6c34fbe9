from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import (  # noqa: E402
    ChatClientStub,
    FakeGateway,
    InlineExecutor,
    ManualTickScheduler,
    sample_questions,
)


@pytest.fixture(autouse=True)
def _isolated_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[None]:
    """Keep user config and data homes out of every test."""

    for key in list(os.environ):
        if key.startswith("EXAM_QUIZZER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("EXAM_QUIZZER_DATA_HOME", str(tmp_path / "data-home"))
    yield


@pytest.fixture
def scheduler() -> ManualTickScheduler:
    return ManualTickScheduler()


@pytest.fixture
def executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def raw_questions() -> list[dict]:
    return sample_questions()


@pytest.fixture
def gateway(raw_questions: list[dict]) -> FakeGateway:
    return FakeGateway(raw_questions)


@pytest.fixture
def chat_client() -> ChatClientStub:
    return ChatClientStub()

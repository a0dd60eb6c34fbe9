from __future__ import annotations

import pytest

from exam_quizzer.core import ai


class _Recorder:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return ("client", kwargs)


@pytest.fixture
def recorder(monkeypatch) -> _Recorder:
    factory = _Recorder()
    monkeypatch.setattr(ai, "OpenAI", factory)
    monkeypatch.setattr(ai, "load_dotenv", lambda: None)
    return factory


def test_load_client_uses_api_key(monkeypatch, recorder):
    monkeypatch.setenv(ai.API_KEY_ENV, "sk-test")

    client = ai.load_client()

    assert client == ("client", {"api_key": "sk-test"})
    assert recorder.calls == [{"api_key": "sk-test"}]


def test_load_client_requires_key(monkeypatch, recorder):
    monkeypatch.delenv(ai.API_KEY_ENV, raising=False)

    with pytest.raises(RuntimeError, match="OPENAI_API_KEY not found"):
        ai.load_client()
    assert recorder.calls == []

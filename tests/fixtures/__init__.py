"""Shared testing fixtures and fakes for the exam_quizzer test suite."""

from .chat_client import ChatClientStub  # noqa: F401
from .exams import (  # noqa: F401
    FIXED_NOW,
    FakeGateway,
    fixed_clock,
    make_provider,
    sample_questions,
)
from .scheduling import (  # noqa: F401
    DeferredExecutor,
    InlineExecutor,
    ManualTickScheduler,
)

__all__ = [
    "ChatClientStub",
    "DeferredExecutor",
    "FIXED_NOW",
    "FakeGateway",
    "InlineExecutor",
    "ManualTickScheduler",
    "fixed_clock",
    "make_provider",
    "sample_questions",
]

"""OpenAI-shaped chat client used in place of a real API connection.

Production code only touches ``client.chat.completions.create``; this stub
exposes the same surface, records every request and replays queued
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional


@dataclass
class Choice:
    content: Optional[str]

    @property
    def message(self) -> SimpleNamespace:
        return SimpleNamespace(content=self.content)


class ChatClientStub:
    def __init__(
        self, *, side_effect: Optional[Callable[[Dict[str, Any]], Any]] = None
    ) -> None:
        self.side_effect = side_effect
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[Optional[str]] = []
        self.chat = SimpleNamespace(
            completions=SimpleNamespace(create=self._create_completion)
        )

    def queue_response(self, content: Optional[str]) -> None:
        self.responses.append(content)

    def _create_completion(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.side_effect is not None:
            result = self.side_effect(kwargs)
            if result is not None:
                return result
        content = self.responses.pop(0) if self.responses else ""
        return SimpleNamespace(choices=[Choice(content)])

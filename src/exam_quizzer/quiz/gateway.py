"""OpenAI-backed extraction of exam questions from PDF documents."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAIError

from .errors import IngestionError
from .models import parse_gateway_payload

__all__ = ["OpenAIExtractionGateway", "build_extraction_messages"]

_SYSTEM_PROMPT = (
    "You convert scanned or digital exam papers into structured data. "
    "Transcribe questions exactly; never invent questions or answers."
)

_SCHEMA = (
    '{"questions": [{"questionNumber": int, "questionText": str, '
    '"passage": str or null, "options": [{"key": "A", "value": str}], '
    '"correctAnswer": str, "questionType": str}]}'
)

_INSTRUCTIONS = (
    "Extract every multiple-choice question from the attached exam.\n"
    "- Use the question numbers printed in the document.\n"
    "- When several questions share a reading passage, repeat the full "
    "passage text on each of them.\n"
    "- Take correctAnswer from the answer key if the document has one; it "
    "must be one of the option keys.\n"
    "- questionType is a short category label (e.g. vocabulary, grammar, "
    "reading comprehension).\n"
    "Respond with a single JSON object and nothing else.\n\n"
    f"Schema:\n{_SCHEMA}"
)


def build_extraction_messages(
    document: bytes, mime_type: str, filename: str = "exam.pdf"
) -> List[Dict[str, Any]]:
    """Chat messages carrying ``document`` as an inline base64 file part."""
    encoded = base64.b64encode(document).decode("ascii")
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {
                    "type": "file",
                    "file": {
                        "filename": filename,
                        "file_data": f"data:{mime_type};base64,{encoded}",
                    },
                },
                {"type": "text", "text": _INSTRUCTIONS},
            ],
        },
    ]


class OpenAIExtractionGateway:
    """Send the document to a chat model and return its raw question list.

    The returned list is unvalidated; ``build_question_set`` decides whether
    it is usable. API failures and empty replies raise
    :class:`IngestionError`.
    """

    def __init__(
        self,
        client: Any,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        max_output_tokens: int = 8000,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._logger = logger or logging.getLogger(__name__)

    def extract(
        self, document: bytes, mime_type: str = "application/pdf"
    ) -> Optional[List[Any]]:
        params: Dict[str, Any] = {
            "model": self._model,
            "messages": build_extraction_messages(document, mime_type),
            "temperature": self._temperature,
            "response_format": {"type": "json_object"},
        }
        if "gpt-5" in self._model:
            params["max_completion_tokens"] = self._max_output_tokens
        else:
            params["max_tokens"] = self._max_output_tokens

        self._logger.info(
            "Requesting question extraction",
            extra={
                "model": self._model,
                "document_bytes": len(document),
                "mime_type": mime_type,
            },
        )
        try:
            resp = self._client.chat.completions.create(**params)
        except OpenAIError as exc:
            raise IngestionError(
                f"The extraction service request failed: {exc}"
            ) from exc

        content = (resp.choices[0].message.content or "").strip()
        if not content:
            raise IngestionError(
                "The extraction service returned an empty response."
            )
        questions = parse_gateway_payload(content)
        self._logger.info(
            "Extraction response parsed",
            extra={"question_count": len(questions or [])},
        )
        return questions

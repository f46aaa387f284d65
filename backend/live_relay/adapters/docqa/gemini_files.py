"""
Gemini Files API document QA adapter.

- upload(): files.upload, then poll files.get until ACTIVE
  (bounded by DOC_POLL_MAX_ATTEMPTS, DOC_POLL_INTERVAL_MS apart)
- ask(): one generate_content call with the file attached
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from google import genai
from google.genai import types

from live_relay.adapters.docqa.base import (
    DocRef,
    DocumentAnswerError,
    DocumentQA,
    DocumentUploadError,
    UploadState,
)
from live_relay.constants import (
    DOC_DEFAULT_MIME_TYPE,
    DOC_POLL_INTERVAL_MS,
    DOC_POLL_MAX_ATTEMPTS,
    DOC_QA_INSTRUCTIONS,
    DOC_QA_TEMPERATURE,
    ms_to_seconds,
)
from live_relay.observability.logger import log_event, make_event


def _state_name(meta: Any) -> str:
    state = getattr(meta, "state", None)
    return str(getattr(state, "value", state))


def build_question_prompt(question: str, language_hint: Optional[str] = None) -> str:
    """System hint + question, as sent alongside the document."""
    hint = list(DOC_QA_INSTRUCTIONS)
    if language_hint:
        hint.append(f"Reply ONLY in {language_hint}.")
    return f"{' '.join(hint)}\n\nQuestion: {question}"


class GeminiDocumentQA(DocumentQA):
    """Document QA backed by the Gemini Files API and a text model."""

    def __init__(
        self,
        *,
        client: genai.Client,
        model: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._model = model
        self._sleep = sleep
        self.state: UploadState | None = None

    # ------------------------------------------------------------------
    # Upload state machine
    # ------------------------------------------------------------------

    def _transition(self, state: UploadState, **details: Any) -> None:
        self.state = state
        log_event(make_event(
            "DOC_UPLOAD_STATE",
            state=state.value,
            **details,
        ))

    def _fail(self, reason: str) -> DocumentUploadError:
        self._transition(UploadState.FAILED, reason=reason)
        return DocumentUploadError(reason)

    async def upload(self, path: str) -> DocRef:
        file_path = Path(path).resolve()
        self._transition(UploadState.UPLOADING, path=str(file_path))

        try:
            meta = await self._client.aio.files.upload(file=str(file_path))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise self._fail(f"upload failed: {exc}") from exc

        name = getattr(meta, "name", None)
        if not name:
            raise self._fail("Upload failed: missing file.name")

        self._transition(UploadState.POLLING, name=name)
        attempts = 0
        while _state_name(meta) != UploadState.ACTIVE.value:
            if _state_name(meta) == UploadState.FAILED.value:
                raise self._fail(f"file {name} processing failed")
            if attempts >= DOC_POLL_MAX_ATTEMPTS:
                raise self._fail(f"file {name} not active after {attempts} polls")

            await self._sleep(ms_to_seconds(DOC_POLL_INTERVAL_MS))
            attempts += 1
            try:
                meta = await self._client.aio.files.get(name=name)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise self._fail(f"status poll failed: {exc}") from exc

        uri = getattr(meta, "uri", None)
        if not uri:
            raise self._fail("Upload failed: missing file.uri")

        doc = DocRef(
            name=getattr(meta, "name", None) or name,
            uri=uri,
            mime_type=getattr(meta, "mime_type", None) or DOC_DEFAULT_MIME_TYPE,
        )
        self._transition(UploadState.ACTIVE, name=doc.name, polls=attempts)
        return doc

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def ask(
        self,
        doc: DocRef,
        question: str,
        language_hint: Optional[str] = None,
    ) -> str:
        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_uri(file_uri=doc.uri, mime_type=doc.mime_type),
                    types.Part(text=build_question_prompt(question, language_hint)),
                ],
            )
        ]
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=types.GenerateContentConfig(
                    temperature=DOC_QA_TEMPERATURE,
                    response_mime_type="text/plain",
                ),
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise DocumentAnswerError(str(exc) or "document QA failed") from exc

        return (response.text or "").strip()

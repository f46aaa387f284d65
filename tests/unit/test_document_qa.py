# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
from google.genai import types

import live_relay.adapters.docqa.gemini_files as files_mod
import live_relay.adapters.docqa.store as store_mod
from live_relay.adapters.docqa.base import (
    DocRef,
    DocumentAnswerError,
    DocumentUploadError,
    UploadState,
)
from live_relay.adapters.docqa.gemini_files import GeminiDocumentQA, build_question_prompt
from live_relay.adapters.docqa.store import DocumentStore


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------

def _meta(state: types.FileState, uri: str | None = "https://files/abc") -> Any:
    return SimpleNamespace(
        name="files/abc",
        uri=uri,
        mime_type="application/pdf",
        state=state,
    )


class FakeFiles:
    def __init__(self, upload_state: types.FileState, poll_states: list[types.FileState]) -> None:
        self.upload_state = upload_state
        self.poll_states = poll_states
        self.uploaded: list[str] = []
        self.polls = 0

    async def upload(self, *, file: str) -> Any:
        self.uploaded.append(file)
        return _meta(self.upload_state, uri=None)

    async def get(self, *, name: str) -> Any:
        assert name == "files/abc"
        state = self.poll_states[min(self.polls, len(self.poll_states) - 1)]
        self.polls += 1
        return _meta(state)


class FakeModels:
    def __init__(self, text: str | None = "  Two years.\n", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.fail:
            raise RuntimeError("429 resource exhausted")
        return SimpleNamespace(text=self.text)


def _client(files: FakeFiles | None = None, models: FakeModels | None = None) -> Any:
    return SimpleNamespace(aio=SimpleNamespace(files=files, models=models))


class Sleeps:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def states_log(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(files_mod, "log_event", emitted.append)
    return emitted


# ------------------------------------------------------------------
# Upload state machine
# ------------------------------------------------------------------

def test_upload_polls_until_active(states_log: list[dict[str, Any]]) -> None:
    files = FakeFiles(
        types.FileState.PROCESSING,
        [types.FileState.PROCESSING, types.FileState.ACTIVE],
    )
    sleeps = Sleeps()
    qa = GeminiDocumentQA(client=_client(files), model="text-model", sleep=sleeps)

    doc = asyncio.run(qa.upload("data/reference.pdf"))

    assert doc == DocRef(name="files/abc", uri="https://files/abc", mime_type="application/pdf")
    assert files.uploaded[0].endswith("data/reference.pdf")
    assert sleeps.calls == [0.3, 0.3]
    assert qa.state is UploadState.ACTIVE
    assert [e["state"] for e in states_log] == ["UPLOADING", "POLLING", "ACTIVE"]
    assert all(e["event_type"] == "DOC_UPLOAD_STATE" for e in states_log)


def test_upload_gives_up_after_bounded_polls(states_log: list[dict[str, Any]]) -> None:
    files = FakeFiles(types.FileState.PROCESSING, [types.FileState.PROCESSING])
    sleeps = Sleeps()
    qa = GeminiDocumentQA(client=_client(files), model="text-model", sleep=sleeps)

    with pytest.raises(DocumentUploadError):
        asyncio.run(qa.upload("data/reference.pdf"))

    assert files.polls == 20
    assert len(sleeps.calls) == 20
    assert qa.state is UploadState.FAILED
    assert states_log[-1]["state"] == "FAILED"


def test_upload_processing_failure_fails_immediately() -> None:
    files = FakeFiles(types.FileState.PROCESSING, [types.FileState.FAILED])
    sleeps = Sleeps()
    qa = GeminiDocumentQA(client=_client(files), model="text-model", sleep=sleeps)

    with pytest.raises(DocumentUploadError, match="processing failed"):
        asyncio.run(qa.upload("data/reference.pdf"))

    assert files.polls == 1
    assert qa.state is UploadState.FAILED


def test_upload_already_active_skips_polling() -> None:
    class ActiveFiles(FakeFiles):
        async def upload(self, *, file: str) -> Any:
            self.uploaded.append(file)
            return _meta(types.FileState.ACTIVE)

    files = ActiveFiles(types.FileState.ACTIVE, [])
    sleeps = Sleeps()
    qa = GeminiDocumentQA(client=_client(files), model="text-model", sleep=sleeps)

    doc = asyncio.run(qa.upload("doc.pdf"))

    assert doc.uri == "https://files/abc"
    assert sleeps.calls == []
    assert files.polls == 0


def test_upload_transport_error_becomes_upload_error() -> None:
    class BrokenFiles(FakeFiles):
        async def upload(self, *, file: str) -> Any:
            raise FileNotFoundError(file)

    qa = GeminiDocumentQA(
        client=_client(BrokenFiles(types.FileState.ACTIVE, [])),
        model="text-model",
        sleep=Sleeps(),
    )

    with pytest.raises(DocumentUploadError):
        asyncio.run(qa.upload("missing.pdf"))

    assert qa.state is UploadState.FAILED


# ------------------------------------------------------------------
# Questions
# ------------------------------------------------------------------

DOC = DocRef(name="files/abc", uri="https://files/abc", mime_type="application/pdf")


def test_question_prompt_with_and_without_language() -> None:
    base = (
        "Answer using only the attached document. "
        "If the document does not contain the answer, say you don't know based on the document."
    )

    assert build_question_prompt("Warranty?") == f"{base}\n\nQuestion: Warranty?"
    assert build_question_prompt("Warranty?", "Hindi") == (
        f"{base} Reply ONLY in Hindi.\n\nQuestion: Warranty?"
    )


def test_ask_sends_document_and_prompt() -> None:
    models = FakeModels()
    qa = GeminiDocumentQA(client=_client(models=models), model="text-model")

    answer = asyncio.run(qa.ask(DOC, "Warranty?", "Tamil"))

    assert answer == "Two years."
    call = models.calls[0]
    assert call["model"] == "text-model"
    parts = call["contents"][0].parts
    assert parts[0].file_data.file_uri == "https://files/abc"
    assert parts[0].file_data.mime_type == "application/pdf"
    assert parts[1].text.endswith("Reply ONLY in Tamil.\n\nQuestion: Warranty?")
    assert call["config"].temperature == 0.4
    assert call["config"].response_mime_type == "text/plain"


def test_ask_empty_response_is_empty_string() -> None:
    qa = GeminiDocumentQA(client=_client(models=FakeModels(text=None)), model="text-model")

    assert asyncio.run(qa.ask(DOC, "Warranty?")) == ""


def test_ask_failure_raises_answer_error() -> None:
    qa = GeminiDocumentQA(client=_client(models=FakeModels(fail=True)), model="text-model")

    with pytest.raises(DocumentAnswerError, match="429"):
        asyncio.run(qa.ask(DOC, "Warranty?"))


# ------------------------------------------------------------------
# DocumentStore
# ------------------------------------------------------------------

class StubQA:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.uploads = 0

    async def upload(self, path: str) -> DocRef:
        self.uploads += 1
        await asyncio.sleep(0)
        if self.fail:
            raise DocumentUploadError("file files/abc processing failed")
        return DOC

    async def ask(self, doc: DocRef, question: str, language_hint: str | None = None) -> str:
        return "answer"


def test_store_uploads_once_and_shares_result() -> None:
    qa = StubQA()
    store = DocumentStore(qa=qa, path="doc.pdf", enabled=True)  # type: ignore[arg-type]

    async def scenario() -> list[DocRef | None]:
        store.start()
        store.start()
        return list(await asyncio.gather(store.get(), store.get(), store.get()))

    assert asyncio.run(scenario()) == [DOC, DOC, DOC]
    assert qa.uploads == 1


def test_store_failure_is_logged_once_and_disables_lookup(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(store_mod, "log_event", emitted.append)
    store = DocumentStore(qa=StubQA(fail=True), path="doc.pdf", enabled=True)  # type: ignore[arg-type]

    async def scenario() -> list[DocRef | None]:
        store.start()
        return [await store.get(), await store.get()]

    assert asyncio.run(scenario()) == [None, None]
    assert [e["event_type"] for e in emitted] == ["DOC_UPLOAD_FAILED"]


def test_disabled_store_never_uploads() -> None:
    qa = StubQA()
    store = DocumentStore(qa=qa, path="doc.pdf", enabled=False)  # type: ignore[arg-type]

    async def scenario() -> DocRef | None:
        store.start()
        return await store.get()

    assert asyncio.run(scenario()) is None
    assert qa.uploads == 0
    assert store.qa is None


def test_store_close_cancels_pending_upload() -> None:
    class SlowQA(StubQA):
        async def upload(self, path: str) -> DocRef:
            await asyncio.sleep(60)
            return DOC

    store = DocumentStore(qa=SlowQA(), path="doc.pdf", enabled=True)  # type: ignore[arg-type]

    async def scenario() -> DocRef | None:
        store.start()
        await asyncio.sleep(0)
        await store.close()
        return await store.get()

    assert asyncio.run(scenario()) is None

"""
Process-wide reference document holder.

- Upload runs once, in the background, from app startup.
- Every relay session awaits the same result; reads after completion are
  unsynchronized and safe.
- An upload failure is logged once and disables augmentation for the
  process lifetime (no per-request retry).
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

from live_relay.adapters.docqa.base import DocRef, DocumentQA
from live_relay.observability.logger import log_event, make_event


class DocumentStore:
    """Owns the one-time upload task and the resulting DocRef."""

    def __init__(self, *, qa: Optional[DocumentQA], path: str, enabled: bool) -> None:
        self._qa = qa
        self._path = path
        self._enabled = enabled and qa is not None
        self._task: Optional[asyncio.Task[Optional[DocRef]]] = None

    @property
    def qa(self) -> Optional[DocumentQA]:
        """The QA collaborator, or None when augmentation is disabled."""
        return self._qa if self._enabled else None

    @property
    def enabled(self) -> bool:
        """True when augmentation is configured (the upload may still fail)."""
        return self._enabled

    def start(self) -> None:
        """Launch the upload. Idempotent; no-op when disabled."""
        if not self._enabled or self._task is not None:
            return
        self._task = asyncio.create_task(self._upload())

    async def get(self) -> Optional[DocRef]:
        """Wait for the upload and return the DocRef, or None if unavailable."""
        if self._task is None:
            return None
        return await self._task

    async def close(self) -> None:
        """Cancel a still-running upload (app shutdown)."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _upload(self) -> Optional[DocRef]:
        assert self._qa is not None
        try:
            doc = await self._qa.upload(self._path)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event(make_event(
                "DOC_UPLOAD_FAILED",
                path=self._path,
                exception=type(exc).__name__,
                message=str(exc),
            ))
            return None

        log_event(make_event(
            "DOC_READY",
            name=doc.name,
        ))
        return doc

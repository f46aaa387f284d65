"""
Document QA contract.

A document is uploaded once per process and then queried read-only by
every relay session.

Rules:
- No relay policy here (fallback decisions belong to the relay).
- No retries beyond the bounded upload readiness poll.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DocumentQAError(Exception):
    """Base class for document QA failures."""


class DocumentUploadError(DocumentQAError):
    """
    Raised when the upload state machine ends in FAILED.

    Disables document augmentation for the process lifetime.
    """


class DocumentAnswerError(DocumentQAError):
    """Raised when a single question cannot be answered."""


class UploadState(str, Enum):
    """
    Upload readiness state machine.

    UPLOADING -> POLLING -> ACTIVE
        any   -> FAILED
    """

    UPLOADING = "UPLOADING"
    POLLING = "POLLING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DocRef:
    """Opaque handle to an uploaded reference document."""
    name: str
    uri: str
    mime_type: str


class DocumentQA(ABC):
    """Uploads one reference document and answers questions against it."""

    @abstractmethod
    async def upload(self, path: str) -> DocRef:
        """
        Upload `path` and wait until it is queryable.

        Raises:
            DocumentUploadError
        """
        raise NotImplementedError

    @abstractmethod
    async def ask(
        self,
        doc: DocRef,
        question: str,
        language_hint: Optional[str] = None,
    ) -> str:
        """
        Answer `question` using only `doc`.

        Raises:
            DocumentAnswerError
        """
        raise NotImplementedError

"""
Upstream live-session events.

Rules:
- Events describe facts reported by the upstream service.
- Events carry data only (no behavior).
- Arrival order is preserved per upstream session.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class UpstreamEventType(str, Enum):
    """Everything an upstream session can report to the relay."""

    OPENED = "OPENED"
    AUDIO_CHUNK = "AUDIO_CHUNK"
    TEXT_CHUNK = "TEXT_CHUNK"
    TURN_COMPLETE = "TURN_COMPLETE"
    ERRORED = "ERRORED"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class UpstreamEvent:
    """
    One upstream event.

    audio_base64:
        PCM16 24 kHz mono, base64 encoded (AUDIO_CHUNK only).

    text:
        Model text output (TEXT_CHUNK only).

    message:
        Failure description (ERRORED only). May be empty.
    """
    event_type: UpstreamEventType
    audio_base64: Optional[str] = None
    text: Optional[str] = None
    message: Optional[str] = None


def opened() -> UpstreamEvent:
    return UpstreamEvent(UpstreamEventType.OPENED)


def audio_chunk(audio_base64: str) -> UpstreamEvent:
    return UpstreamEvent(UpstreamEventType.AUDIO_CHUNK, audio_base64=audio_base64)


def text_chunk(text: str) -> UpstreamEvent:
    return UpstreamEvent(UpstreamEventType.TEXT_CHUNK, text=text)


def turn_complete() -> UpstreamEvent:
    return UpstreamEvent(UpstreamEventType.TURN_COMPLETE)


def errored(message: Optional[str]) -> UpstreamEvent:
    return UpstreamEvent(UpstreamEventType.ERRORED, message=message)


def closed() -> UpstreamEvent:
    return UpstreamEvent(UpstreamEventType.CLOSED)

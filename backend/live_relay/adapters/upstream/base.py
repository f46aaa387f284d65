"""
Upstream live-session contract.

Purpose:
- Define the single capability interface every upstream adapter implements
  in full (no runtime probing for send methods).
- Keep relay policy (replacement, fallback, error envelopes) OUT of the
  adapter.

Rules:
- This file contains NO logic.
- No retries.
- No knowledge of the client transport or envelopes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from live_relay.adapters.upstream.events import UpstreamEvent
from live_relay.constants import UPSTREAM_TEMPERATURE, UPSTREAM_TOP_P


class UpstreamError(Exception):
    """Base class for upstream adapter failures (open, send, cancel)."""


@dataclass(frozen=True)
class GenerationSettings:
    """
    Fixed generation parameters for one upstream session.

    Built by the relay per `start`; never shared or mutated.
    """
    temperature: float = UPSTREAM_TEMPERATURE
    top_p: float = UPSTREAM_TOP_P
    voice: Optional[str] = None
    enable_search: bool = False


class UpstreamSession(ABC):
    """
    One open upstream conversation.

    The session is a *dumb pipe*:
    relay input -> vendor -> UpstreamEvent stream.
    """

    @abstractmethod
    def events(self) -> AsyncIterator[UpstreamEvent]:
        """
        Iterate upstream events in arrival order.

        Contract:
        - Yields OPENED first.
        - Yields CLOSED last, then stops.
        - Must be consumed by a single reader.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_audio(self, audio_base64: str, mime_type: str) -> None:
        """Forward one realtime audio chunk (wire-encoded PCM16)."""
        raise NotImplementedError

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send a complete user turn."""
        raise NotImplementedError

    @abstractmethod
    async def send_tool_result(self, result: str, follow_up: str) -> None:
        """
        Inject a tool result turn followed by an instruction asking the
        model to relay it conversationally.
        """
        raise NotImplementedError

    @abstractmethod
    async def cancel_response(self) -> None:
        """
        Request cancellation of the in-flight response.

        Contract:
        - Best-effort, idempotent.
        - Must not close the session.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """
        Close the session.

        Contract:
        - Idempotent.
        - The event stream ends with CLOSED.
        """
        raise NotImplementedError


class UpstreamConnector(ABC):
    """Factory for upstream sessions. One connector is shared per process."""

    @abstractmethod
    async def open(
        self,
        *,
        model: str,
        system_instruction: str,
        generation: GenerationSettings,
    ) -> UpstreamSession:
        """
        Open a new upstream session.

        Raises:
            UpstreamError (or a vendor exception) if the session cannot open.
        """
        raise NotImplementedError

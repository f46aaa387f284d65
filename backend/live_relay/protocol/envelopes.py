# backend/live_relay/protocol/envelopes.py
"""
JSON envelope helpers for the client <-> relay transport.

Client -> Server:
    {type:"start", system?, language?, voice?, enableSearch?}
    {type:"audio", base64}
    {type:"text", text, language?}
    {type:"stop"}
    {type:"barge"}

Server -> Client:
    {type:"status", value}
    {type:"error", error}
    {type:"audio", base64}
    {type:"text", text}
    {type:"turnComplete"}

Usage example:

    try:
        env = parse_client_envelope(raw)
    except InvalidJSON:
        send(error(ERR_INVALID_JSON))

Malformed server envelopes are discarded on the client side
(parse_server_envelope returns None).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Union


# -------------------------
# Exceptions
# -------------------------

class EnvelopeError(Exception):
    """Base class for envelope protocol errors."""


class InvalidJSON(EnvelopeError):
    """
    Raised when a message is not a JSON object.

    The relay answers with an `error` envelope; the connection stays open.
    """


class UnknownEnvelope(EnvelopeError):
    """
    Raised when a JSON object has an unknown `type` or ill-typed fields.
    """


# -------------------------
# Client -> Server envelopes
# -------------------------

@dataclass(frozen=True)
class StartEnvelope:
    system: Optional[str] = None
    language: Optional[str] = None
    voice: Optional[str] = None
    enable_search: bool = False


@dataclass(frozen=True)
class AudioEnvelope:
    base64: str


@dataclass(frozen=True)
class TextEnvelope:
    text: str
    language: Optional[str] = None


@dataclass(frozen=True)
class StopEnvelope:
    pass


@dataclass(frozen=True)
class BargeEnvelope:
    pass


ClientEnvelope = Union[
    StartEnvelope,
    AudioEnvelope,
    TextEnvelope,
    StopEnvelope,
    BargeEnvelope,
]


def _optional_str(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def parse_client_envelope(raw: str | bytes) -> ClientEnvelope:
    """
    Parse one client -> server message.

    Raises:
        InvalidJSON: payload is not a JSON object
        UnknownEnvelope: unknown type or missing required field
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJSON(str(e)) from e

    if not isinstance(data, dict):
        raise InvalidJSON("envelope must be a JSON object")

    msg_type = data.get("type")

    if msg_type == "start":
        return StartEnvelope(
            system=_optional_str(data, "system"),
            language=_optional_str(data, "language"),
            voice=_optional_str(data, "voice"),
            enable_search=data.get("enableSearch") is True,
        )

    if msg_type == "audio":
        payload = data.get("base64")
        if not isinstance(payload, str):
            raise UnknownEnvelope("audio envelope requires string 'base64'")
        return AudioEnvelope(base64=payload)

    if msg_type == "text":
        text = data.get("text")
        if not isinstance(text, str):
            raise UnknownEnvelope("text envelope requires string 'text'")
        return TextEnvelope(text=text, language=_optional_str(data, "language"))

    if msg_type == "stop":
        return StopEnvelope()

    if msg_type == "barge":
        return BargeEnvelope()

    raise UnknownEnvelope(f"Unknown message type: {msg_type}")


# -------------------------
# Client-side builders
# -------------------------

def client_start(system: str, language: str) -> dict[str, Any]:
    return {"type": "start", "system": system, "language": language}


def client_audio(base64_pcm: str) -> dict[str, Any]:
    return {"type": "audio", "base64": base64_pcm}


def client_text(text: str, language: Optional[str] = None) -> dict[str, Any]:
    msg: dict[str, Any] = {"type": "text", "text": text}
    if language is not None:
        msg["language"] = language
    return msg


def client_barge() -> dict[str, Any]:
    return {"type": "barge"}


# -------------------------
# Server -> Client builders
# -------------------------

def status(value: str) -> dict[str, Any]:
    return {"type": "status", "value": value}


def error(message: str) -> dict[str, Any]:
    return {"type": "error", "error": message}


def audio(base64_pcm: str) -> dict[str, Any]:
    return {"type": "audio", "base64": base64_pcm}


def text(content: str) -> dict[str, Any]:
    return {"type": "text", "text": content}


def turn_complete() -> dict[str, Any]:
    return {"type": "turnComplete"}


_SERVER_FIELD_TYPES: dict[str, Optional[str]] = {
    "status": "value",
    "error": "error",
    "audio": "base64",
    "text": "text",
    "turnComplete": None,
}


def parse_server_envelope(raw: str | bytes) -> Optional[dict[str, Any]]:
    """
    Parse one server -> client message.

    Returns None for malformed JSON, unknown types, or a missing /
    non-string payload field. Never raises.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(data, dict):
        return None

    msg_type = data.get("type")
    if not isinstance(msg_type, str) or msg_type not in _SERVER_FIELD_TYPES:
        return None

    field = _SERVER_FIELD_TYPES[msg_type]
    if field is not None and not isinstance(data.get(field), str):
        return None

    return data

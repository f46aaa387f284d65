"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for all behavioral constants of the relay and client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Audio Format (PCM16 mono, little-endian, base64 on the wire)
# =============================================================================

# Client -> server (mic)
WIRE_INPUT_SAMPLE_RATE_HZ: Final[int] = 16_000
# Server -> client (assistant speech)
WIRE_OUTPUT_SAMPLE_RATE_HZ: Final[int] = 24_000

AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)

# Asymmetric scaling keeps +1.0 from wrapping and -1.0 representable
PCM16_NEGATIVE_SCALE: Final[float] = 32768.0
PCM16_POSITIVE_SCALE: Final[float] = 32767.0

UPSTREAM_AUDIO_MIME_TYPE: Final[str] = f"audio/pcm;rate={WIRE_INPUT_SAMPLE_RATE_HZ}"

# =============================================================================
# Capture Pipeline
# =============================================================================

CAPTURE_BLOCK_SIZE: Final[int] = 4096

INPUT_LEVEL_DECAY: Final[float] = 0.6
INPUT_LEVEL_GAIN: Final[float] = 1.2

# =============================================================================
# Playback
# =============================================================================

PLAYBACK_FRAME_SIZE: Final[int] = 128

OUTPUT_LEVEL_DECAY: Final[float] = 0.6
OUTPUT_LEVEL_GAIN: Final[float] = 0.8

ACTIVITY_LEVEL_GAIN: Final[float] = 2.2
ACTIVITY_LEVEL_EXPONENT: Final[float] = 0.75

# =============================================================================
# Barge-in
# =============================================================================

BARGE_IN_RMS_THRESHOLD: Final[float] = 0.005
BARGE_IN_DEBOUNCE_MS: Final[int] = 250
BARGE_IN_IGNORE_AUDIO_MS: Final[int] = 300

# Delay between turnComplete and clearing the speaking flag
SPEAKING_GRACE_MS: Final[int] = 250

# =============================================================================
# Status Values (server -> client)
# =============================================================================

STATUS_UPSTREAM_OPEN: Final[str] = "upstream_open"
STATUS_UPSTREAM_CLOSED: Final[str] = "upstream_closed"
STATUS_TOOL_PREFIX: Final[str] = "tool:"
DOCUMENT_QA_TOOL_NAME: Final[str] = "document_qa"

# =============================================================================
# Upstream Generation Parameters
# =============================================================================

UPSTREAM_TEMPERATURE: Final[float] = 0.7
UPSTREAM_TOP_P: Final[float] = 0.9

# =============================================================================
# Document QA
# =============================================================================

DOC_POLL_MAX_ATTEMPTS: Final[int] = 20
DOC_POLL_INTERVAL_MS: Final[int] = 300
DOC_DEFAULT_MIME_TYPE: Final[str] = "application/pdf"
DOC_QA_TEMPERATURE: Final[float] = 0.4

DOC_QA_INSTRUCTIONS: Final[Tuple[str, ...]] = (
    "Answer using only the attached document.",
    "If the document does not contain the answer, say you don't know based on the document.",
)

TOOL_RESULT_TEMPLATE: Final[str] = "Tool result (document QA): {answer}"
TOOL_RESULT_EMPTY_ANSWER: Final[str] = "(no answer found)"
TOOL_RESULT_FOLLOW_UP: Final[str] = (
    "Please read the tool result for the user in one or two sentences."
)

# =============================================================================
# Error Messages
# =============================================================================

ERR_INVALID_JSON: Final[str] = "Invalid JSON"
ERR_SESSION_NOT_STARTED: Final[str] = 'Session not started. Send {type:"start"} first.'
ERR_OPEN_FAILED: Final[str] = "Failed to open session"
ERR_AUDIO_SEND_FAILED: Final[str] = "audio send failed"
ERR_TEXT_SEND_FAILED: Final[str] = "text send failed"
ERR_BARGE_FAILED: Final[str] = "barge cancel failed"
ERR_UPSTREAM_GENERIC: Final[str] = "upstream_error"

# =============================================================================
# Helper Functions
# =============================================================================

def ms_to_seconds(value_ms: int) -> float:
    """
    Convert milliseconds to seconds.

    Defensive behavior:
    - Negative input returns 0.0.
    """
    if value_ms <= 0:
        return 0.0
    return value_ms / 1000.0


def tool_status(name: str) -> str:
    """Return the `tool:<name>` status value."""
    return f"{STATUS_TOOL_PREFIX}{name}"

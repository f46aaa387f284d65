"""
JSONL event logger.

- One JSON object per line on stdout, flushed per event
- Every event carries `ts_ms` (wall clock) and `event_type` first;
  `make_event` builds that envelope so call sites only name their fields
- Correlation ids (`session_id`, `url`, ...) are ordinary fields
- Logging never raises into a connection or audio task
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def now_ms() -> int:
    """Wall-clock milliseconds, for log correlation only."""
    return time.time_ns() // 1_000_000


def make_event(event_type: str, **fields: Any) -> dict[str, Any]:
    """
    Build one log event.

    `ts_ms` is stamped here unless the caller supplies its own.
    """
    event: dict[str, Any] = {"ts_ms": now_ms(), "event_type": event_type}
    event.update(fields)
    return event


def log_event(event: Mapping[str, Any]) -> None:
    """
    Serialize one event and write it as a single line.

    Values JSON cannot encode turn the line into a
    LOGGER_SERIALIZATION_ERROR record carrying the event's repr.
    """
    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "failed_event_type": event.get("event_type"),
            "error": str(e),
            "event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)

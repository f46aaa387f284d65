"""
Terminal client.

    python -m live_relay.client --url ws://localhost:3000/ws/client --language hi

Typed lines are sent as text turns; the microphone streams unless --no-mic.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import sys

from live_relay.client.controller import ClientSessionController, ConnectionPhase
from live_relay.languages import LANGUAGES


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="live_relay.client")
    parser.add_argument("--url", default="ws://localhost:3000/ws/client")
    parser.add_argument(
        "--language",
        default="auto",
        choices=[lang.code for lang in LANGUAGES],
    )
    parser.add_argument("--no-mic", action="store_true", help="text-only session")
    return parser.parse_args(argv)


def _disconnected(controller: ClientSessionController) -> bool:
    return controller.state.phase is ConnectionPhase.DISCONNECTED


async def _echo_transcript(controller: ClientSessionController) -> None:
    printed = 0
    while True:
        entries = controller.state.transcript
        for entry in entries[printed:]:
            if entry.role == "assistant":
                print(f"assistant> {entry.text}", flush=True)
        printed = len(entries)
        await asyncio.sleep(0.1)


async def run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    controller = ClientSessionController(url=args.url, language=args.language)
    echo = asyncio.create_task(_echo_transcript(controller))

    await controller.connect()
    try:
        while not controller.connected:
            if _disconnected(controller):
                return 1
            await asyncio.sleep(0.05)

        if not args.no_mic:
            controller.start_mic()

        loop = asyncio.get_running_loop()
        while not _disconnected(controller):
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            controller.send_text(line.rstrip("\n"))
    finally:
        await controller.disconnect()
        await asyncio.sleep(0.1)  # let the echo task print the tail
        echo.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await echo

    return 0


def main() -> None:
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()

"""
End-to-end smoke test against a running relay.

Sends `start`, then one text turn once the upstream opens, collects the
reply audio until turnComplete and writes it to a 24 kHz WAV.

    python tools/smoke_client.py --url ws://localhost:3000/ws/client --out out.wav
"""

import argparse
import asyncio
import json

import numpy as np
import soundfile as sf
from websockets.asyncio.client import connect

from live_relay.audio import codec
from live_relay.constants import STATUS_UPSTREAM_OPEN, WIRE_OUTPUT_SAMPLE_RATE_HZ
from live_relay.protocol.envelopes import client_text, parse_server_envelope


async def run(url: str, out_path: str, prompt: str) -> int:
    chunks: list[np.ndarray] = []

    async with connect(url, max_size=2**22) as ws:
        print("WS open -> sending start")
        await ws.send(json.dumps({
            "type": "start",
            "system": "You are a friendly assistant.",
        }))

        opened = False
        async for raw in ws:
            msg = parse_server_envelope(raw)
            if msg is None:
                continue

            if msg["type"] == "status":
                print("[status]", msg["value"])
                if msg["value"] == STATUS_UPSTREAM_OPEN and not opened:
                    opened = True
                    await ws.send(json.dumps(client_text(prompt)))

            elif msg["type"] == "error":
                print("[error]", msg["error"])

            elif msg["type"] == "text":
                print("[text]", msg["text"])

            elif msg["type"] == "audio":
                chunks.append(codec.decode(msg["base64"]))

            elif msg["type"] == "turnComplete":
                break

    if not chunks:
        print("no audio received")
        return 1

    audio = np.concatenate(chunks)
    sf.write(out_path, audio, WIRE_OUTPUT_SAMPLE_RATE_HZ, subtype="PCM_16")
    print(f"Saved {out_path} ({len(audio) / WIRE_OUTPUT_SAMPLE_RATE_HZ:.2f}s)")
    return 0


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--url", default="ws://localhost:3000/ws/client")
    ap.add_argument("--out", default="out.wav")
    ap.add_argument(
        "--prompt",
        default='Say: "Hello from the relay!" Keep it under ten seconds.',
    )
    args = ap.parse_args()
    raise SystemExit(asyncio.run(run(args.url, args.out, args.prompt)))

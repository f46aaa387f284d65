"""
Development server entry point.

    python -m live_relay.server.main
"""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from live_relay.config import AppConfig


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    uvicorn.run(
        "live_relay.server.asgi:app",
        host=config.host,
        port=config.port,
        log_level="info",
        reload=config.env == "dev",
    )


if __name__ == "__main__":
    main()

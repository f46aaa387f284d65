"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No relay logic
- No protocol constants
- No runtime mutation (the upstream model is fixed per process)
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to routes and to every RelaySession.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    host: str
    port: int

    # ------------------------------------------------------------------
    # Upstream live session
    # ------------------------------------------------------------------

    gemini_api_key: str | None
    gemini_model: str
    gemini_voice: str | None
    default_system: str

    # ------------------------------------------------------------------
    # Document QA
    # ------------------------------------------------------------------

    enable_doc: bool
    doc_path: str
    kb_text_model: str

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Missing optional values fall back to defaults; the API key is
        validated by the app factory, not here.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),

            gemini_api_key=os.environ.get("GEMINI_API_KEY"),
            gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.0-flash-live-001"),
            gemini_voice=os.environ.get("GEMINI_VOICE") or None,
            default_system=os.environ.get("DEFAULT_SYSTEM", "You are a helpful assistant."),

            enable_doc=os.environ.get("ENABLE_DOC", "1") != "0",
            doc_path=os.environ.get("DOC_PATH", "data/reference.pdf"),
            kb_text_model=os.environ.get("KB_TEXT_MODEL", "gemini-1.5-flash-002"),
        )

"""
FastAPI app factory.

Responsibilities:
- Create and configure the FastAPI app
- Set up middleware
- Initialize shared, process-wide resources (genai client, upstream
  connector, reference document store)
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from google import genai

from live_relay.adapters.docqa.gemini_files import GeminiDocumentQA
from live_relay.adapters.docqa.store import DocumentStore
from live_relay.adapters.upstream.base import UpstreamConnector
from live_relay.adapters.upstream.gemini_live import GeminiLiveConnector
from live_relay.config import AppConfig
from live_relay.server.routes import register_routes


def create_app(
    config: Optional[AppConfig] = None,
    *,
    connector: Optional[UpstreamConnector] = None,
    documents: Optional[DocumentStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Collaborators are built from config unless injected (tests pass fakes).

    Raises:
        RuntimeError: GEMINI_API_KEY is missing and no connector was injected.
    """
    config = config or AppConfig.load_from_env()

    if connector is None:
        if not config.gemini_api_key:
            raise RuntimeError("GEMINI_API_KEY environment variable not set")

        # One client per process; shared read-only by every connection
        client = genai.Client(api_key=config.gemini_api_key)
        connector = GeminiLiveConnector(client)
        if documents is None:
            documents = DocumentStore(
                qa=GeminiDocumentQA(client=client, model=config.kb_text_model),
                path=config.doc_path,
                enabled=config.enable_doc,
            )

    if documents is None:
        documents = DocumentStore(qa=None, path=config.doc_path, enabled=False)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        documents.start()
        try:
            yield
        finally:
            await documents.close()

    app = FastAPI(title="Live Relay", lifespan=lifespan)

    app.state.config = config
    app.state.connector = connector
    app.state.documents = documents

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app

"""FastAPI application factory.

Lifespan
--------
On startup the app creates an empty registry of editing sessions
(``request.app.state.sessions``, keyed by session id).  Each open flow
document is owned by exactly one session; on shutdown every session is
discarded, unsaved changes included.

Routers
-------
    /documents  open/save/close flow documents and edit their nodes
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatflow import __version__
from chatflow.api.routers import documents as documents_router
from chatflow.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the session registry on startup and drop it on shutdown."""
    app.state.sessions = {}
    try:
        yield
    finally:
        unsaved = [s.title for s in app.state.sessions.values() if s.modified]
        if unsaved:
            logger.warning("Discarding unsaved documents: %s", ", ".join(unsaved))
        app.state.sessions.clear()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    configure_logging()
    app = FastAPI(
        title="Chatflow Studio API",
        description=(
            "Editing service for conversational flow documents. "
            "Exposes document sessions, node editing with undo/redo, "
            "and integrity reports for a remote canvas."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser canvases on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(documents_router.router, prefix="/documents", tags=["documents"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn chatflow.api.app:app --reload
app = create_app()

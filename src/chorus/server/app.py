"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chorus import __version__
from chorus.agent.builder import build_orchestrator
from chorus.config.schema import ChorusConfig
from chorus.exceptions import ConflictError, NotFoundError, UnauthorizedError
from chorus.server.routes import create_router

if TYPE_CHECKING:
    from chorus.agent.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    ConflictError: 409,
}


def create_app(config: ChorusConfig, orchestrator: Orchestrator | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Chorus configuration
        orchestrator: Pre-built orchestrator; built from ``config`` when omitted

    Returns:
        Configured FastAPI app
    """
    if orchestrator is None:
        orchestrator = build_orchestrator(config)
    llm = orchestrator.llm

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        close = getattr(llm, "close", None)
        if close is not None:
            await close()
            logger.info("LLM client closed")

    app = FastAPI(
        title="Chorus",
        description="Conversational orchestrator with self-refining sub-agents",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Identity and ownership errors surface before any SSE frame is sent
    for exc_type, status_code in ERROR_STATUS.items():

        async def handler(request: Request, exc: Exception, status_code: int = status_code):
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        app.add_exception_handler(exc_type, handler)

    app.include_router(create_router(config, orchestrator))

    return app

"""FastAPI application for the SESMine access layer"""

import os
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from sesmine import __version__
from sesmine.app import SesmineApp, create_sesmine_app
from sesmine.core.config import Settings
from sesmine.utils.logger import get_logger, set_request_context

from .api import access_router, admin_router, auth_router
from .errors import register_error_handlers

logger = get_logger(__name__)


class RequestContextMiddleware:
    """Raw ASGI middleware binding a request id for log correlation."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return
        headers = {k.decode("latin-1").lower(): v for k, v in scope.get("headers") or []}
        incoming = headers.get("x-request-id")
        set_request_context(incoming.decode("latin-1") if incoming else str(uuid4()))
        try:
            await self.app(scope, receive, send)
        finally:
            set_request_context(None)


def create_app(settings: Optional[Settings] = None, sesmine: Optional[SesmineApp] = None) -> FastAPI:
    """
    Build the web app around one SesmineApp container.

    The container is created eagerly so tests can reach it through
    app.state.sesmine; background work starts in the lifespan.
    """
    sesmine = sesmine or create_sesmine_app(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            sesmine.initialize()
        except Exception as e:
            logger.exception("Critical error during startup", error=str(e))
            raise
        yield
        logger.info("Shutdown event triggered - stopping all services")
        sesmine.shutdown()

    app = FastAPI(
        title=sesmine.settings.app.name,
        description="Tier-based access control for SESMine hubs and features",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.sesmine = sesmine

    cors_origins = os.getenv("CORS_ORIGINS")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins.split(",") if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(access_router)
    app.include_router(admin_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    return app

"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from journal_api.api.endpoints import router
from journal_api.api.middleware import BodySizeLimitMiddleware, RateLimitMiddleware
from journal_api.core.config import SERVICE_NAME, SERVICE_VERSION, Config, get_settings
from journal_api.core.context import AppContext
from journal_api.core.tracing import instrument_app, setup_tracing, shutdown_tracing
from journal_api.shared.correlation import CorrelationMiddleware
from journal_api.shared.errors import register_exception_handlers

logger = logging.getLogger("JournalAI.App")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open upstream clients on startup and release them on shutdown."""
    context: AppContext = app.state.context
    logger.info("Starting %s v%s", SERVICE_NAME, SERVICE_VERSION)
    await context.startup()
    try:
        yield
    finally:
        logger.info("Shutting down %s", SERVICE_NAME)
        await context.shutdown()
        shutdown_tracing()


def create_app(
    context: Optional[AppContext] = None,
    settings: Optional[Config] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        context: Pre-built context, e.g. with fake clients in tests.
            Defaults to a fresh ``AppContext`` over ``settings``.
        settings: Configuration; defaults to the context's, then the environment.
    """
    if settings is None:
        settings = context.settings if context is not None else get_settings()
    if context is None:
        context = AppContext(settings)

    setup_tracing()

    app = FastAPI(
        title=SERVICE_NAME,
        description="Authenticated, quota-gated Claude insights and summaries for journal entries",
        version=SERVICE_VERSION,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.context = context

    # Add middleware (order matters - last added runs first)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.RATE_LIMIT.max_requests,
        window_seconds=settings.RATE_LIMIT.window_seconds,
    )
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Correlation-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    register_exception_handlers(app)
    app.include_router(router)
    instrument_app(app)

    return app

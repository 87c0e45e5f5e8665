"""FastAPI application factory with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.middleware.base import BaseHTTPMiddleware

from blockflow.config import config
from blockflow.exceptions import (
    ApiKeysNotConfigured, BlockflowError, BlockNotFound, InsufficientCredits, ProviderError,
    TierLimitExceeded, UserNotFound, WorkflowNotFound, WorkflowNotPublished,
)
from blockflow.version import __version__


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response

logger = logging.getLogger(__name__)

# Domain error → HTTP status. Anything not listed is a 500.
ERROR_STATUS = {
    UserNotFound: 404,
    WorkflowNotFound: 404,
    BlockNotFound: 404,
    ApiKeysNotConfigured: 400,
    WorkflowNotPublished: 400,
    InsufficientCredits: 402,
    TierLimitExceeded: 403,
    ProviderError: 502,
}


def _status_for(exc: BlockflowError) -> int:
    for exc_type, status in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status
    return 500


async def blockflow_error_handler(request: Request, exc: BlockflowError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error(f"[api] {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content={"error": str(exc), "details": exc.details})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[api] unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # ── Startup ──
    logger.info(f"BlockFlow v{__version__} starting...")

    # 1. Database
    from blockflow.db.database import async_session, init_db, make_session_factory
    bind = app.state.db_engine
    await init_db(bind)

    # 2. Session factory (for per-request repositories)
    session_factory = make_session_factory(bind) if bind is not None else async_session
    app.state.async_session = session_factory

    # 3. Seed DB (idempotent)
    if config.seed_demo_user and config.demo_external_id:
        from blockflow.db.seed import seed_database
        async with session_factory() as session:
            await seed_database(session, external_id=config.demo_external_id)

    # 4. Background-safe repository + continuation scheduler
    from blockflow.db.repository import SessionRepository
    from blockflow.engine.continuation import ContinuationScheduler
    session_repository = SessionRepository(session_factory)
    app.state.session_repository = session_repository
    continuations = ContinuationScheduler(session_repository)
    app.state.continuations = continuations

    logger.info(f"BlockFlow v{__version__} ready")

    yield

    # ── Shutdown ──
    logger.info("BlockFlow shutting down...")
    await continuations.shutdown()


def create_app(engine: Optional[AsyncEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Database engine to use instead of the configured one.
    """
    app = FastAPI(
        title="BlockFlow",
        description="Visual workflow automation for blockchain data and AI agents.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.db_engine = engine

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["*"],
    )

    # Caller identity from the upstream auth proxy
    from blockflow.api.middleware import IdentityMiddleware
    app.add_middleware(IdentityMiddleware)

    # Security headers: outermost middleware, applied to all responses
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(BlockflowError, blockflow_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routes
    from blockflow.api.routes import ai, blocks, health, nodit, user, workflow, workflows
    app.include_router(health.router, prefix="/api")
    app.include_router(user.router, prefix="/api")
    app.include_router(blocks.router, prefix="/api")
    app.include_router(nodit.router, prefix="/api")
    app.include_router(ai.router, prefix="/api")
    app.include_router(workflows.router, prefix="/api")
    app.include_router(workflow.router, prefix="/api")

    return app


app = create_app()

"""GET /api/health — Health check with a real database probe."""

import logging

from fastapi import APIRouter, Request
from sqlalchemy import text

from blockflow.api.schemas import HealthResponse
from blockflow.version import __version__

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Check health of all services."""
    services: dict[str, bool] = {"api": True, "database": False, "continuations": False}

    # Database
    try:
        async_session = request.app.state.async_session
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
        services["database"] = True
    except Exception as exc:
        logger.warning(f"[health] DB check failed: {exc}")

    services["continuations"] = getattr(request.app.state, "continuations", None) is not None

    overall = "ok" if all(services.values()) else "degraded"
    return HealthResponse(status=overall, version=__version__, services=services)

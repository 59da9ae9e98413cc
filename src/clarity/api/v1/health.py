"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks for the
hosting platform's probes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from src.clarity.api.deps import get_app_settings
from src.clarity.config import Settings
from src.clarity.core.database import ping_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_app_settings)):
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(settings: Settings) -> dict:
    """Check database connectivity and which integrations are configured."""
    checks: dict = {"database": "ok"}

    try:
        await ping_db()
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    checks["llm"] = "ok" if (settings.OPENAI_API_KEY or settings.ANTHROPIC_API_KEY) else "no_keys"
    checks["zoom_webhook"] = "ok" if settings.ZOOM_WEBHOOK_SECRET_TOKEN else "not_configured"
    checks["slack"] = "ok" if settings.SLACK_BOT_TOKEN else "not_configured"
    return checks


@router.get("/health/ready")
async def readiness_check(settings: Settings = Depends(get_app_settings)):
    """Readiness check: verifies database connectivity.

    Returns 200 if the database answers, 503 otherwise. Integration
    configuration is reported but does not affect readiness.
    """
    checks = await _check_dependencies(settings)
    healthy = checks.get("database") == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if healthy else "degraded",
            "checks": checks,
        },
    )

"""FastAPI dependency injection for lifespan-built services.

Every collaborator is constructed once in the application lifespan and
stored on ``app.state``. These dependencies read them back, returning 503
when a service was not initialized.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from src.clarity.config import Settings, get_settings


def _from_state(request: Request, name: str, detail: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )
    return service


def get_app_settings(request: Request) -> Settings:
    """Settings bound to this app instance, falling back to the process singleton."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_transcript_repository(request: Request) -> Any:
    """Retrieve TranscriptRepository from app.state, 503 if not available."""
    return _from_state(request, "transcript_repository", "Transcript repository not initialized")


def get_transcript_pipeline(request: Request) -> Any:
    """Retrieve TranscriptPipeline from app.state, 503 if not available."""
    return _from_state(request, "transcript_pipeline", "Transcript pipeline not initialized")


def get_task_runner(request: Request) -> Any:
    """Retrieve BackgroundTaskRunner from app.state, 503 if not available."""
    return _from_state(request, "task_runner", "Background task runner not initialized")


def get_slack_client(request: Request) -> Any:
    """Retrieve SlackClient from app.state, 503 if not available."""
    return _from_state(request, "slack_client", "Slack client not initialized")

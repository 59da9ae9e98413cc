"""Slack interactivity endpoint -- the transcript delete button.

Slack posts ``application/x-www-form-urlencoded`` bodies with a single
``payload`` field holding JSON. Only ``block_actions`` carrying the
``delete_transcript`` action are acted on; every other payload is
acknowledged with 200 so Slack never retries it.

Failures of an understood action (bad id, record gone, store error) are
reported to the clicking user through an ephemeral message, and the HTTP
answer is still 200.
"""

from __future__ import annotations

import json
import uuid
from typing import Any
from urllib.parse import parse_qs

import httpx
import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.clarity.api.deps import (
    get_app_settings,
    get_slack_client,
    get_transcript_repository,
)
from src.clarity.config import Settings
from src.clarity.core.security import (
    SLACK_SIGNATURE_HEADER,
    SLACK_TIMESTAMP_HEADER,
    verify_slack_signature,
)
from src.clarity.services.slack import SlackApiError, SlackClient
from src.clarity.transcripts.notifier import DELETE_ACTION_ID, UNTITLED_MEETING

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])


def _find_delete_action(payload: dict) -> dict | None:
    if payload.get("type") != "block_actions":
        return None
    for action in payload.get("actions") or []:
        if isinstance(action, dict) and action.get("action_id") == DELETE_ACTION_ID:
            return action
    return None


async def _tell_user(slack: SlackClient, channel_id: str | None, user_id: str | None, text: str) -> None:
    """Best-effort ephemeral message to the acting user."""
    if not channel_id or not user_id:
        return
    try:
        await slack.post_ephemeral(channel=channel_id, user=user_id, text=text)
    except (SlackApiError, httpx.HTTPError) as exc:
        logger.warning("slack.ephemeral_failed", error=str(exc))


async def _delete_transcript(
    slack: SlackClient,
    repository: Any,
    raw_id: str,
    channel_id: str | None,
    user_id: str | None,
) -> JSONResponse:
    log = logger.bind(raw_transcript_id=raw_id, slack_user_id=user_id)

    try:
        transcript_id = uuid.UUID(raw_id)
    except (TypeError, ValueError):
        log.warning("slack.delete_invalid_id")
        await _tell_user(slack, channel_id, user_id, f"Sorry, `{raw_id}` is not a valid transcript ID.")
        return JSONResponse(content={"ok": False, "error": "Invalid transcript ID"})

    try:
        record = await repository.get(transcript_id)
    except SQLAlchemyError as exc:
        log.error("slack.delete_lookup_failed", error=str(exc))
        await _tell_user(slack, channel_id, user_id, "Sorry, I couldn't look up that transcript. Please try again.")
        return JSONResponse(content={"ok": False, "error": "Lookup failed"})

    if record is None:
        log.info("slack.delete_not_found")
        await _tell_user(
            slack,
            channel_id,
            user_id,
            f"Sorry, I couldn't find the transcript (ID: {transcript_id}). It may have already been deleted.",
        )
        return JSONResponse(content={"ok": False, "error": "Transcript not found"})

    topic = record.topic or UNTITLED_MEETING

    try:
        deleted = await repository.delete(transcript_id)
    except SQLAlchemyError as exc:
        log.error("slack.delete_failed", error=str(exc))
        await _tell_user(
            slack,
            channel_id,
            user_id,
            f'Sorry, I couldn\'t delete the transcript "{topic}" (ID: {transcript_id}).',
        )
        return JSONResponse(content={"ok": False, "error": "Failed to delete transcript"})

    if not deleted:
        await _tell_user(
            slack,
            channel_id,
            user_id,
            f"Sorry, I couldn't find the transcript (ID: {transcript_id}). It may have already been deleted.",
        )
        return JSONResponse(content={"ok": False, "error": "Transcript not found"})

    log.info("slack.transcript_deleted", transcript_id=str(transcript_id))

    if channel_id:
        confirmation = f'✅ Meeting transcript *"{topic}"* has been successfully deleted from the knowledge base.'
        try:
            await slack.post_message(
                channel=channel_id,
                text=f'✅ Meeting transcript "{topic}" has been successfully deleted from the knowledge base.',
                blocks=[{"type": "section", "text": {"type": "mrkdwn", "text": confirmation}}],
            )
        except (SlackApiError, httpx.HTTPError) as exc:
            log.warning("slack.delete_confirmation_failed", error=str(exc))

    return JSONResponse(content={"ok": True})


@router.post("/interactive")
async def handle_interaction(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Slack interactivity receiver.

    Returns:
        401 on signature failure, 400 when the ``payload`` field is absent
        or not JSON, 200 otherwise.
    """
    raw_body = await request.body()
    if not verify_slack_signature(
        raw_body,
        request.headers.get(SLACK_SIGNATURE_HEADER),
        request.headers.get(SLACK_TIMESTAMP_HEADER),
        settings.SLACK_SIGNING_SECRET,
        max_age_seconds=settings.SLACK_REQUEST_MAX_AGE_SECONDS,
    ):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Invalid Slack signature"},
        )

    form = parse_qs(raw_body.decode("utf-8"))
    payload_values = form.get("payload")
    if not payload_values:
        logger.warning("slack.interaction_missing_payload")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing payload"},
        )

    try:
        payload = json.loads(payload_values[0])
    except ValueError:
        logger.warning("slack.interaction_invalid_payload")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid payload"},
        )
    if not isinstance(payload, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid payload"},
        )

    action = _find_delete_action(payload)
    if action is None:
        logger.info("slack.interaction_ignored", payload_type=payload.get("type"))
        return JSONResponse(content={"message": "Action received but not handled"})

    slack = get_slack_client(request)
    repository = get_transcript_repository(request)
    channel_id = (payload.get("channel") or {}).get("id")
    user_id = (payload.get("user") or {}).get("id")

    return await _delete_transcript(
        slack,
        repository,
        str(action.get("value", "")),
        channel_id,
        user_id,
    )


@router.get("/interactive")
async def interaction_status() -> dict:
    """Report that the endpoint is reachable."""
    return {"message": "Slack Interactive Endpoint is active. Use POST for actions."}

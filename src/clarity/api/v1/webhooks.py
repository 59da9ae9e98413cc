"""Zoom webhook receiver.

Answers the ``endpoint.url_validation`` handshake and accepts
``recording.transcript_completed`` deliveries, handing the transcript
pipeline to the background task runner so the 200 goes back to Zoom
within its few-second deadline.

The handshake is recognized and answered ahead of signature verification.
Every other delivery must be signed, and is authenticated against the raw
body bytes before its payload is acted on.
"""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError

from src.clarity.api.deps import get_app_settings, get_task_runner, get_transcript_pipeline
from src.clarity.config import Settings
from src.clarity.core.security import (
    ZOOM_SIGNATURE_HEADER,
    ZOOM_TIMESTAMP_HEADER,
    build_url_validation_response,
    verify_zoom_signature,
)
from src.clarity.transcripts.schemas import ZoomEvent, ZoomWebhookEnvelope

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

# Zoom re-sends failed deliveries with these envelope statuses
REJECTED_DELIVERY_STATUSES = frozenset({"-1", "500"})


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _handle_url_validation(body: dict, settings: Settings) -> Response:
    plain_token = (body.get("payload") or {}).get("plainToken")
    if not plain_token:
        logger.warning("zoom.url_validation_missing_token")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload")

    secret = settings.ZOOM_WEBHOOK_SECRET_TOKEN
    if not secret:
        logger.error("zoom.url_validation_secret_not_configured")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server configuration error")

    logger.info("zoom.url_validation_answered")
    return JSONResponse(content=build_url_validation_response(plain_token, secret))


def _accept_transcript_completed(request: Request, body: dict) -> Response:
    object_data = (body.get("payload") or {}).get("object")
    if not isinstance(object_data, dict) or not object_data.get("recording_files"):
        logger.warning("zoom.transcript_payload_missing_recording_files")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid transcript payload")

    try:
        envelope = ZoomWebhookEnvelope.model_validate(body)
    except ValidationError as exc:
        logger.warning("zoom.transcript_payload_invalid", errors=exc.error_count())
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid transcript payload")

    pipeline = get_transcript_pipeline(request)
    runner = get_task_runner(request)

    meeting = envelope.payload.object
    runner.spawn(
        pipeline.process(meeting, envelope.download_token),
        name=f"transcript:{meeting.id}:{meeting.uuid}",
    )
    logger.info(
        "zoom.transcript_accepted",
        zoom_meeting_id=meeting.id,
        topic=meeting.topic,
        files=len(meeting.recording_files),
    )
    return JSONResponse(content={"status": "success"})


@router.post("/zoom")
async def receive_zoom_webhook(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Zoom webhook receiver.

    Returns:
        200 handshake answer, 200 accepted, 200 unhandled-event ack,
        400 malformed payload, 401 bad or missing signature, 500 on
        misconfiguration or unexpected error.
    """
    raw_body = await request.body()
    signature = request.headers.get(ZOOM_SIGNATURE_HEADER)
    timestamp = request.headers.get(ZOOM_TIMESTAMP_HEADER)
    signed = bool(signature or timestamp)

    try:
        body = json.loads(raw_body)
    except ValueError:
        body = None

    # Handshake is answered before any signature check, signed or not
    if isinstance(body, dict) and body.get("event") == ZoomEvent.URL_VALIDATION.value:
        return _handle_url_validation(body, settings)

    if signed and not verify_zoom_signature(
        raw_body, signature, timestamp, settings.ZOOM_WEBHOOK_SECRET_TOKEN
    ):
        return _error(status.HTTP_401_UNAUTHORIZED, "Invalid signature")

    if body is None:
        logger.warning("zoom.webhook_invalid_json")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON")
    if not isinstance(body, dict):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid webhook payload")

    event = body.get("event")

    if not signed:
        logger.warning("zoom.webhook_unsigned_rejected", zoom_event=event)
        return _error(status.HTTP_401_UNAUTHORIZED, "Missing signature headers")

    delivery_status = body.get("status")
    if delivery_status is not None and str(delivery_status) in REJECTED_DELIVERY_STATUSES:
        logger.info("zoom.failed_delivery_rejected", delivery_status=str(delivery_status))
        return PlainTextResponse("Rejected failed webhook")

    try:
        if not event or not body.get("payload"):
            return _error(status.HTTP_400_BAD_REQUEST, "Invalid webhook payload")

        if event == ZoomEvent.TRANSCRIPT_COMPLETED.value:
            return _accept_transcript_completed(request, body)

        logger.info("zoom.unhandled_event", zoom_event=event)
        return JSONResponse(content={"status": "success - unhandled event"})
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("zoom.webhook_failed", zoom_event=event, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "details": str(exc)},
        )

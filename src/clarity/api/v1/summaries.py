"""Read-only summary page gated by a per-record view secret.

The (id, secret) pair in the link is a capability: anyone holding it can
read that one summary, and nothing else. The secret is compared in
constant time and no content is rendered on mismatch.
"""

from __future__ import annotations

import html
import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from src.clarity.api.deps import get_transcript_repository
from src.clarity.core.security import view_secret_matches
from src.clarity.transcripts.schemas import TranscriptRecord

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/summaries", tags=["summaries"])

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="robots" content="noindex">
  <title>{title}</title>
  <style>
    body {{ font-family: sans-serif; line-height: 1.6; padding: 20px; margin: 0; background-color: #f4f4f4; color: #333; }}
    .container {{ max-width: 800px; margin: auto; background-color: #fff; padding: 30px; border-radius: 8px; box-shadow: 0 0 10px rgba(0,0,0,0.1); }}
    h1 {{ color: #2c3e50; margin-bottom: 20px; }}
    pre {{ white-space: pre-wrap; word-wrap: break-word; background-color: #ecf0f1; padding: 15px; border-radius: 4px; border: 1px solid #ddd; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>{title}</h1>
    <pre>{content}</pre>
  </div>
</body>
</html>
"""


def render_summary_page(record: TranscriptRecord) -> str:
    """Render the stored summary, falling back to the cleaned transcript."""
    title = record.topic or "Meeting Summary"
    content = record.summary or record.cleaned_transcript or "No summary content available."
    return _PAGE_TEMPLATE.format(title=html.escape(title), content=html.escape(content))


@router.get("/view")
async def view_summary(
    id: str | None = None,
    secret: str | None = None,
    repository: Any = Depends(get_transcript_repository),
) -> Response:
    """Render one summary as HTML.

    Returns:
        200 HTML on match, 400 missing parameters, 403 wrong secret,
        404 absent or malformed id, 500 store error.
    """
    if not id:
        return PlainTextResponse("Transcript ID is required.", status_code=status.HTTP_400_BAD_REQUEST)
    if not secret:
        return PlainTextResponse("Access token is required.", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        transcript_id = uuid.UUID(id)
    except ValueError:
        return PlainTextResponse("Transcript summary not found.", status_code=status.HTTP_404_NOT_FOUND)

    try:
        record = await repository.get(transcript_id)
    except SQLAlchemyError as exc:
        logger.error("summary_view.lookup_failed", transcript_id=id, error=str(exc))
        return PlainTextResponse(
            "Error fetching transcript summary.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if record is None:
        return PlainTextResponse("Transcript summary not found.", status_code=status.HTTP_404_NOT_FOUND)

    if not view_secret_matches(record.view_secret, secret):
        logger.warning("summary_view.secret_mismatch", transcript_id=id)
        return PlainTextResponse("Invalid access token.", status_code=status.HTTP_403_FORBIDDEN)

    logger.info("summary_view.rendered", transcript_id=id)
    return HTMLResponse(render_summary_page(record))

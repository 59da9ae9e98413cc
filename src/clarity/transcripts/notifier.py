"""SummaryNotifier -- DM the meeting host a summary with a delete control.

Notification runs after the row is committed and must never undo or
invalidate it: every failure is logged and reported as ``False``.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import structlog

from src.clarity.core.monitoring import record_notification
from src.clarity.services.slack import SlackApiError, SlackClient
from src.clarity.transcripts.schemas import CreatedTranscript

logger = structlog.get_logger(__name__)

DELETE_ACTION_ID = "delete_transcript"
UNTITLED_MEETING = "Untitled Meeting"
HOST_ONLY_NOTE = "Only you can see this as the meeting host. Please share with the channel for context!"

# Slack rejects section blocks whose text exceeds this
SECTION_TEXT_LIMIT = 3000
MAX_TITLE_CHARS = 150


def format_time(value: datetime, tz: ZoneInfo) -> str:
    """Render ``value`` as ``h:mm AM/PM TZ`` in the notification time zone."""
    local = value.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {meridiem} {local.tzname()}"


def build_view_url(public_base_url: str, transcript: CreatedTranscript) -> str:
    """Capability link to the read-only summary page."""
    query = httpx.QueryParams({"id": str(transcript.id), "secret": transcript.view_secret})
    return f"{public_base_url.rstrip('/')}/api/v1/summaries/view?{query}"


def build_delete_button(transcript_id: str) -> dict:
    """Danger-styled delete button with a confirmation dialog."""
    return {
        "type": "button",
        "text": {"type": "plain_text", "text": "Delete Transcript", "emoji": True},
        "style": "danger",
        "action_id": DELETE_ACTION_ID,
        "value": transcript_id,
        "confirm": {
            "title": {"type": "plain_text", "text": "Are you sure?"},
            "text": {
                "type": "mrkdwn",
                "text": (
                    "This will permanently delete the transcript and its summary "
                    "from the database. This action cannot be undone."
                ),
            },
            "confirm": {"type": "plain_text", "text": "Yes, Delete It"},
            "deny": {"type": "plain_text", "text": "Cancel"},
        },
    }


def _cap_title(title: str) -> str:
    if len(title) <= MAX_TITLE_CHARS:
        return title
    return title[: MAX_TITLE_CHARS - 1].rstrip() + "…"


def _section_text(title: str, start: str, end: str, body: str) -> str:
    return (
        f"*Meeting Summary: {title}*\n"
        f"*Time:* {start} - {end}\n\n"
        f"{body}\n\n"
        f"_Note: {HOST_ONLY_NOTE}_"
    )


class SummaryNotifier:
    """Sends the post-persistence host DM.

    Args:
        slack_client: Slack Web API client.
        timezone_name: IANA zone used to render the recording window.
        public_base_url: Base URL for view links; empty disables links.
        max_summary_chars: Longest summary sent inline before falling back
            to a snippet plus view link.
        allowed_hosts: Lower-cased host emails to notify; empty notifies all.
    """

    def __init__(
        self,
        slack_client: SlackClient,
        timezone_name: str = "America/New_York",
        public_base_url: str = "",
        max_summary_chars: int = 2800,
        allowed_hosts: set[str] | None = None,
    ) -> None:
        self._slack = slack_client
        self._tz = ZoneInfo(timezone_name)
        self._public_base_url = public_base_url
        self._max_summary_chars = max_summary_chars
        self._allowed_hosts = allowed_hosts or set()

    def is_host_allowed(self, host_email: str) -> bool:
        if not self._allowed_hosts:
            return True
        return host_email.lower() in self._allowed_hosts

    def _summary_body(self, summary: str, transcript: CreatedTranscript, room: int) -> str:
        """Summary text that fits in ``room`` characters, snippet plus link if not."""
        if len(summary) <= min(self._max_summary_chars, room):
            return summary
        link = ""
        if self._public_base_url:
            link = f"\n\n<{build_view_url(self._public_base_url, transcript)}|View the full summary>"
        # One character for the ellipsis
        keep = max(0, min(self._max_summary_chars, room - len(link) - 1))
        return summary[:keep].rstrip() + "…" + link

    def build_blocks(
        self,
        topic: str,
        recording_start: datetime,
        recording_end: datetime,
        summary: str,
        transcript: CreatedTranscript,
    ) -> tuple[str, list[dict]]:
        """Return (fallback text, Block Kit blocks) for the host DM.

        The section text is kept within Slack's per-section limit: header,
        note and link are measured first and the summary gets what is left.
        """
        title = _cap_title(topic or UNTITLED_MEETING)
        start = format_time(recording_start, self._tz)
        end = format_time(recording_end, self._tz)
        room = SECTION_TEXT_LIMIT - len(_section_text(title, start, end, ""))
        body = self._summary_body(summary, transcript, room)

        fallback = (
            f"Here's a summary of your call\n"
            f"Meeting Name: {title}\n"
            f"Time: From {start} to {end}\n\n"
            f"{body}\n\n"
            f"Note: {HOST_ONLY_NOTE}"
        )
        blocks = [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": _section_text(title, start, end, body)},
            },
            {"type": "actions", "elements": [build_delete_button(str(transcript.id))]},
        ]
        return fallback, blocks

    async def notify(
        self,
        host_email: str,
        topic: str,
        recording_start: datetime,
        recording_end: datetime,
        summary: str,
        transcript: CreatedTranscript,
    ) -> bool:
        """DM the host. Returns True if the message was sent; never raises."""
        log = logger.bind(transcript_id=str(transcript.id), host_email=host_email)

        if not self.is_host_allowed(host_email):
            log.info("notify.skipped_host_not_allowed")
            record_notification("skipped")
            return False
        if not self._slack.configured:
            log.warning("notify.skipped_slack_not_configured")
            record_notification("skipped")
            return False
        if not host_email:
            log.warning("notify.skipped_no_host_email")
            record_notification("skipped")
            return False

        try:
            user_id = await self._slack.lookup_user_id_by_email(host_email)
            if not user_id:
                log.warning("notify.slack_user_not_found")
                record_notification("user_not_found")
                return False

            fallback, blocks = self.build_blocks(
                topic, recording_start, recording_end, summary, transcript
            )
            await self._slack.post_message(channel=user_id, text=fallback, blocks=blocks)
        except (SlackApiError, httpx.HTTPError) as exc:
            log.error("notify.slack_failed", error=str(exc), error_type=type(exc).__name__)
            record_notification("error")
            return False

        log.info("notify.sent")
        record_notification("sent")
        return True

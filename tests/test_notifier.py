"""Unit tests for SummaryNotifier and its Block Kit builders."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import httpx
import pytest

from src.clarity.services.slack import SlackApiError, SlackClient
from src.clarity.transcripts.notifier import (
    DELETE_ACTION_ID,
    HOST_ONLY_NOTE,
    SECTION_TEXT_LIMIT,
    SummaryNotifier,
    build_view_url,
    format_time,
)
from src.clarity.transcripts.schemas import CreatedTranscript

START = datetime(2025, 3, 4, 15, 0, tzinfo=timezone.utc)
END = datetime(2025, 3, 4, 15, 45, tzinfo=timezone.utc)
CREATED = CreatedTranscript(id=uuid.UUID("11111111-2222-3333-4444-555555555555"), view_secret="s3cret")


def _slack(user_id: str | None = "U123") -> MagicMock:
    slack = MagicMock()
    slack.configured = True
    slack.lookup_user_id_by_email = AsyncMock(return_value=user_id)
    slack.post_message = AsyncMock(return_value={"ok": True})
    return slack


async def _notify(notifier: SummaryNotifier, host_email: str = "host@example.com", summary: str = "Short summary"):
    return await notifier.notify(
        host_email=host_email,
        topic="Roadmap Review",
        recording_start=START,
        recording_end=END,
        summary=summary,
        transcript=CREATED,
    )


class TestFormatting:
    def test_format_time_in_eastern(self):
        assert format_time(START, ZoneInfo("America/New_York")) == "10:00 AM EST"

    def test_format_time_noon_and_midnight(self):
        utc = ZoneInfo("UTC")
        assert format_time(datetime(2025, 1, 1, 12, 5, tzinfo=timezone.utc), utc) == "12:05 PM UTC"
        assert format_time(datetime(2025, 1, 1, 0, 30, tzinfo=timezone.utc), utc) == "12:30 AM UTC"

    def test_view_url_carries_id_and_secret(self):
        url = build_view_url("https://clarity.example.com/", CREATED)
        assert url == (
            "https://clarity.example.com/api/v1/summaries/view"
            "?id=11111111-2222-3333-4444-555555555555&secret=s3cret"
        )

    def test_blocks_contain_summary_and_delete_button(self):
        notifier = SummaryNotifier(_slack())
        fallback, blocks = notifier.build_blocks("Roadmap Review", START, END, "Short summary", CREATED)

        assert "Meeting Name: Roadmap Review" in fallback
        assert "Time: From 10:00 AM EST to 10:45 AM EST" in fallback
        section = blocks[0]["text"]["text"]
        assert "*Meeting Summary: Roadmap Review*" in section
        assert "Short summary" in section

        button = blocks[1]["elements"][0]
        assert button["action_id"] == DELETE_ACTION_ID
        assert button["value"] == str(CREATED.id)
        assert button["style"] == "danger"
        assert button["confirm"]["confirm"]["text"] == "Yes, Delete It"
        assert button["confirm"]["deny"]["text"] == "Cancel"

    def test_untitled_meeting(self):
        notifier = SummaryNotifier(_slack())
        fallback, _ = notifier.build_blocks("", START, END, "s", CREATED)
        assert "Meeting Name: Untitled Meeting" in fallback

    def test_long_summary_is_truncated_with_view_link(self):
        notifier = SummaryNotifier(_slack(), public_base_url="https://clarity.example.com", max_summary_chars=20)
        _, blocks = notifier.build_blocks("T", START, END, "x" * 100, CREATED)

        section = blocks[0]["text"]["text"]
        assert "x" * 20 + "…" in section
        assert "x" * 21 not in section
        assert "|View the full summary>" in section
        assert "secret=s3cret" in section

    def test_long_summary_without_base_url_has_no_link(self):
        notifier = SummaryNotifier(_slack(), max_summary_chars=20)
        _, blocks = notifier.build_blocks("T", START, END, "x" * 100, CREATED)

        assert "View the full summary" not in blocks[0]["text"]["text"]

    def test_section_text_stays_within_slack_limit(self):
        notifier = SummaryNotifier(_slack(), public_base_url="https://clarity.example.com")
        _, blocks = notifier.build_blocks("Q" * 500, START, END, "x" * 5000, CREATED)

        section = blocks[0]["text"]["text"]
        assert len(section) <= SECTION_TEXT_LIMIT
        assert "|View the full summary>" in section
        assert "…" in section
        assert "Q" * 500 not in section

    def test_summary_just_under_cap_still_fits_with_header(self):
        notifier = SummaryNotifier(_slack(), max_summary_chars=3000)
        _, blocks = notifier.build_blocks("Weekly sync", START, END, "y" * 2990, CREATED)

        section = blocks[0]["text"]["text"]
        assert len(section) <= SECTION_TEXT_LIMIT
        assert section.endswith(f"_Note: {HOST_ONLY_NOTE}_")


class TestNotify:
    @pytest.mark.asyncio
    async def test_sends_dm_to_host(self):
        slack = _slack()
        assert await _notify(SummaryNotifier(slack)) is True

        slack.lookup_user_id_by_email.assert_awaited_once_with("host@example.com")
        kwargs = slack.post_message.await_args.kwargs
        assert kwargs["channel"] == "U123"
        assert kwargs["blocks"][1]["type"] == "actions"

    @pytest.mark.asyncio
    async def test_allow_list_skips_other_hosts(self):
        slack = _slack()
        notifier = SummaryNotifier(slack, allowed_hosts={"boss@example.com"})

        assert await _notify(notifier, host_email="host@example.com") is False
        slack.lookup_user_id_by_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_allow_list_is_case_insensitive(self):
        slack = _slack()
        notifier = SummaryNotifier(slack, allowed_hosts={"host@example.com"})

        assert await _notify(notifier, host_email="Host@Example.com") is True

    @pytest.mark.asyncio
    async def test_unknown_slack_user(self):
        slack = _slack(user_id=None)

        assert await _notify(SummaryNotifier(slack)) is False
        slack.post_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slack_api_error_is_contained(self):
        slack = _slack()
        slack.post_message = AsyncMock(side_effect=SlackApiError("chat.postMessage", "not_in_channel"))

        assert await _notify(SummaryNotifier(slack)) is False

    @pytest.mark.asyncio
    async def test_transport_error_is_contained(self):
        slack = _slack()
        slack.lookup_user_id_by_email = AsyncMock(side_effect=httpx.ConnectError("down"))

        assert await _notify(SummaryNotifier(slack)) is False

    @pytest.mark.asyncio
    async def test_unconfigured_slack_skips(self):
        slack = _slack()
        slack.configured = False

        assert await _notify(SummaryNotifier(slack)) is False
        slack.lookup_user_id_by_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_host_email_skips(self):
        slack = _slack()

        assert await _notify(SummaryNotifier(slack), host_email="") is False
        slack.lookup_user_id_by_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_json_slack_answer_is_contained(self):
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>bad gateway</html>"))
        )
        notifier = SummaryNotifier(SlackClient(http, "xoxb-token"))

        assert await _notify(notifier) is False

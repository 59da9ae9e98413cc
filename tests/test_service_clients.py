"""Tests for the Slack and Zoom HTTP clients and the LLM service.

HTTP clients run over httpx.MockTransport; the LLM service patches
instructor so no provider is contacted.
"""

from __future__ import annotations

import json
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pydantic import BaseModel

from src.clarity.config import Settings
from src.clarity.services.llm import LLMService
from src.clarity.services.slack import SlackApiError, SlackClient
from src.clarity.services.zoom import ZoomClient, encode_meeting_uuid


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ── SlackClient ──────────────────────────────────────────────────────────────


class TestSlackClient:
    @pytest.mark.asyncio
    async def test_lookup_user_by_email(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "user": {"id": "U42"}})

        client = SlackClient(_http(handler), "xoxb-token")

        assert await client.lookup_user_id_by_email("a@example.com") == "U42"
        assert seen[0].url.path == "/api/users.lookupByEmail"
        assert seen[0].url.params["email"] == "a@example.com"
        assert seen[0].headers["authorization"] == "Bearer xoxb-token"

    @pytest.mark.asyncio
    async def test_lookup_user_not_found_is_none(self):
        client = SlackClient(
            _http(lambda r: httpx.Response(200, json={"ok": False, "error": "users_not_found"})),
            "xoxb-token",
        )

        assert await client.lookup_user_id_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_other_errors_raise(self):
        client = SlackClient(
            _http(lambda r: httpx.Response(200, json={"ok": False, "error": "invalid_auth"})),
            "xoxb-token",
        )

        with pytest.raises(SlackApiError) as exc_info:
            await client.lookup_user_id_by_email("a@example.com")
        assert exc_info.value.error == "invalid_auth"

    @pytest.mark.asyncio
    async def test_post_message_sends_blocks(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "ts": "1.2"})

        client = SlackClient(_http(handler), "xoxb-token")
        await client.post_message("U42", "fallback", blocks=[{"type": "divider"}])

        body = json.loads(seen[0].content)
        assert seen[0].url.path == "/api/chat.postMessage"
        assert body == {"channel": "U42", "text": "fallback", "blocks": [{"type": "divider"}]}

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = SlackClient(_http(lambda r: httpx.Response(502)), "xoxb-token")

        with pytest.raises(httpx.HTTPStatusError):
            await client.post_ephemeral("C1", "U1", "hi")

    @pytest.mark.asyncio
    async def test_non_json_body_raises_slack_error(self):
        client = SlackClient(
            _http(lambda r: httpx.Response(200, text="<html>gateway timeout</html>")),
            "xoxb-token",
        )

        with pytest.raises(SlackApiError) as exc_info:
            await client.post_message("U42", "fallback")
        assert exc_info.value.error == "invalid_response"
        assert exc_info.value.method == "chat.postMessage"

    @pytest.mark.asyncio
    async def test_non_object_json_raises_slack_error(self):
        client = SlackClient(_http(lambda r: httpx.Response(200, json=["ok"])), "xoxb-token")

        with pytest.raises(SlackApiError) as exc_info:
            await client.lookup_user_id_by_email("a@example.com")
        assert exc_info.value.error == "invalid_response"

    def test_configured(self):
        assert SlackClient(MagicMock(), "").configured is False
        assert SlackClient(MagicMock(), "xoxb").configured is True


# ── ZoomClient ───────────────────────────────────────────────────────────────


class TestEncodeMeetingUuid:
    def test_plain_uuid_single_encoded(self):
        assert encode_meeting_uuid("abc+DEF==") == "abc%2BDEF%3D%3D"

    def test_leading_slash_double_encoded(self):
        assert encode_meeting_uuid("/abc==") == "%252Fabc%253D%253D"

    def test_double_slash_double_encoded(self):
        assert encode_meeting_uuid("ab//c") == "ab%252F%252Fc"


class TestZoomClient:
    @pytest.mark.asyncio
    async def test_paginates_and_dedupes_emails(self):
        token_requests = 0

        def handler(request):
            nonlocal token_requests
            if request.url.path == "/oauth/token":
                token_requests += 1
                return httpx.Response(200, json={"access_token": "zt", "expires_in": 3600})
            assert request.headers["authorization"] == "Bearer zt"
            if "next_page_token" not in request.url.params:
                return httpx.Response(
                    200,
                    json={
                        "participants": [
                            {"user_email": "Alice@Example.com"},
                            {"user_email": ""},
                        ],
                        "next_page_token": "p2",
                    },
                )
            return httpx.Response(
                200,
                json={
                    "participants": [{"user_email": "alice@example.com"}, {"user_email": "bob@client.com"}],
                    "next_page_token": "",
                },
            )

        client = ZoomClient(_http(handler), "acc", "cid", "csecret")

        assert await client.get_participant_emails("abc==") == ["alice@example.com", "bob@client.com"]
        assert token_requests == 1

    @pytest.mark.asyncio
    async def test_api_error_yields_empty_list(self):
        def handler(request):
            if request.url.path == "/oauth/token":
                return httpx.Response(200, json={"access_token": "zt", "expires_in": 3600})
            return httpx.Response(404, json={"code": 3001})

        client = ZoomClient(_http(handler), "acc", "cid", "csecret")

        assert await client.get_participant_emails("abc==") == []

    @pytest.mark.asyncio
    async def test_unconfigured_makes_no_requests(self):
        calls: list = []
        client = ZoomClient(_http(lambda r: calls.append(r)), "", "", "")

        assert await client.get_participant_emails("abc==") == []
        assert calls == []


# ── LLMService ───────────────────────────────────────────────────────────────


class Answer(BaseModel):
    value: str


class TestLLMService:
    def _settings(self, **overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    def test_unavailable_without_keys(self):
        service = LLMService(self._settings(OPENAI_API_KEY="", ANTHROPIC_API_KEY=""))
        assert service.available is False

    @pytest.mark.asyncio
    async def test_missing_provider_key_raises(self):
        service = LLMService(self._settings(OPENAI_API_KEY="sk-test", ANTHROPIC_API_KEY=""))

        with pytest.raises(RuntimeError, match="anthropic"):
            await service.structured_completion(
                messages=[{"role": "user", "content": "hi"}],
                response_model=Answer,
                model="anthropic/claude-sonnet-4-20250514",
                operation="summary",
            )

    @pytest.mark.asyncio
    async def test_passes_model_key_and_temperature(self):
        service = LLMService(self._settings(OPENAI_API_KEY="sk-test"))
        create = AsyncMock(return_value=Answer(value="ok"))
        fake_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        fake_instructor = MagicMock()
        fake_instructor.from_litellm.return_value = fake_client
        fake_litellm = SimpleNamespace(acompletion=object())

        with patch.dict(sys.modules, {"instructor": fake_instructor, "litellm": fake_litellm}):
            result = await service.structured_completion(
                messages=[{"role": "user", "content": "hi"}],
                response_model=Answer,
                model="openai/o4-mini",
                operation="analysis",
                temperature=1.0,
            )

        assert result == Answer(value="ok")
        fake_instructor.from_litellm.assert_called_once_with(fake_litellm.acompletion)
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "openai/o4-mini"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["temperature"] == 1.0
        assert kwargs["response_model"] is Answer
        assert "max_tokens" not in kwargs

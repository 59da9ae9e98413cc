"""Tests for the Slack interactivity endpoint (delete button)."""

from __future__ import annotations

import json
import time
import uuid
from unittest.mock import AsyncMock
from urllib.parse import urlencode

import pytest
from sqlalchemy.exc import OperationalError

from src.clarity.services.slack import SlackApiError
from tests.conftest import make_record, slack_headers

URL = "/api/v1/slack/interactive"


def _form(payload: dict | str) -> bytes:
    value = payload if isinstance(payload, str) else json.dumps(payload)
    return urlencode({"payload": value}).encode()


def _delete_payload(transcript_id: str) -> dict:
    return {
        "type": "block_actions",
        "user": {"id": "U123"},
        "channel": {"id": "D456"},
        "actions": [{"action_id": "delete_transcript", "value": transcript_id}],
    }


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, client, repository):
        record = make_record()
        repository.records[record.id] = record
        raw = _form(_delete_payload(str(record.id)))

        resp = await client.post(URL, content=raw, headers=slack_headers(raw, secret="wrong"))

        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid Slack signature"}
        assert record.id in repository.records

    @pytest.mark.asyncio
    async def test_stale_timestamp_is_401(self, client):
        raw = _form(_delete_payload(str(uuid.uuid4())))
        stale = str(int(time.time()) - 600)

        resp = await client.post(URL, content=raw, headers=slack_headers(raw, timestamp=stale))

        assert resp.status_code == 401


class TestPayloadHandling:
    @pytest.mark.asyncio
    async def test_missing_payload_is_400(self, client):
        raw = urlencode({"other": "x"}).encode()
        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing payload"}

    @pytest.mark.asyncio
    async def test_non_json_payload_is_400(self, client):
        raw = _form("not-json")
        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_other_actions_are_acknowledged(self, client, slack_client):
        raw = _form({"type": "block_actions", "actions": [{"action_id": "something_else"}]})
        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 200
        assert resp.json() == {"message": "Action received but not handled"}
        slack_client.post_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_block_action_payload_is_acknowledged(self, client):
        raw = _form({"type": "view_submission"})
        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 200


class TestDeleteAction:
    @pytest.mark.asyncio
    async def test_delete_removes_record_and_confirms(self, client, repository, slack_client):
        record = make_record(topic="Roadmap Review")
        repository.records[record.id] = record
        raw = _form(_delete_payload(str(record.id)))

        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert record.id not in repository.records

        kwargs = slack_client.post_message.await_args.kwargs
        assert kwargs["channel"] == "D456"
        assert (
            kwargs["blocks"][0]["text"]["text"]
            == '✅ Meeting transcript *"Roadmap Review"* has been successfully deleted from the knowledge base.'
        )

    @pytest.mark.asyncio
    async def test_unknown_record_gets_ephemeral_message(self, client, slack_client):
        missing = uuid.uuid4()
        raw = _form(_delete_payload(str(missing)))

        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 200
        assert resp.json()["ok"] is False
        kwargs = slack_client.post_ephemeral.await_args.kwargs
        assert kwargs["channel"] == "D456"
        assert kwargs["user"] == "U123"
        assert str(missing) in kwargs["text"]
        slack_client.post_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_click_after_delete_is_reported(self, client, repository, slack_client):
        record = make_record()
        repository.records[record.id] = record
        raw = _form(_delete_payload(str(record.id)))

        first = await client.post(URL, content=raw, headers=slack_headers(raw))
        second = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert first.json() == {"ok": True}
        assert second.status_code == 200
        assert second.json()["ok"] is False
        slack_client.post_ephemeral.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_malformed_id_gets_ephemeral_message(self, client, slack_client):
        raw = _form(_delete_payload("not-a-uuid"))

        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 200
        assert resp.json() == {"ok": False, "error": "Invalid transcript ID"}
        slack_client.post_ephemeral.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_error_is_reported_not_raised(self, client, repository, slack_client):
        repository.get = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        raw = _form(_delete_payload(str(uuid.uuid4())))

        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.status_code == 200
        assert resp.json() == {"ok": False, "error": "Lookup failed"}
        slack_client.post_ephemeral.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_confirmation_failure_still_deletes(self, client, repository, slack_client):
        record = make_record()
        repository.records[record.id] = record
        slack_client.post_message = AsyncMock(side_effect=SlackApiError("chat.postMessage", "channel_not_found"))
        raw = _form(_delete_payload(str(record.id)))

        resp = await client.post(URL, content=raw, headers=slack_headers(raw))

        assert resp.json() == {"ok": True}
        assert record.id not in repository.records


class TestStatusEndpoint:
    @pytest.mark.asyncio
    async def test_get_reports_active(self, client):
        resp = await client.get(URL)

        assert resp.status_code == 200
        assert resp.json() == {"message": "Slack Interactive Endpoint is active. Use POST for actions."}

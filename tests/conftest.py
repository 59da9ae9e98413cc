"""Shared test fixtures for the transcript service.

Provides:
- InMemoryTranscriptRepository: repository test double enforcing the natural key
- Settings with test secrets
- FastAPI app with services set directly on app.state (no lifespan, no database)
- Async HTTP client over ASGITransport
- Zoom and Slack request-signing helpers
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.clarity.config import Settings
from src.clarity.core.background import BackgroundTaskRunner
from src.clarity.core.security import compute_signature, generate_view_secret
from src.clarity.main import create_app
from src.clarity.transcripts.schemas import (
    CreatedTranscript,
    MeetingType,
    RecordingKey,
    TranscriptCreate,
    TranscriptRecord,
)

ZOOM_SECRET = "zoom-test-secret"
SLACK_SECRET = "slack-test-secret"

SAMPLE_VTT = (
    "WEBVTT\n\n"
    "1\n00:00:01.000 --> 00:00:02.000\nAlice: Hello\n\n"
    "2\n00:00:02.500 --> 00:00:03.000\nAlice: there\n\n"
    "3\n00:00:03.500 --> 00:00:04.000\nBob: Hi"
)


# ── In-Memory Test Double ────────────────────────────────────────────────────


class InMemoryTranscriptRepository:
    """In-memory TranscriptRepository for testing without a database.

    ``create`` enforces the natural key the way the UNIQUE constraint does,
    returning None for the losing insert.
    """

    def __init__(self) -> None:
        self.records: dict[uuid.UUID, TranscriptRecord] = {}
        self.create_calls = 0

    def _key_of(self, record: TranscriptRecord) -> RecordingKey:
        return RecordingKey(
            zoom_meeting_id=record.zoom_meeting_id,
            zoom_meeting_uuid=record.zoom_meeting_uuid,
            recording_start=record.recording_start,
            recording_end=record.recording_end,
        )

    async def exists_for_recording(self, key: RecordingKey) -> bool:
        return any(self._key_of(r) == key for r in self.records.values())

    async def create(self, data: TranscriptCreate) -> CreatedTranscript | None:
        self.create_calls += 1
        if any(self._key_of(r) == data.key for r in self.records.values()):
            return None
        record = TranscriptRecord(
            id=uuid.uuid4(),
            zoom_meeting_id=data.key.zoom_meeting_id,
            zoom_meeting_uuid=data.key.zoom_meeting_uuid,
            recording_start=data.key.recording_start,
            recording_end=data.key.recording_end,
            topic=data.topic,
            host_email=data.host_email,
            start_time=data.start_time,
            duration=data.duration,
            raw_transcript=data.raw_transcript,
            cleaned_transcript=data.cleaned_transcript,
            summary=data.summary,
            relevance_reasoning=data.relevance_reasoning,
            meeting_type=data.meeting_type,
            external_participants=data.external_participants,
            projects=data.projects,
            clients=data.clients,
            extracted_participants=data.extracted_participants,
            verified_participant_emails=data.verified_participant_emails,
            view_secret=generate_view_secret(),
            created_at=datetime.now(timezone.utc),
        )
        self.records[record.id] = record
        return CreatedTranscript(id=record.id, view_secret=record.view_secret)

    async def get(self, transcript_id: uuid.UUID) -> TranscriptRecord | None:
        return self.records.get(transcript_id)

    async def delete(self, transcript_id: uuid.UUID) -> bool:
        return self.records.pop(transcript_id, None) is not None


def make_record(**overrides) -> TranscriptRecord:
    """A stored transcript with sensible defaults."""
    fields = {
        "id": uuid.uuid4(),
        "zoom_meeting_id": "85012345678",
        "zoom_meeting_uuid": "abcDEF123==",
        "recording_start": datetime(2025, 3, 4, 15, 0, tzinfo=timezone.utc),
        "recording_end": datetime(2025, 3, 4, 15, 45, tzinfo=timezone.utc),
        "topic": "Roadmap Review",
        "host_email": "host@example.com",
        "cleaned_transcript": "Alice: Hello there\nBob: Hi",
        "summary": "Topic: Roadmap Review\nOverview: Planned Q2.",
        "meeting_type": MeetingType.INTERNAL,
        "view_secret": generate_view_secret(),
    }
    fields.update(overrides)
    return TranscriptRecord(**fields)


# ── Signing Helpers ──────────────────────────────────────────────────────────


def zoom_headers(raw_body: bytes, secret: str = ZOOM_SECRET, timestamp: str | None = None) -> dict:
    ts = timestamp or str(int(time.time()))
    return {
        "x-zm-request-timestamp": ts,
        "x-zm-signature": compute_signature(secret, ts, raw_body),
        "content-type": "application/json",
    }


def slack_headers(raw_body: bytes, secret: str = SLACK_SECRET, timestamp: str | None = None) -> dict:
    ts = timestamp or str(int(time.time()))
    return {
        "x-slack-request-timestamp": ts,
        "x-slack-signature": compute_signature(secret, ts, raw_body),
        "content-type": "application/x-www-form-urlencoded",
    }


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        ZOOM_WEBHOOK_SECRET_TOKEN=ZOOM_SECRET,
        SLACK_SIGNING_SECRET=SLACK_SECRET,
        SLACK_BOT_TOKEN="xoxb-test",
    )


@pytest.fixture
def repository() -> InMemoryTranscriptRepository:
    return InMemoryTranscriptRepository()


@pytest.fixture
def slack_client() -> MagicMock:
    client = MagicMock()
    client.configured = True
    client.lookup_user_id_by_email = AsyncMock(return_value="U123")
    client.post_message = AsyncMock(return_value={"ok": True})
    client.post_ephemeral = AsyncMock(return_value={"ok": True})
    return client


@pytest.fixture
def pipeline() -> MagicMock:
    mock = MagicMock()
    mock.process = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def app(settings, repository, slack_client, pipeline):
    """FastAPI app with test doubles on app.state (lifespan is not run)."""
    application = create_app(settings=settings)
    application.state.transcript_repository = repository
    application.state.slack_client = slack_client
    application.state.transcript_pipeline = pipeline
    application.state.task_runner = BackgroundTaskRunner()
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

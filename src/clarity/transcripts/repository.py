"""Transcript repository -- duplicate guard, insert, lookup and delete.

Uses the session_factory callable pattern: each method opens its own
session from an async generator so the repository can be shared across
concurrent background tasks.

The natural-key pre-check is an optimization; the UNIQUE constraint is the
correctness guarantee. ``create`` returns None when the insert loses a race
to a concurrent delivery of the same recording.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.clarity.core.database import is_unique_violation
from src.clarity.core.security import generate_view_secret
from src.clarity.transcripts.models import TranscriptModel
from src.clarity.transcripts.schemas import (
    CreatedTranscript,
    MeetingType,
    RecordingKey,
    TranscriptCreate,
    TranscriptRecord,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_record(model: TranscriptModel) -> TranscriptRecord:
    """Convert TranscriptModel to TranscriptRecord schema."""
    content = model.transcript_content or {}
    return TranscriptRecord(
        id=model.id,
        zoom_meeting_id=model.zoom_meeting_id,
        zoom_meeting_uuid=model.zoom_meeting_uuid,
        recording_start=model.recording_start,
        recording_end=model.recording_end,
        topic=model.topic or "",
        host_email=model.host_email or "",
        start_time=model.start_time,
        duration=model.duration,
        raw_transcript=content.get("raw", ""),
        cleaned_transcript=content.get("cleaned", ""),
        summary=model.summary or "",
        is_relevant=model.is_relevant,
        relevance_reasoning=model.relevance_reasoning or "",
        meeting_type=MeetingType(model.meeting_type or MeetingType.UNKNOWN.value),
        external_participants=model.external_participants or [],
        projects=model.projects or [],
        clients=model.clients or [],
        extracted_participants=model.extracted_participants or [],
        verified_participant_emails=model.verified_participant_emails or [],
        view_secret=model.view_secret,
        created_at=model.created_at,
    )


def _natural_key_clause(key: RecordingKey) -> tuple:
    return (
        TranscriptModel.zoom_meeting_id == key.zoom_meeting_id,
        TranscriptModel.zoom_meeting_uuid == key.zoom_meeting_uuid,
        TranscriptModel.recording_start == key.recording_start,
        TranscriptModel.recording_end == key.recording_end,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class TranscriptRepository:
    """Async persistence for processed transcripts.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def exists_for_recording(self, key: RecordingKey) -> bool:
        """Return True if a row already exists for this recording window."""
        async for session in self._session_factory():
            stmt = select(TranscriptModel.id).where(*_natural_key_clause(key)).limit(1)
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None
        return False

    async def create(self, data: TranscriptCreate) -> CreatedTranscript | None:
        """Insert one transcript row with a fresh view secret.

        Returns:
            CreatedTranscript with id and view secret, or None if the row
            already exists (unique violation on the natural key).

        Raises:
            IntegrityError: For any integrity failure other than the natural key.
            SQLAlchemyError: For any other store failure.
        """
        view_secret = generate_view_secret()
        async for session in self._session_factory():
            model = TranscriptModel(
                id=uuid.uuid4(),
                zoom_meeting_id=data.key.zoom_meeting_id,
                zoom_meeting_uuid=data.key.zoom_meeting_uuid,
                recording_start=data.key.recording_start,
                recording_end=data.key.recording_end,
                zoom_host_id=data.zoom_host_id,
                zoom_account_id=data.zoom_account_id,
                host_email=data.host_email,
                topic=data.topic,
                start_time=data.start_time,
                duration=data.duration,
                download_url=data.download_url,
                transcript_content={
                    "raw": data.raw_transcript,
                    "cleaned": data.cleaned_transcript,
                },
                summary=data.summary,
                is_relevant=True,
                relevance_reasoning=data.relevance_reasoning,
                meeting_type=data.meeting_type.value,
                external_participants=list(data.external_participants),
                projects=list(data.projects),
                clients=list(data.clients),
                extracted_participants=list(data.extracted_participants),
                verified_participant_emails=list(data.verified_participant_emails),
                view_secret=view_secret,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if is_unique_violation(exc):
                    logger.info(
                        "transcript.duplicate_insert_ignored",
                        zoom_meeting_id=data.key.zoom_meeting_id,
                        zoom_meeting_uuid=data.key.zoom_meeting_uuid,
                    )
                    return None
                raise

            logger.info(
                "transcript.created",
                transcript_id=str(model.id),
                zoom_meeting_id=data.key.zoom_meeting_id,
            )
            return CreatedTranscript(id=model.id, view_secret=view_secret)
        return None

    async def get(self, transcript_id: uuid.UUID) -> TranscriptRecord | None:
        """Get a transcript by id, or None if absent."""
        async for session in self._session_factory():
            stmt = select(TranscriptModel).where(TranscriptModel.id == transcript_id)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_record(model)
        return None

    async def delete(self, transcript_id: uuid.UUID) -> bool:
        """Permanently delete a transcript. Returns False if it did not exist."""
        async for session in self._session_factory():
            stmt = delete(TranscriptModel).where(TranscriptModel.id == transcript_id)
            result = await session.execute(stmt)
            await session.commit()
            deleted = (result.rowcount or 0) > 0
            logger.info(
                "transcript.deleted" if deleted else "transcript.delete_not_found",
                transcript_id=str(transcript_id),
            )
            return deleted
        return False

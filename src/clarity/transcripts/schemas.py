"""Pydantic v2 schemas for the transcript pipeline.

Defines the inbound Zoom webhook envelope, the analysis results produced by
the two LLM stages, and the data contracts passed between the pipeline, the
repository and the notifier.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Enums ────────────────────────────────────────────────────────────────────


class ZoomEvent(str, Enum):
    """Zoom webhook event names the service recognizes."""

    URL_VALIDATION = "endpoint.url_validation"
    TRANSCRIPT_COMPLETED = "recording.transcript_completed"


class MeetingType(str, Enum):
    """Who attended the meeting, as judged by the metadata extractor."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


TRANSCRIPT_RECORDING_TYPE = "audio_transcript"


# ── Zoom Webhook Envelope ────────────────────────────────────────────────────


class RecordingFile(BaseModel):
    """One file entry of a Zoom cloud recording."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    meeting_id: str | None = None
    recording_start: str
    recording_end: str
    file_type: str | None = None
    download_url: str
    recording_type: str | None = None
    status: str | None = None


class MeetingObject(BaseModel):
    """The ``payload.object`` of a recording event."""

    model_config = ConfigDict(extra="ignore")

    id: str
    uuid: str
    host_id: str = ""
    account_id: str = ""
    topic: str = ""
    start_time: datetime | None = None
    timezone: str | None = None
    host_email: str = ""
    duration: int | None = None
    recording_files: list[RecordingFile] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        # Zoom sends numeric meeting ids that overflow 32-bit columns
        if isinstance(value, int):
            return str(value)
        return value

    def transcript_file(self) -> RecordingFile | None:
        """Return the audio transcript file, if the recording has one."""
        for recording_file in self.recording_files:
            if recording_file.recording_type == TRANSCRIPT_RECORDING_TYPE:
                return recording_file
        return None


class RecordingPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    account_id: str | None = None
    object: MeetingObject


class ZoomWebhookEnvelope(BaseModel):
    """A validated ``recording.transcript_completed`` delivery."""

    model_config = ConfigDict(extra="ignore")

    event: str
    event_ts: int | None = None
    payload: RecordingPayload
    download_token: str | None = None


# ── Pipeline Contracts ───────────────────────────────────────────────────────


class RecordingKey(BaseModel):
    """Natural key identifying one recorded segment of a meeting instance."""

    model_config = ConfigDict(frozen=True)

    zoom_meeting_id: str
    zoom_meeting_uuid: str
    recording_start: datetime
    recording_end: datetime


class SummaryResult(BaseModel):
    """Output of the fused summary + relevance decision."""

    summary: str = ""
    is_relevant: bool
    reasoning: str = ""


class MeetingAnalysis(BaseModel):
    """Structured metadata extracted for a relevant meeting."""

    meeting_type: MeetingType = MeetingType.UNKNOWN
    identified_external_participants: list[str] = Field(default_factory=list)
    projects: list[str] = Field(default_factory=list)
    clients: list[str] = Field(default_factory=list)


class TranscriptCreate(BaseModel):
    """Everything the persistence writer needs to insert one row."""

    key: RecordingKey
    zoom_host_id: str = ""
    zoom_account_id: str = ""
    host_email: str = ""
    topic: str = ""
    start_time: datetime | None = None
    duration: int | None = None
    download_url: str = ""
    raw_transcript: str
    cleaned_transcript: str
    summary: str
    relevance_reasoning: str = ""
    meeting_type: MeetingType = MeetingType.UNKNOWN
    external_participants: list[str] = Field(default_factory=list)
    projects: list[str] = Field(default_factory=list)
    clients: list[str] = Field(default_factory=list)
    extracted_participants: list[str] = Field(default_factory=list)
    verified_participant_emails: list[str] = Field(default_factory=list)


class CreatedTranscript(BaseModel):
    """Identity of a freshly inserted row, needed to build delete and view links."""

    id: uuid.UUID
    view_secret: str


class TranscriptRecord(BaseModel):
    """A stored transcript row as read back by the API layer."""

    id: uuid.UUID
    zoom_meeting_id: str
    zoom_meeting_uuid: str
    recording_start: datetime
    recording_end: datetime
    topic: str = ""
    host_email: str = ""
    start_time: datetime | None = None
    duration: int | None = None
    raw_transcript: str = ""
    cleaned_transcript: str = ""
    summary: str = ""
    is_relevant: bool = True
    relevance_reasoning: str = ""
    meeting_type: MeetingType = MeetingType.UNKNOWN
    external_participants: list[str] = Field(default_factory=list)
    projects: list[str] = Field(default_factory=list)
    clients: list[str] = Field(default_factory=list)
    extracted_participants: list[str] = Field(default_factory=list)
    verified_participant_emails: list[str] = Field(default_factory=list)
    view_secret: str
    created_at: datetime | None = None

"""TranscriptPipeline -- orchestrates one transcript_completed delivery.

Flow:
    pick transcript file -> duplicate pre-check -> download -> clean ->
    summary + relevance -> (irrelevant: stop) -> speaker extraction ->
    metadata extraction -> verified attendance -> duplicate re-check ->
    insert -> notify host

Every run ends in exactly one PipelineOutcome. Download, model and store
failures propagate to the background runner, which logs them; nothing is
persisted for a run that fails before the insert.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

import structlog

from src.clarity.core.monitoring import record_pipeline_outcome
from src.clarity.transcripts.analysis import MetadataExtractor
from src.clarity.transcripts.cleaner import clean_vtt_transcript, extract_participants
from src.clarity.transcripts.downloader import TranscriptDownloader
from src.clarity.transcripts.notifier import SummaryNotifier
from src.clarity.transcripts.repository import TranscriptRepository
from src.clarity.transcripts.schemas import (
    MeetingObject,
    RecordingKey,
    TranscriptCreate,
)
from src.clarity.transcripts.summarizer import SummaryGenerator

logger = structlog.get_logger(__name__)


class PipelineOutcome(str, Enum):
    """Terminal state of one pipeline run."""

    NO_TRANSCRIPT_FILE = "no_transcript_file"
    DUPLICATE = "duplicate"
    NOT_RELEVANT = "not_relevant"
    PERSISTED = "persisted"
    NOTIFIED = "notified"


class AttendanceSource(Protocol):
    async def get_participant_emails(self, meeting_uuid: str) -> list[str]: ...


class TranscriptPipeline:
    """Runs the transcript-to-record flow for one meeting recording.

    All collaborators are constructed once at startup and injected.

    Args:
        repository: Duplicate guard and persistence writer.
        downloader: Retrying transcript downloader.
        summarizer: Fused summary + relevance generator.
        extractor: Metadata extractor.
        notifier: Host DM sender.
        attendance: Optional verified-attendance source.
    """

    def __init__(
        self,
        repository: TranscriptRepository,
        downloader: TranscriptDownloader,
        summarizer: SummaryGenerator,
        extractor: MetadataExtractor,
        notifier: SummaryNotifier,
        attendance: AttendanceSource | None = None,
    ) -> None:
        self._repository = repository
        self._downloader = downloader
        self._summarizer = summarizer
        self._extractor = extractor
        self._notifier = notifier
        self._attendance = attendance

    async def process(
        self, meeting: MeetingObject, download_token: str | None
    ) -> PipelineOutcome:
        outcome = await self._run(meeting, download_token)
        record_pipeline_outcome(outcome.value)
        return outcome

    async def _run(
        self, meeting: MeetingObject, download_token: str | None
    ) -> PipelineOutcome:
        log = logger.bind(
            zoom_meeting_id=meeting.id,
            zoom_meeting_uuid=meeting.uuid,
            topic=meeting.topic,
        )

        transcript_file = meeting.transcript_file()
        if transcript_file is None:
            log.warning("pipeline.no_transcript_file", files=len(meeting.recording_files))
            return PipelineOutcome.NO_TRANSCRIPT_FILE

        key = RecordingKey(
            zoom_meeting_id=meeting.id,
            zoom_meeting_uuid=meeting.uuid,
            recording_start=transcript_file.recording_start,
            recording_end=transcript_file.recording_end,
        )

        if await self._repository.exists_for_recording(key):
            log.info("pipeline.duplicate_skipped", stage="pre_check")
            return PipelineOutcome.DUPLICATE

        raw_transcript = await self._downloader.download(
            transcript_file.download_url, download_token
        )
        cleaned = clean_vtt_transcript(raw_transcript)
        log.info("pipeline.transcript_cleaned", raw_chars=len(raw_transcript), cleaned_chars=len(cleaned))

        decision = await self._summarizer.generate(cleaned)
        if not decision.is_relevant:
            log.info("pipeline.not_relevant", reasoning=decision.reasoning)
            return PipelineOutcome.NOT_RELEVANT

        participants = extract_participants(cleaned)
        analysis = await self._extractor.analyze(decision.summary, cleaned, participants)

        verified_emails: list[str] = []
        if self._attendance is not None:
            verified_emails = await self._attendance.get_participant_emails(meeting.uuid)

        # Another delivery may have finished while the model calls ran
        if await self._repository.exists_for_recording(key):
            log.info("pipeline.duplicate_skipped", stage="re_check")
            return PipelineOutcome.DUPLICATE

        created = await self._repository.create(
            TranscriptCreate(
                key=key,
                zoom_host_id=meeting.host_id,
                zoom_account_id=meeting.account_id,
                host_email=meeting.host_email,
                topic=meeting.topic,
                start_time=meeting.start_time,
                duration=meeting.duration,
                download_url=transcript_file.download_url,
                raw_transcript=raw_transcript,
                cleaned_transcript=cleaned,
                summary=decision.summary,
                relevance_reasoning=decision.reasoning,
                meeting_type=analysis.meeting_type,
                external_participants=analysis.identified_external_participants,
                projects=analysis.projects,
                clients=analysis.clients,
                extracted_participants=participants,
                verified_participant_emails=verified_emails,
            )
        )
        if created is None:
            log.info("pipeline.duplicate_skipped", stage="insert")
            return PipelineOutcome.DUPLICATE

        log = log.bind(transcript_id=str(created.id))
        log.info("pipeline.persisted", meeting_type=analysis.meeting_type.value)

        notified = await self._notifier.notify(
            host_email=meeting.host_email,
            topic=meeting.topic,
            recording_start=key.recording_start,
            recording_end=key.recording_end,
            summary=decision.summary,
            transcript=created,
        )
        if notified:
            return PipelineOutcome.NOTIFIED
        return PipelineOutcome.PERSISTED

"""MetadataExtractor -- meeting classification for relevant transcripts.

Second LLM stage: classifies the meeting as internal/external, names the
external participants, and lists projects and clients. The prompt carries
static staff and client rosters so the model classifies by difference from
known names rather than guessing.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, Field
from tenacity.wait import wait_base

from src.clarity.core.retry import bounded_retry, fixed_wait
from src.clarity.services.llm import LLMService
from src.clarity.transcripts.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    BYPASS_PROJECTS,
    build_analysis_prompt,
    contains_bypass_phrase,
)
from src.clarity.transcripts.schemas import MeetingAnalysis, MeetingType

logger = structlog.get_logger(__name__)

TRANSCRIPT_SNIPPET_CHARS = 5000
MIN_TRANSCRIPT_CHARS = 50
ANALYSIS_TEMPERATURE = 1.0  # Reasoning models only accept the default


class ExtractedAnalysis(BaseModel):
    """Structured meeting metadata extracted by the LLM."""

    meeting_type: MeetingType = Field(
        description="'internal' (only staff), 'external' (includes non-staff), or 'unknown'"
    )
    identified_external_participants: list[str] = Field(
        default_factory=list,
        description="Names of participants not on the staff roster; empty unless external",
    )
    projects: list[str] = Field(
        default_factory=list,
        description="Specific project names, initiatives, or workstreams",
    )
    clients: list[str] = Field(
        default_factory=list,
        description="External client organizations or key individuals",
    )


class MetadataExtractor:
    """Produces a MeetingAnalysis for a relevant meeting.

    Args:
        llm_service: Structured-output LLM capability.
        model: litellm model string for the analysis call.
        staff_roster: Known internal staff names.
        client_roster: Known client organizations.
        max_attempts: Model-call attempts before the failure propagates.
        retry_delay_seconds: Fixed delay between attempts.
        bypass_enabled: Honor the test-phrase bypass.
        wait: Optional tenacity wait override.
    """

    def __init__(
        self,
        llm_service: LLMService,
        model: str,
        staff_roster: list[str],
        client_roster: list[str],
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.75,
        bypass_enabled: bool = True,
        wait: wait_base | None = None,
    ) -> None:
        self._llm = llm_service
        self._model = model
        self._staff_roster = staff_roster
        self._client_roster = client_roster
        self._max_attempts = max_attempts
        self._wait = wait if wait is not None else fixed_wait(retry_delay_seconds)
        self._bypass_enabled = bypass_enabled

    async def analyze(
        self,
        summary: str,
        cleaned_transcript: str,
        participants: list[str],
    ) -> MeetingAnalysis:
        """Classify the meeting.

        Raises:
            Exception: The last model error once all attempts are exhausted.
        """
        if self._bypass_enabled and contains_bypass_phrase(cleaned_transcript):
            logger.info("analysis.bypass_phrase_detected")
            return MeetingAnalysis(
                meeting_type=MeetingType.INTERNAL,
                identified_external_participants=[],
                projects=list(BYPASS_PROJECTS),
                clients=[],
            )

        if not summary and len(cleaned_transcript or "") < MIN_TRANSCRIPT_CHARS:
            logger.info("analysis.skipped_empty_input")
            return MeetingAnalysis(meeting_type=MeetingType.UNKNOWN)

        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": build_analysis_prompt(
                    summary=summary,
                    transcript_snippet=cleaned_transcript[:TRANSCRIPT_SNIPPET_CHARS],
                    attendees=participants,
                    staff_roster=self._staff_roster,
                    client_roster=self._client_roster,
                ),
            },
        ]

        extracted = await self._extract(messages)
        logger.info(
            "analysis.completed",
            meeting_type=extracted.meeting_type.value,
            projects=len(extracted.projects),
            clients=len(extracted.clients),
        )
        return MeetingAnalysis(**extracted.model_dump())

    async def _extract(self, messages: list[dict]) -> ExtractedAnalysis:
        async for attempt in bounded_retry(
            self._max_attempts, self._wait, event="analysis.retrying"
        ):
            with attempt:
                return await self._llm.structured_completion(
                    messages=messages,
                    response_model=ExtractedAnalysis,
                    model=self._model,
                    operation="analysis",
                    temperature=ANALYSIS_TEMPERATURE,
                )
        raise RuntimeError("Analysis retry loop exited without a result")

"""SummaryGenerator -- fused relevance decision and structured summary.

One structured-output call decides whether a meeting belongs in the
knowledge base and, only when it does, summarizes it. Irrelevant meetings
never pay for a summary, and the caller treats ``is_relevant=False`` as
authoritative.

Exports:
    SummaryGenerator: The generator service.
    MeetingSummary: Pydantic model for the structured summary.
    SummaryDecision: Pydantic response model for the instructor call.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, Field
from tenacity.wait import wait_base

from src.clarity.core.retry import bounded_retry, fixed_wait
from src.clarity.services.llm import LLMService
from src.clarity.transcripts.prompts import (
    BYPASS_REASONING,
    BYPASS_SUMMARY,
    SUMMARY_SYSTEM_PROMPT,
    contains_bypass_phrase,
)
from src.clarity.transcripts.schemas import SummaryResult

logger = structlog.get_logger(__name__)


# ── Pydantic Response Models for Instructor ──────────────────────────────────


class MeetingSummary(BaseModel):
    """Structured summary of a relevant meeting."""

    topic: str = Field(description="Short title describing the meeting topic")
    overview: str = Field(description="1-2 sentence summary of the meeting")
    takeaways: list[str] = Field(
        description="3-5 key discussions, decisions, or insights"
    )
    next_steps: list[str] = Field(
        description="1-10 specific, actionable next steps with clear ownership"
    )
    potential_gaps: list[str] = Field(
        default_factory=list,
        description="1-3 potential gaps: misalignment, unclear outcomes, vague ownership, unanswered questions",
    )


class SummaryDecision(BaseModel):
    """Relevance judgment plus, for relevant meetings only, the summary."""

    is_relevant: bool = Field(
        description="True if the meeting has business content worth keeping in the knowledge base"
    )
    reasoning: str = Field(description="Why the meeting was judged relevant or not")
    summary: MeetingSummary | None = Field(
        None, description="Structured summary; null when the meeting is not relevant"
    )


def render_summary(summary: MeetingSummary) -> str:
    """Render a structured summary as the plain text stored and sent to Slack."""
    sections = [
        f"Topic: {summary.topic}",
        f"Overview: {summary.overview}",
        "Takeaways:",
        *(f"- {item}" for item in summary.takeaways),
        "Next Steps:",
        *(f"- {item}" for item in summary.next_steps),
    ]
    if summary.potential_gaps:
        sections.append("Potential Gaps:")
        sections.extend(f"- {item}" for item in summary.potential_gaps)
    return "\n".join(sections)


# ── SummaryGenerator ─────────────────────────────────────────────────────────


class SummaryGenerator:
    """Produces a SummaryResult from a cleaned transcript.

    Args:
        llm_service: Structured-output LLM capability.
        model: litellm model string for the summary call.
        max_attempts: Model-call attempts before the failure propagates.
        retry_delay_seconds: Fixed delay between attempts.
        bypass_enabled: Honor the test-phrase bypass.
        wait: Optional tenacity wait override (tests pass ``wait_none()``).
    """

    def __init__(
        self,
        llm_service: LLMService,
        model: str,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.75,
        bypass_enabled: bool = True,
        wait: wait_base | None = None,
    ) -> None:
        self._llm = llm_service
        self._model = model
        self._max_attempts = max_attempts
        self._wait = wait if wait is not None else fixed_wait(retry_delay_seconds)
        self._bypass_enabled = bypass_enabled

    async def generate(self, cleaned_transcript: str) -> SummaryResult:
        """Decide relevance and summarize.

        The bypass check runs first on every call. An empty transcript is
        still sent for classification.

        Raises:
            Exception: The last model error once all attempts are exhausted.
        """
        if self._bypass_enabled and contains_bypass_phrase(cleaned_transcript):
            logger.info("summary.bypass_phrase_detected")
            return SummaryResult(
                summary=BYPASS_SUMMARY,
                is_relevant=True,
                reasoning=BYPASS_REASONING,
            )

        decision = await self._decide(cleaned_transcript)

        if not decision.is_relevant:
            logger.info("summary.not_relevant", reasoning=decision.reasoning)
            return SummaryResult(summary="", is_relevant=False, reasoning=decision.reasoning)

        summary_text = render_summary(decision.summary) if decision.summary else ""
        logger.info(
            "summary.generated",
            summary_chars=len(summary_text),
            has_structured_summary=decision.summary is not None,
        )
        return SummaryResult(
            summary=summary_text,
            is_relevant=True,
            reasoning=decision.reasoning,
        )

    async def _decide(self, cleaned_transcript: str) -> SummaryDecision:
        messages = [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"<transcript>\n{cleaned_transcript}\n</transcript>",
            },
        ]
        async for attempt in bounded_retry(
            self._max_attempts, self._wait, event="summary.retrying"
        ):
            with attempt:
                return await self._llm.structured_completion(
                    messages=messages,
                    response_model=SummaryDecision,
                    model=self._model,
                    operation="summary",
                )
        raise RuntimeError("Summary retry loop exited without a result")

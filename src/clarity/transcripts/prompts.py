"""Prompt text, bypass phrases and reference rosters for transcript analysis.

Kept apart from the callers so wording can change without touching control
flow. Rosters here are defaults; deployments override them through
INTERNAL_STAFF_ROSTER / KNOWN_CLIENT_ROSTER.
"""

from __future__ import annotations

# ── Test-Phrase Bypass ───────────────────────────────────────────────────────

# Spoken in a real recorded meeting to exercise the full pipeline end to end
# without depending on a qualifying business meeting.
BYPASS_PHRASES: tuple[str, ...] = (
    "clarity system test",
    "clarity copilot test",
    "system test clarity",
    "testing clarity system",
)

BYPASS_SUMMARY = (
    "Topic: Clarity Copilot System Test\n"
    "Overview: End-to-end test of the transcript pipeline triggered by a test phrase.\n"
    "Takeaways:\n"
    "- Webhook delivery, download and cleaning completed\n"
    "- Summary generation was bypassed deterministically\n"
    "Next Steps:\n"
    "- Confirm the Slack notification and delete control work as expected\n"
    "Potential Gaps:\n"
    "- None; this is a synthetic test meeting"
)
BYPASS_REASONING = "Test phrase detected; relevance forced for end-to-end testing."
BYPASS_PROJECTS: tuple[str, ...] = ("Clarity Copilot", "AI-Powered Transcript Processing")


def contains_bypass_phrase(text: str) -> bool:
    """Case-insensitive check for any bypass phrase."""
    lowered = text.lower()
    return any(phrase in lowered for phrase in BYPASS_PHRASES)


# ── Reference Rosters ────────────────────────────────────────────────────────

DEFAULT_INTERNAL_STAFF: tuple[str, ...] = ()

DEFAULT_KNOWN_CLIENTS: tuple[str, ...] = (
    "ACU",
    "AMFM",
    "Bethel Tech",
    "BibleProject",
    "Business Bible",
    "CAS (Come and See Foundation)",
    "CCLI",
    "Celebration Church",
    "Culture OS",
    "EMA (Every Mother's Advocate)",
    "FLL (Five Love Languages)",
    "Gloo",
    "iLead",
    "Intentional Churches",
    "IWU (Indiana Wesleyan University)",
    "Kingdom Economy",
    "Medi-Share",
    "OneHope",
    "Purenodal",
    "SetPath",
    "Stoller",
    "Suit & Shepherd",
    "WeDo",
    "WIF (Wesleyan Investment Foundation)",
    "Wingspan",
    "YouVersion",
)


# ── Summary + Relevance ──────────────────────────────────────────────────────

SUMMARY_SYSTEM_PROMPT = (
    "You are a professional meeting summarizer for a consulting company that "
    "builds a knowledge base from its meeting transcripts.\n\n"
    "First decide whether the meeting is RELEVANT to the knowledge base:\n"
    "- Relevant: client work, project discussions, strategy, sales, delivery, "
    "technical design, internal planning with business content.\n"
    "- Not relevant: purely personal conversations, HR or performance matters, "
    "social catch-ups, audio/video test calls, or transcripts with no "
    "substantive content.\n\n"
    "If the meeting is NOT relevant, set is_relevant to false, explain why in "
    "reasoning, and leave summary empty. Do not summarize irrelevant meetings.\n\n"
    "If the meeting IS relevant, set is_relevant to true, explain why in "
    "reasoning, and produce a structured summary. Think critically about what "
    "was actually communicated and accomplished, then perform a gap analysis: "
    "look for misalignment between participants, unclear outcomes, vague "
    "ownership of action items, unanswered questions, and unverified "
    "assumptions.\n\n"
    "Maintain a professional tone while being concise and clear."
)


# ── Metadata Extraction ──────────────────────────────────────────────────────

ANALYSIS_SYSTEM_PROMPT = (
    "You are an assistant helping to build a company knowledge base from "
    "meeting transcripts. Provide a structured analysis of a relevant meeting:\n"
    "1. meeting_type: 'internal' (only company staff), 'external' (includes "
    "anyone outside the staff roster), or 'unknown' (unclear). Use the staff "
    "roster to decide.\n"
    "2. identified_external_participants: if the meeting is external, names of "
    "participants not on the staff roster; otherwise an empty list.\n"
    "3. projects: specific project names, initiatives or workstreams "
    "(internal or client-related); empty if none are identifiable.\n"
    "4. clients: specific external client organizations or key individuals, "
    "preferring names from the known client list; empty if none are "
    "identifiable."
)


def build_analysis_prompt(
    summary: str,
    transcript_snippet: str,
    attendees: list[str],
    staff_roster: list[str],
    client_roster: list[str],
) -> str:
    """Assemble the user message for the metadata extraction call."""
    return (
        f'Summary: "{summary or "No summary provided."}"\n'
        f'Transcript snippet: "{transcript_snippet}"\n'
        f'Attendees: "{", ".join(attendees) or "Not available"}"\n\n'
        "<internal_staff>\n"
        f"{', '.join(staff_roster) or 'Not provided'}\n"
        "</internal_staff>\n\n"
        "<known_clients>\n"
        f"{', '.join(client_roster) or 'Not provided'}\n"
        "</known_clients>"
    )

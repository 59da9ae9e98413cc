"""WebVTT transcript cleaning and syntactic speaker extraction.

Zoom delivers transcripts as WebVTT: a header, then cue blocks of sequence
number, time range and one or more ``Speaker: text`` lines. Cleaning keeps
only the speech, one line per speaker turn, merging consecutive cues from
the same speaker because Zoom splits single utterances across cues.

Example:
    >>> clean_vtt_transcript("WEBVTT\\n\\n1\\n00:00:01.000 --> 00:00:02.000\\nAlice: Hi")
    'Alice: Hi'
"""

from __future__ import annotations

import re

# ── Patterns ─────────────────────────────────────────────────────────────────

_HEADER_PREFIX = "WEBVTT"
_CUE_NUMBER_RE = re.compile(r"^\d+$")
_TIMESTAMP_RE = re.compile(r"^\d{2}:\d{2}:\d{2}")
_SPEAKER_LINE_RE = re.compile(r"^(.+?):\s*(.+)$")
_PARTICIPANT_RE = re.compile(r"^([^:\n]{1,50}):\s+")


def _strip_header(lines: list[str]) -> list[str]:
    """Drop the WEBVTT header block (signature line plus metadata up to the first blank)."""
    if not lines or not lines[0].lstrip("\ufeff").strip().startswith(_HEADER_PREFIX):
        return lines
    for index, line in enumerate(lines):
        if not line.strip():
            return lines[index + 1:]
    return []


def clean_vtt_transcript(vtt_content: str) -> str:
    """Convert raw WebVTT into ``Speaker: utterance`` lines, one per turn.

    Cue numbers, timing lines and blank lines are skipped. Lines without a
    ``speaker: text`` shape are dropped. Empty input yields an empty string.
    """
    if not vtt_content:
        return ""

    lines = _strip_header(vtt_content.splitlines())

    turns: list[tuple[str, list[str]]] = []
    for raw_line in lines:
        line = raw_line.strip()
        if not line or _CUE_NUMBER_RE.match(line) or _TIMESTAMP_RE.match(line):
            continue

        match = _SPEAKER_LINE_RE.match(line)
        if not match:
            continue

        speaker, text = match.group(1), match.group(2)
        if turns and turns[-1][0] == speaker:
            turns[-1][1].append(text)
        else:
            turns.append((speaker, [text]))

    return "\n".join(f"{speaker}: {' '.join(parts)}" for speaker, parts in turns)


def extract_participants(cleaned_text: str) -> list[str]:
    """Return distinct speaker names from a cleaned transcript, in first-seen order.

    Purely mechanical: names are whatever precedes the turn's colon, capped
    at 50 characters. Independent of the LLM's participant classification.
    """
    if not cleaned_text:
        return []

    seen: dict[str, None] = {}
    for line in cleaned_text.split("\n"):
        match = _PARTICIPANT_RE.match(line)
        if match:
            name = match.group(1).strip()
            if name:
                seen.setdefault(name, None)
    return list(seen)

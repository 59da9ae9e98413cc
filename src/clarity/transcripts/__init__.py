"""Transcript pipeline -- cleaning, LLM analysis, persistence and host notification.

Turns a Zoom ``recording.transcript_completed`` delivery into at most one
stored transcript row per recording window, and DMs the meeting host a
summary with a delete control when the meeting is judged relevant.
"""

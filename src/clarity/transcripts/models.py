"""Transcript persistence model -- one row per relevant recorded segment.

The natural key (zoom_meeting_id, zoom_meeting_uuid, recording_start,
recording_end) carries a UNIQUE constraint; it is the backstop against two
concurrent deliveries of the same recording both passing the pre-check.

Zoom identifiers are stored as strings. Raw and cleaned transcript text are
kept together in one JSON content column.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.clarity.core.database import Base


class TranscriptModel(Base):
    """A processed Zoom transcript judged relevant to the knowledge base.

    Rows are inserted once and never updated; the Slack delete action is the
    only path that removes them.
    """

    __tablename__ = "transcripts"
    __table_args__ = (
        UniqueConstraint(
            "zoom_meeting_id",
            "zoom_meeting_uuid",
            "recording_start",
            "recording_end",
            name="uq_transcripts_recording",
        ),
        Index("idx_transcripts_host_email", "host_email"),
        Index("idx_transcripts_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    # Natural key
    zoom_meeting_id: Mapped[str] = mapped_column(String(64), nullable=False)
    zoom_meeting_uuid: Mapped[str] = mapped_column(String(128), nullable=False)
    recording_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recording_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Identity
    zoom_host_id: Mapped[str] = mapped_column(String(64), default="", server_default=text("''"))
    zoom_account_id: Mapped[str] = mapped_column(String(64), default="", server_default=text("''"))
    host_email: Mapped[str] = mapped_column(String(320), default="", server_default=text("''"))
    topic: Mapped[str] = mapped_column(String(500), default="", server_default=text("''"))
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    download_url: Mapped[str] = mapped_column(String(2000), default="", server_default=text("''"))

    # Content
    transcript_content: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    summary: Mapped[str] = mapped_column(Text, default="", server_default=text("''"))

    # Derived classification
    is_relevant: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true")
    )
    relevance_reasoning: Mapped[str] = mapped_column(Text, default="", server_default=text("''"))
    meeting_type: Mapped[str] = mapped_column(
        String(20), default="unknown", server_default=text("'unknown'")
    )
    external_participants: Mapped[list] = mapped_column(
        JSON, default=list, server_default=text("'[]'::json")
    )
    projects: Mapped[list] = mapped_column(
        JSON, default=list, server_default=text("'[]'::json")
    )
    clients: Mapped[list] = mapped_column(
        JSON, default=list, server_default=text("'[]'::json")
    )
    extracted_participants: Mapped[list] = mapped_column(
        JSON, default=list, server_default=text("'[]'::json")
    )
    verified_participant_emails: Mapped[list] = mapped_column(
        JSON, default=list, server_default=text("'[]'::json")
    )

    # Capability token for read-only links
    view_secret: Mapped[str] = mapped_column(String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

"""Create the transcripts table.

Revision ID: 001_transcripts
Revises:
Create Date: 2026-10-18

One row per relevant recorded segment. The UNIQUE constraint on the natural
key (meeting id, meeting uuid, recording start, recording end) rejects the
second of two concurrent deliveries of the same recording.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON, UUID

# revision identifiers, used by Alembic.
revision: str = "001_transcripts"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "transcripts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("zoom_meeting_id", sa.String(64), nullable=False),
        sa.Column("zoom_meeting_uuid", sa.String(128), nullable=False),
        sa.Column("recording_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recording_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("zoom_host_id", sa.String(64), server_default=sa.text("''"), nullable=False),
        sa.Column("zoom_account_id", sa.String(64), server_default=sa.text("''"), nullable=False),
        sa.Column("host_email", sa.String(320), server_default=sa.text("''"), nullable=False),
        sa.Column("topic", sa.String(500), server_default=sa.text("''"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("download_url", sa.String(2000), server_default=sa.text("''"), nullable=False),
        sa.Column("transcript_content", JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("summary", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("is_relevant", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("relevance_reasoning", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("meeting_type", sa.String(20), server_default=sa.text("'unknown'"), nullable=False),
        sa.Column("external_participants", JSON(), server_default=sa.text("'[]'::json"), nullable=False),
        sa.Column("projects", JSON(), server_default=sa.text("'[]'::json"), nullable=False),
        sa.Column("clients", JSON(), server_default=sa.text("'[]'::json"), nullable=False),
        sa.Column("extracted_participants", JSON(), server_default=sa.text("'[]'::json"), nullable=False),
        sa.Column("verified_participant_emails", JSON(), server_default=sa.text("'[]'::json"), nullable=False),
        sa.Column("view_secret", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "zoom_meeting_id",
            "zoom_meeting_uuid",
            "recording_start",
            "recording_end",
            name="uq_transcripts_recording",
        ),
    )
    op.create_index("idx_transcripts_host_email", "transcripts", ["host_email"])
    op.create_index("idx_transcripts_created_at", "transcripts", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_transcripts_created_at", table_name="transcripts")
    op.drop_index("idx_transcripts_host_email", table_name="transcripts")
    op.drop_table("transcripts")

"""Attach study files to a revision session or a calendar event.

Revision ID: 002
Revises: 001_initial
Create Date: 2026-10-18

Changes:
- Adds nullable session_id and event_id to study_files (ON DELETE SET NULL)
- Adds a check that a file is attached to at most one of them
- Adds lookup indexes on both columns
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "study_files",
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("revision_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.add_column(
        "study_files",
        sa.Column(
            "event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("calendar_events.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )

    op.create_check_constraint(
        "single_file_attachment",
        "study_files",
        "session_id IS NULL OR event_id IS NULL",
    )

    op.create_index("ix_study_files_session_id", "study_files", ["session_id"])
    op.create_index("ix_study_files_event_id", "study_files", ["event_id"])


def downgrade() -> None:
    op.drop_index("ix_study_files_event_id", table_name="study_files")
    op.drop_index("ix_study_files_session_id", table_name="study_files")

    op.drop_constraint("single_file_attachment", "study_files", type_="check")

    op.drop_column("study_files", "event_id")
    op.drop_column("study_files", "session_id")

"""Initial schema with all tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

This migration creates the complete Skoolife database schema:
- Extensions: uuid-ossp
- Tables: users, auth_identities, subjects, revision_sessions,
  calendar_events, session_invites, study_files, schools, cohorts,
  school_classes, school_members, access_codes
- Indexes: lookup indexes for every user-scoped listing
- Triggers: updated_at auto-update function and triggers
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UPDATED_AT_TABLES = ["users", "subjects", "revision_sessions", "study_files", "schools"]


def _id() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False)


def upgrade() -> None:
    # ==========================================================================
    # EXTENSIONS
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ==========================================================================
    # USERS TABLE
    # ==========================================================================
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("signed_up_via_invite", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_onboarding_complete", sa.Boolean(), server_default=sa.false(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # ==========================================================================
    # AUTH_IDENTITIES TABLE
    # ==========================================================================
    op.create_table(
        "auth_identities",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_login_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
    )
    op.create_index("ix_auth_identities_user_id", "auth_identities", ["user_id"])

    # ==========================================================================
    # SUBJECTS TABLE
    # ==========================================================================
    op.create_table(
        "subjects",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color", sa.String(7), server_default="#6366F1", nullable=False),
        sa.Column("exam_date", sa.Date(), nullable=True),
        sa.Column("exam_type", sa.String(50), nullable=True),
        sa.Column("target_hours", sa.Float(), nullable=True),
        sa.Column("exam_weight", sa.Integer(), server_default="3", nullable=False),
        sa.Column("difficulty_level", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("exam_weight BETWEEN 1 AND 5", name="valid_exam_weight"),
        sa.CheckConstraint("target_hours IS NULL OR target_hours >= 0", name="valid_target_hours"),
        sa.CheckConstraint("status IN ('active', 'archived', 'terminated')", name="valid_subject_status"),
    )
    op.create_index("idx_subjects_user_status", "subjects", ["user_id", "status"])

    # ==========================================================================
    # REVISION_SESSIONS TABLE
    # ==========================================================================
    op.create_table(
        "revision_sessions",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(20), server_default="planned", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"], ondelete="CASCADE"),
        sa.CheckConstraint("end_time > start_time", name="valid_session_time_range"),
        sa.CheckConstraint("status IN ('planned', 'done', 'skipped')", name="valid_session_status"),
    )
    op.create_index("idx_revision_sessions_user_date", "revision_sessions", ["user_id", "date"])
    op.create_index("ix_revision_sessions_subject_id", "revision_sessions", ["subject_id"])

    # ==========================================================================
    # CALENDAR_EVENTS TABLE
    # ==========================================================================
    op.create_table(
        "calendar_events",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("event_type", sa.String(20), server_default="autre", nullable=False),
        sa.Column("start_datetime", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_datetime", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("is_blocking", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("source", sa.String(30), server_default="manual", nullable=False),
        sa.Column("recurrence_group_id", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("end_datetime > start_datetime", name="valid_event_time_range"),
        sa.CheckConstraint(
            "event_type IN ('cours', 'travail', 'perso', 'revision_libre', 'autre')",
            name="valid_event_type",
        ),
    )
    op.create_index("idx_calendar_events_user_start", "calendar_events", ["user_id", "start_datetime"])
    op.create_index("idx_calendar_events_recurrence_group", "calendar_events", ["recurrence_group_id"])

    # ==========================================================================
    # SESSION_INVITES TABLE
    # ==========================================================================
    op.create_table(
        "session_invites",
        _id(),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("invited_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("unique_token", sa.String(64), nullable=False),
        sa.Column("expires_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("accepted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("accepted_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("meeting_format", sa.String(20), nullable=True),
        sa.Column("meeting_address", sa.String(255), nullable=True),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["revision_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["accepted_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("unique_token"),
        sa.CheckConstraint(
            "meeting_format IS NULL OR meeting_format IN ('presentiel', 'visio')",
            name="valid_meeting_format",
        ),
    )
    op.create_index("ix_session_invites_session_id", "session_invites", ["session_id"])
    op.create_index("ix_session_invites_accepted_by", "session_invites", ["accepted_by"])

    # ==========================================================================
    # STUDY_FILES TABLE
    # ==========================================================================
    op.create_table(
        "study_files",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("file_type", sa.String(100), nullable=False),
        sa.Column("file_size", sa.Integer(), server_default="0", nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False),
        sa.Column("folder_name", sa.String(100), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("storage_path"),
    )
    op.create_index("idx_study_files_user_folder", "study_files", ["user_id", "folder_name"])

    # ==========================================================================
    # SCHOOL PORTAL TABLES
    # ==========================================================================
    op.create_table(
        "schools",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("subscription_tier", sa.String(30), server_default="trial", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "cohorts",
        _id(),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("year_start", sa.Integer(), nullable=False),
        sa.Column("year_end", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.CheckConstraint("year_end >= year_start", name="valid_cohort_years"),
    )
    op.create_index("ix_cohorts_school_id", "cohorts", ["school_id"])

    op.create_table(
        "school_classes",
        _id(),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_school_classes_school_id", "school_classes", ["school_id"])

    op.create_table(
        "school_members",
        _id(),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(20), server_default="student", nullable=False),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("class_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("invited_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("joined_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["class_id"], ["school_classes.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("school_id", "user_id", name="unique_school_member"),
        sa.CheckConstraint("role IN ('admin_school', 'teacher', 'student')", name="valid_school_role"),
    )
    op.create_index("ix_school_members_school_id", "school_members", ["school_id"])
    op.create_index("ix_school_members_user_id", "school_members", ["user_id"])

    op.create_table(
        "access_codes",
        _id(),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("class_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("max_uses", sa.Integer(), server_default="100", nullable=True),
        sa.Column("current_uses", sa.Integer(), server_default="0", nullable=False),
        sa.Column("expires_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["class_id"], ["school_classes.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("code"),
        sa.CheckConstraint("current_uses >= 0", name="valid_current_uses"),
        sa.CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="access_code_within_max_uses",
        ),
    )
    op.create_index("ix_access_codes_school_id", "access_codes", ["school_id"])

    # ==========================================================================
    # UPDATED_AT TRIGGER FUNCTION
    # ==========================================================================
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    for table in UPDATED_AT_TABLES:
        op.execute(f"""
            CREATE TRIGGER update_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
        """)


def downgrade() -> None:
    for table in UPDATED_AT_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")

    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # Drop tables in reverse dependency order
    op.drop_table("access_codes")
    op.drop_table("school_members")
    op.drop_table("school_classes")
    op.drop_table("cohorts")
    op.drop_table("schools")
    op.drop_table("study_files")
    op.drop_table("session_invites")
    op.drop_table("calendar_events")
    op.drop_table("revision_sessions")
    op.drop_table("subjects")
    op.drop_table("auth_identities")
    op.drop_table("users")

"""
SQLAlchemy 2.0 Models for Skoolife.

Uses modern declarative syntax with Mapped[] type annotations.
All models use UUID primary keys and proper relationship definitions.
Column types are kept portable (Uuid, DateTime, String + CHECK) so the
same metadata runs on PostgreSQL in production and SQLite in tests.
"""

import datetime as dt
from datetime import date, datetime, time, timezone
from enum import Enum as PyEnum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skoolife.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


def _updated_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


def _check_in(column: str, enum: type[PyEnum], name: str) -> CheckConstraint:
    values = ", ".join(f"'{member.value}'" for member in enum)
    return CheckConstraint(f"{column} IN ({values})", name=name)


# =============================================================================
# ENUMS
# =============================================================================


class SubjectStatus(str, PyEnum):
    """Lifecycle of a subject."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    TERMINATED = "terminated"


class SessionStatus(str, PyEnum):
    """Progress of a revision session."""

    PLANNED = "planned"
    DONE = "done"
    SKIPPED = "skipped"


class EventType(str, PyEnum):
    """Kind of calendar event."""

    COURS = "cours"
    TRAVAIL = "travail"
    PERSO = "perso"
    REVISION_LIBRE = "revision_libre"
    AUTRE = "autre"


class EventSource(str, PyEnum):
    """How a calendar event was created."""

    MANUAL = "manual"
    MANUAL_RECURRING = "manual_recurring"
    IMPORT = "import"


class MeetingFormat(str, PyEnum):
    """Where a shared session takes place."""

    PRESENTIEL = "presentiel"
    VISIO = "visio"


class SchoolRole(str, PyEnum):
    """Role of a member inside a school."""

    ADMIN_SCHOOL = "admin_school"
    TEACHER = "teacher"
    STUDENT = "student"


# =============================================================================
# MODELS
# =============================================================================


class User(Base):
    """
    Core user account.

    Decoupled from auth providers - users can have multiple auth_identities
    linked to one account.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, index=True, nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signed_up_via_invite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_onboarding_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    # Relationships
    auth_identities: Mapped[list["AuthIdentity"]] = relationship(
        "AuthIdentity", back_populates="user", cascade="all, delete-orphan"
    )
    subjects: Mapped[list["Subject"]] = relationship(
        "Subject", back_populates="user", cascade="all, delete-orphan"
    )
    calendar_events: Mapped[list["CalendarEvent"]] = relationship(
        "CalendarEvent", back_populates="user", cascade="all, delete-orphan"
    )
    study_files: Mapped[list["StudyFile"]] = relationship(
        "StudyFile", back_populates="user", cascade="all, delete-orphan"
    )


class AuthIdentity(Base):
    """
    OAuth provider identity linked to a user.

    Does NOT store OAuth access/refresh tokens - we only verify id_tokens at login.
    """

    __tablename__ = "auth_identities"
    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)  # 'google'
    provider_user_id: Mapped[str] = mapped_column(String(255), nullable=False)  # Provider's 'sub' claim
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    last_login_at: Mapped[datetime] = _created_at()

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="auth_identities")


class Subject(Base):
    """
    A subject the student revises for, usually tied to an exam.

    Parent of revision sessions; deleting a subject removes its sessions.
    """

    __tablename__ = "subjects"
    __table_args__ = (
        Index("idx_subjects_user_status", "user_id", "status"),
        CheckConstraint("exam_weight BETWEEN 1 AND 5", name="valid_exam_weight"),
        CheckConstraint("target_hours IS NULL OR target_hours >= 0", name="valid_target_hours"),
        _check_in("status", SubjectStatus, "valid_subject_status"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#6366F1")
    exam_date: Mapped[Optional[date]] = mapped_column(nullable=True)
    exam_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    target_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    exam_weight: Mapped[int] = mapped_column(Integer, nullable=False, default=3)  # 1-5 priority
    difficulty_level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubjectStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="subjects")
    sessions: Mapped[list["RevisionSession"]] = relationship(
        "RevisionSession",
        back_populates="subject",
        cascade="all, delete-orphan",
    )


class RevisionSession(Base):
    """Planned revision slot for one subject on a given day."""

    __tablename__ = "revision_sessions"
    __table_args__ = (
        Index("idx_revision_sessions_user_date", "user_id", "date"),
        CheckConstraint("end_time > start_time", name="valid_session_time_range"),
        _check_in("status", SessionStatus, "valid_session_status"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    subject_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[dt.date] = mapped_column(nullable=False)
    start_time: Mapped[time] = mapped_column(nullable=False)
    end_time: Mapped[time] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SessionStatus.PLANNED.value
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="sessions")
    invites: Mapped[list["SessionInvite"]] = relationship(
        "SessionInvite",
        back_populates="session",
        cascade="all, delete-orphan",
    )


class CalendarEvent(Base):
    """
    Calendar entry (class, job, personal slot...).

    Occurrences generated from one weekly rule share a recurrence_group_id;
    standalone events leave it NULL.
    """

    __tablename__ = "calendar_events"
    __table_args__ = (
        Index("idx_calendar_events_user_start", "user_id", "start_datetime"),
        Index("idx_calendar_events_recurrence_group", "recurrence_group_id"),
        CheckConstraint("end_datetime > start_datetime", name="valid_event_time_range"),
        _check_in("event_type", EventType, "valid_event_type"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventType.AUTRE.value
    )
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_blocking: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default=EventSource.MANUAL.value)
    recurrence_group_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = _created_at()

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="calendar_events")


class SessionInvite(Base):
    """
    Single-use link inviting someone to join a revision session.

    accepted_by moves from NULL to a user id at most once.
    """

    __tablename__ = "session_invites"
    __table_args__ = (
        CheckConstraint(
            "meeting_format IS NULL OR meeting_format IN ('presentiel', 'visio')",
            name="valid_meeting_format",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("revision_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invited_by: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    unique_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    meeting_format: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    meeting_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    meeting_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = _created_at()

    # Relationships
    session: Mapped["RevisionSession"] = relationship("RevisionSession", back_populates="invites")
    inviter: Mapped["User"] = relationship("User", foreign_keys=[invited_by])


class StudyFile(Base):
    """
    Uploaded study document stored in S3.

    Folders are not a table: a file's folder is its folder_name.
    """

    __tablename__ = "study_files"
    __table_args__ = (
        Index("idx_study_files_user_folder", "user_id", "folder_name"),
        CheckConstraint(
            "session_id IS NULL OR event_id IS NULL", name="single_file_attachment"
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    storage_path: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    folder_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Optional attachment to one revision session or one calendar event
    session_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("revision_sessions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    event_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("calendar_events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="study_files")


# =============================================================================
# SCHOOL PORTAL
# =============================================================================


class School(Base):
    """B2B tenant: a school with its own members, cohorts and access codes."""

    __tablename__ = "schools"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    subscription_tier: Mapped[str] = mapped_column(String(30), nullable=False, default="trial")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    # Relationships
    members: Mapped[list["SchoolMember"]] = relationship(
        "SchoolMember", back_populates="school", cascade="all, delete-orphan"
    )
    cohorts: Mapped[list["Cohort"]] = relationship(
        "Cohort", back_populates="school", cascade="all, delete-orphan"
    )


class Cohort(Base):
    """Promotion / year group inside a school."""

    __tablename__ = "cohorts"
    __table_args__ = (
        CheckConstraint("year_end >= year_start", name="valid_cohort_years"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    school_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    year_start: Mapped[int] = mapped_column(Integer, nullable=False)
    year_end: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at()

    # Relationships
    school: Mapped["School"] = relationship("School", back_populates="cohorts")


class SchoolClass(Base):
    """Class (group of students) inside a cohort."""

    __tablename__ = "school_classes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    school_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    cohort_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class SchoolMember(Base):
    """Membership of a user in a school, optionally scoped to a cohort/class."""

    __tablename__ = "school_members"
    __table_args__ = (
        UniqueConstraint("school_id", "user_id", name="unique_school_member"),
        _check_in("role", SchoolRole, "valid_school_role"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    school_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=SchoolRole.STUDENT.value)
    cohort_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="SET NULL"), nullable=True
    )
    class_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("school_classes.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    invited_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    joined_at: Mapped[datetime] = _created_at()

    # Relationships
    school: Mapped["School"] = relationship("School", back_populates="members")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])


class AccessCode(Base):
    """
    Self-service enrolment code for a school.

    current_uses never exceeds max_uses; a NULL max_uses means unlimited.
    """

    __tablename__ = "access_codes"
    __table_args__ = (
        CheckConstraint("current_uses >= 0", name="valid_current_uses"),
        CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="access_code_within_max_uses",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    school_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    cohort_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="SET NULL"), nullable=True
    )
    class_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("school_classes.id", ondelete="SET NULL"), nullable=True
    )
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=100)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()

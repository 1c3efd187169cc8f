"""School portal operations: creation, enrolment, member import and analytics."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skoolife.db.models import (
    AccessCode,
    RevisionSession,
    School,
    SchoolMember,
    SchoolRole,
    SessionStatus,
    User,
)
from skoolife.services.recurrence import as_utc

logger = logging.getLogger(__name__)


# =============================================================================
# SCHOOL CREATION
# =============================================================================


async def create_school(db: AsyncSession, user: User, name: str) -> tuple[School, bool]:
    """
    Create a school administered by `user`.

    A user who already administers a school gets that school back instead
    (second value True).
    """
    result = await db.execute(
        select(School)
        .join(SchoolMember, SchoolMember.school_id == School.id)
        .where(
            SchoolMember.user_id == user.id,
            SchoolMember.role == SchoolRole.ADMIN_SCHOOL.value,
        )
        .order_by(SchoolMember.joined_at.asc(), SchoolMember.id.asc())
    )
    existing = result.scalars().first()
    if existing is not None:
        return existing, True

    school = School(
        name=name.strip(),
        contact_email=user.email or "",
        subscription_tier="trial",
        is_active=True,
    )
    db.add(school)
    await db.flush()

    db.add(
        SchoolMember(
            school_id=school.id,
            user_id=user.id,
            role=SchoolRole.ADMIN_SCHOOL.value,
            invited_by=user.id,
            is_active=True,
        )
    )
    await db.flush()
    logger.info("School %s created by user %s", school.id, user.id)
    return school, False


# =============================================================================
# ACCESS CODES
# =============================================================================


class RedeemFailure(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    ALREADY_MEMBER = "already_member"


class AccessCodeError(Exception):
    """An access code could not be redeemed."""

    def __init__(self, reason: RedeemFailure):
        super().__init__(reason.value)
        self.reason = reason


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def redeem_access_code(
    db: AsyncSession,
    code: str,
    user: User,
    now: datetime | None = None,
) -> tuple[School, SchoolMember]:
    """
    Enrol `user` as a student of the school that issued `code`.

    The use counter is bumped with a conditional UPDATE guarded by
    `current_uses < max_uses`, so concurrent redemptions never exceed the cap.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(AccessCode).where(AccessCode.code == normalize_code(code)))
    access_code = result.scalar_one_or_none()

    if access_code is None or not access_code.is_active:
        raise AccessCodeError(RedeemFailure.INVALID)
    if access_code.expires_at is not None and now > as_utc(access_code.expires_at):
        raise AccessCodeError(RedeemFailure.EXPIRED)

    member_result = await db.execute(
        select(SchoolMember).where(
            SchoolMember.school_id == access_code.school_id,
            SchoolMember.user_id == user.id,
        )
    )
    if member_result.scalar_one_or_none() is not None:
        raise AccessCodeError(RedeemFailure.ALREADY_MEMBER)

    bumped = await db.execute(
        update(AccessCode)
        .where(
            AccessCode.id == access_code.id,
            AccessCode.is_active.is_(True),
            or_(AccessCode.max_uses.is_(None), AccessCode.current_uses < AccessCode.max_uses),
        )
        .values(current_uses=AccessCode.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount != 1:
        raise AccessCodeError(RedeemFailure.EXHAUSTED)

    member = SchoolMember(
        school_id=access_code.school_id,
        user_id=user.id,
        role=SchoolRole.STUDENT.value,
        cohort_id=access_code.cohort_id,
        class_id=access_code.class_id,
        is_active=True,
    )
    db.add(member)
    await db.flush()
    await db.refresh(access_code)

    school = await db.get(School, access_code.school_id)
    logger.info("User %s joined school %s with code %s", user.id, school.id, access_code.code)
    return school, member


# =============================================================================
# MEMBER IMPORT
# =============================================================================


def normalize_role(raw: str | None) -> SchoolRole:
    """Map free-form role labels (including French ones) to a SchoolRole."""
    value = (raw or "").strip().lower()
    if value in ("teacher", "enseignant"):
        return SchoolRole.TEACHER
    if value in ("admin", "admin_school"):
        return SchoolRole.ADMIN_SCHOOL
    return SchoolRole.STUDENT


async def _administers_other_school(db: AsyncSession, user_id: UUID, school_id: UUID) -> bool:
    result = await db.execute(
        select(SchoolMember.id).where(
            SchoolMember.user_id == user_id,
            SchoolMember.school_id != school_id,
            SchoolMember.role == SchoolRole.ADMIN_SCHOOL.value,
            SchoolMember.is_active.is_(True),
        )
    )
    return result.first() is not None


@dataclass
class ImportResult:
    added: int = 0
    already_exists: int = 0
    not_found: int = 0
    errors: list[str] = field(default_factory=list)


async def import_members(
    db: AsyncSession,
    school_id: UUID,
    entries: list[tuple[str, str | None]],
    invited_by: UUID,
) -> ImportResult:
    """
    Add existing users to a school by email; unknown emails are reported, not created.

    A user may administer only one school, so an admin_school row for someone
    who already administers another school is refused.
    """
    results = ImportResult()
    added_user_ids: set[UUID] = set()

    for raw_email, raw_role in entries:
        email = (raw_email or "").strip().lower()
        if not email:
            results.errors.append("Missing email for a row")
            continue

        user_result = await db.execute(select(User).where(User.email == email))
        user = user_result.scalar_one_or_none()
        if user is None:
            results.not_found += 1
            results.errors.append(f"User not found: {email}")
            continue

        existing = await db.execute(
            select(SchoolMember.id).where(
                SchoolMember.school_id == school_id,
                SchoolMember.user_id == user.id,
            )
        )
        if user.id in added_user_ids or existing.scalar_one_or_none() is not None:
            results.already_exists += 1
            continue

        role = normalize_role(raw_role)
        if role is SchoolRole.ADMIN_SCHOOL and await _administers_other_school(db, user.id, school_id):
            results.errors.append(f"User already administers a school: {email}")
            continue

        db.add(
            SchoolMember(
                school_id=school_id,
                user_id=user.id,
                role=role.value,
                invited_by=invited_by,
                is_active=True,
            )
        )
        added_user_ids.add(user.id)
        results.added += 1

    await db.flush()
    logger.info(
        "Member import for school %s: added=%d existing=%d not_found=%d",
        school_id,
        results.added,
        results.already_exists,
        results.not_found,
    )
    return results


# =============================================================================
# ANALYTICS
# =============================================================================


@dataclass
class SchoolStats:
    total_students: int
    active_students: int
    total_sessions: int
    completed_sessions: int
    total_hours: float
    avg_sessions_per_student: float


def _session_hours(start: time, end: time) -> float:
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return delta.total_seconds() / 3600


async def compute_school_stats(db: AsyncSession, school_id: UUID) -> SchoolStats:
    """Revision activity of a school's active students."""
    student_result = await db.execute(
        select(SchoolMember.user_id).where(
            SchoolMember.school_id == school_id,
            SchoolMember.role == SchoolRole.STUDENT.value,
            SchoolMember.is_active.is_(True),
        )
    )
    student_ids = list(student_result.scalars())
    if not student_ids:
        return SchoolStats(0, 0, 0, 0, 0.0, 0.0)

    session_result = await db.execute(
        select(
            RevisionSession.user_id,
            RevisionSession.status,
            RevisionSession.start_time,
            RevisionSession.end_time,
        ).where(RevisionSession.user_id.in_(student_ids))
    )
    sessions = session_result.all()

    total_sessions = len(sessions)
    completed = sum(1 for s in sessions if s.status == SessionStatus.DONE.value)
    total_hours = sum(_session_hours(s.start_time, s.end_time) for s in sessions)
    active_students = len({s.user_id for s in sessions})

    return SchoolStats(
        total_students=len(student_ids),
        active_students=active_students,
        total_sessions=total_sessions,
        completed_sessions=completed,
        total_hours=round(total_hours, 1),
        avg_sessions_per_student=round(total_sessions / len(student_ids), 1),
    )

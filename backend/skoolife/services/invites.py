"""Session invites: token issuance, expiry and single-use acceptance."""

import logging
import secrets
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from skoolife.db.models import RevisionSession, SessionInvite
from skoolife.services.recurrence import as_utc, combine

logger = logging.getLogger(__name__)


class AcceptOutcome(str, Enum):
    """Terminal result of an acceptance attempt."""

    ACCEPTED = "accepted"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"


def generate_token() -> str:
    """Opaque, URL-safe invite token."""
    return secrets.token_urlsafe(24)


def compute_expires_at(
    session_date: date,
    start_time: time,
    tz: ZoneInfo,
    lead_time: timedelta = timedelta(hours=24),
) -> datetime:
    """Invites stop working `lead_time` before the session starts."""
    return combine(session_date, start_time, tz) - lead_time


def build_invite_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/invite/{token}"


def is_expired(invite: SessionInvite, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return now > as_utc(invite.expires_at)


async def get_invite_by_token(db: AsyncSession, token: str) -> SessionInvite | None:
    """Load an invite with its session, subject and inviter."""
    result = await db.execute(
        select(SessionInvite)
        .options(
            selectinload(SessionInvite.session).selectinload(RevisionSession.subject),
            selectinload(SessionInvite.inviter),
        )
        .where(SessionInvite.unique_token == token)
    )
    return result.scalar_one_or_none()


async def claim_invite(
    db: AsyncSession,
    invite_id: UUID,
    user_id: UUID,
    now: datetime | None = None,
) -> bool:
    """
    Compare-and-set `accepted_by` from NULL to `user_id`.

    The `accepted_by IS NULL` filter is evaluated by the database against the
    current row, so of several concurrent claims at most one matches.
    Returns True if this call claimed the invite.
    """
    result = await db.execute(
        update(SessionInvite)
        .where(
            SessionInvite.id == invite_id,
            SessionInvite.accepted_by.is_(None),
        )
        .values(accepted_by=user_id, accepted_at=now or datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def accept_invite(
    db: AsyncSession,
    invite: SessionInvite,
    user_id: UUID,
    now: datetime | None = None,
) -> AcceptOutcome:
    """
    Accept `invite` on behalf of `user_id`.

    Expiry is checked first and wins over everything else. An invite already
    held by the same user is accepted again as a no-op; one held by someone
    else, or lost to a concurrent claim, is ALREADY_USED.
    """
    now = now or datetime.now(timezone.utc)

    if is_expired(invite, now):
        return AcceptOutcome.EXPIRED

    if invite.accepted_by is not None:
        if invite.accepted_by == user_id:
            return AcceptOutcome.ACCEPTED
        return AcceptOutcome.ALREADY_USED

    if await claim_invite(db, invite.id, user_id, now):
        await db.refresh(invite)
        logger.info("Invite %s accepted by user %s", invite.id, user_id)
        return AcceptOutcome.ACCEPTED

    # Lost the race: see who holds it now
    holder = (
        await db.execute(select(SessionInvite.accepted_by).where(SessionInvite.id == invite.id))
    ).scalar_one_or_none()
    if holder == user_id:
        return AcceptOutcome.ACCEPTED
    logger.info("Invite %s already claimed, user %s lost the race", invite.id, user_id)
    return AcceptOutcome.ALREADY_USED

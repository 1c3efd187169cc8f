"""
Session invite routes.

Endpoints:
- GET /invites/accepted - Sessions the caller joined through an invite
- GET /invites/{token} - Public invite preview (no authentication)
- POST /invites/{token}/accept - Accept an invite as the current user

Invites are created from the session side: POST /sessions/{id}/invites.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from skoolife.api.deps import CurrentUser, DbSession
from skoolife.db.models import RevisionSession, SessionInvite
from skoolife.schemas.invites import (
    AcceptedSessionRead,
    InviteAcceptRequest,
    InviteAcceptResponse,
    InvitePreview,
    InviterSummary,
    SessionSummary,
)
from skoolife.services.invites import (
    AcceptOutcome,
    accept_invite,
    get_invite_by_token,
    is_expired,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invites", tags=["invites"])

OUTCOME_STATUS = {
    AcceptOutcome.ALREADY_USED: status.HTTP_409_CONFLICT,
    AcceptOutcome.EXPIRED: status.HTTP_410_GONE,
}


@router.get("/accepted", response_model=list[AcceptedSessionRead])
async def list_accepted_invites(
    current_user: CurrentUser,
    db: DbSession,
) -> list[AcceptedSessionRead]:
    """Sessions shared with the current user, soonest first."""
    result = await db.execute(
        select(SessionInvite)
        .join(SessionInvite.session)
        .options(
            selectinload(SessionInvite.session).selectinload(RevisionSession.subject),
            selectinload(SessionInvite.inviter),
        )
        .where(SessionInvite.accepted_by == current_user.id)
        .order_by(RevisionSession.date.asc(), RevisionSession.start_time.asc())
    )
    return [
        AcceptedSessionRead(
            invite_id=invite.id,
            session=SessionSummary.model_validate(invite.session),
            inviter=InviterSummary.model_validate(invite.inviter),
            meeting_format=invite.meeting_format,
            meeting_address=invite.meeting_address,
            meeting_link=invite.meeting_link,
            accepted_at=invite.accepted_at,
        )
        for invite in result.scalars()
    ]


@router.get(
    "/{token}",
    response_model=InvitePreview,
    responses={404: {"description": "Unknown token"}, 410: {"description": "Invite expired"}},
)
async def get_invite(token: str, db: DbSession):
    """
    Public preview of an invite.

    Shows the session, its subject and who sent the invite so the visitor
    can decide to sign in and accept.
    """
    invite = await get_invite_by_token(db, token)
    if invite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found")

    if is_expired(invite):
        return JSONResponse(
            status_code=status.HTTP_410_GONE,
            content={"detail": "Invite has expired", "expired": True},
        )

    return InvitePreview(
        session=SessionSummary.model_validate(invite.session),
        inviter=InviterSummary.model_validate(invite.inviter),
        meeting_format=invite.meeting_format,
        meeting_address=invite.meeting_address,
        meeting_link=invite.meeting_link,
        expires_at=invite.expires_at,
        already_accepted=invite.accepted_by is not None,
    )


@router.post(
    "/{token}/accept",
    response_model=InviteAcceptResponse,
    responses={
        409: {"model": InviteAcceptResponse, "description": "Invite already used"},
        410: {"model": InviteAcceptResponse, "description": "Invite expired"},
    },
)
async def accept(
    token: str,
    current_user: CurrentUser,
    db: DbSession,
    data: InviteAcceptRequest | None = None,
):
    """
    Accept an invite.

    Expired and already-used invites are reported through the status code
    and `outcome`; accepting an invite you already hold succeeds again.
    """
    invite = await get_invite_by_token(db, token)
    if invite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found")

    session_id, session_date = invite.session_id, invite.session.date
    outcome = await accept_invite(db, invite, current_user.id)
    if outcome is not AcceptOutcome.ACCEPTED:
        logger.info("Invite %s refused for user %s: %s", invite.id, current_user.id, outcome.value)
        await db.commit()
        return JSONResponse(
            status_code=OUTCOME_STATUS[outcome],
            content=InviteAcceptResponse(outcome=outcome).model_dump(mode="json"),
        )

    current_user.signed_up_via_invite = True
    current_user.is_onboarding_complete = True
    if data and data.first_name:
        current_user.first_name = data.first_name
    await db.commit()

    return InviteAcceptResponse(
        outcome=outcome,
        session_id=session_id,
        session_date=session_date,
    )

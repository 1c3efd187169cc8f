"""Revision session CRUD routes, invite creation and files shared with invitees."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from skoolife.api.deps import (
    CurrentUser,
    DbSession,
    Storage,
    get_shared_session_or_404,
    get_user_resource_or_404,
)
from skoolife.config import get_settings, sanitize_error
from skoolife.db.models import RevisionSession, SessionInvite, SessionStatus, StudyFile, Subject
from skoolife.schemas.files import DownloadURLResponse, StudyFileRead
from skoolife.schemas.invites import InviteCreate, InviteCreateResponse, InviteRead
from skoolife.schemas.sessions import (
    SessionCreate,
    SessionRead,
    SessionStatusType,
    SessionUpdate,
)
from skoolife.services.invites import build_invite_url, compute_expires_at, generate_token
from skoolife.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])
settings = get_settings()


@router.get("/", response_model=list[SessionRead])
async def list_sessions(
    current_user: CurrentUser,
    db: DbSession,
    date_from: date | None = None,
    date_to: date | None = None,
    subject_id: UUID | None = None,
    status_filter: Annotated[SessionStatusType | None, Query(alias="status")] = None,
) -> list[SessionRead]:
    """
    List revision sessions for the current user.

    Filters:
    - date_from/date_to: inclusive date range
    - subject_id: sessions of one subject
    - status: planned, done or skipped
    """
    query = select(RevisionSession).where(RevisionSession.user_id == current_user.id)

    if date_from:
        query = query.where(RevisionSession.date >= date_from)
    if date_to:
        query = query.where(RevisionSession.date <= date_to)
    if subject_id:
        query = query.where(RevisionSession.subject_id == subject_id)
    if status_filter:
        query = query.where(RevisionSession.status == status_filter)

    query = query.order_by(RevisionSession.date.asc(), RevisionSession.start_time.asc())

    result = await db.execute(query)
    return [SessionRead.model_validate(s) for s in result.scalars()]


@router.post("/", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionRead:
    """Create a revision session for one of the caller's subjects."""
    await get_user_resource_or_404(db, Subject, data.subject_id, current_user.id)

    session = RevisionSession(
        user_id=current_user.id,
        **data.model_dump(),
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return SessionRead.model_validate(session)


@router.get("/{session_id}", response_model=SessionRead)
async def get_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionRead:
    """Get a specific revision session by ID."""
    session = await get_user_resource_or_404(db, RevisionSession, session_id, current_user.id)
    return SessionRead.model_validate(session)


@router.patch("/{session_id}", response_model=SessionRead)
async def update_session(
    session_id: UUID,
    data: SessionUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionRead:
    """Update a revision session."""
    session = await get_user_resource_or_404(db, RevisionSession, session_id, current_user.id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("subject_id") is not None:
        await get_user_resource_or_404(db, Subject, changes["subject_id"], current_user.id)

    start_time = changes.get("start_time") or session.start_time
    end_time = changes.get("end_time") or session.end_time
    if end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_time must be after start_time",
        )

    for key, value in changes.items():
        if value is None and key != "notes":
            continue
        setattr(session, key, value)
    await db.commit()
    await db.refresh(session)
    return SessionRead.model_validate(session)


@router.post("/{session_id}/toggle-done", response_model=SessionRead)
async def toggle_session_done(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionRead:
    """Flip a session between done and planned."""
    session = await get_user_resource_or_404(db, RevisionSession, session_id, current_user.id)
    if session.status == SessionStatus.DONE.value:
        session.status = SessionStatus.PLANNED.value
    else:
        session.status = SessionStatus.DONE.value
    await db.commit()
    await db.refresh(session)
    return SessionRead.model_validate(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> None:
    """Delete a revision session (its invites go with it)."""
    session = await get_user_resource_or_404(db, RevisionSession, session_id, current_user.id)
    await db.delete(session)
    await db.commit()


# =============================================================================
# INVITES
# =============================================================================


@router.post(
    "/{session_id}/invites",
    response_model=InviteCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invite(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    data: InviteCreate | None = None,
) -> InviteCreateResponse:
    """
    Create a single-use invite link for a session.

    The link stops working `invite_lead_time_hours` before the session
    starts, so a session starting sooner than that cannot be shared.
    """
    session = await get_user_resource_or_404(db, RevisionSession, session_id, current_user.id)
    data = data or InviteCreate()

    expires_at = compute_expires_at(
        session.date,
        session.start_time,
        ZoneInfo(settings.default_timezone),
        timedelta(hours=settings.invite_lead_time_hours),
    )
    if expires_at <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Session starts too soon to be shared",
        )

    invite = SessionInvite(
        session_id=session.id,
        invited_by=current_user.id,
        unique_token=generate_token(),
        expires_at=expires_at,
        **data.model_dump(),
    )
    db.add(invite)
    await db.commit()
    await db.refresh(invite)
    logger.info("Invite %s created for session %s", invite.id, session.id)

    return InviteCreateResponse(
        **InviteRead.model_validate(invite).model_dump(),
        invite_url=build_invite_url(settings.frontend_base_url, invite.unique_token),
    )


# =============================================================================
# SHARED FILES
# =============================================================================


@router.get("/{session_id}/files", response_model=list[StudyFileRead])
async def list_session_files(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> list[StudyFileRead]:
    """Files attached to a session, visible to its owner and accepted invitees."""
    session = await get_shared_session_or_404(db, session_id, current_user.id)
    result = await db.execute(
        select(StudyFile)
        .where(StudyFile.session_id == session.id)
        .order_by(StudyFile.created_at.desc())
    )
    return [StudyFileRead.model_validate(f) for f in result.scalars()]


@router.get("/{session_id}/files/{file_id}/download-url", response_model=DownloadURLResponse)
async def get_session_file_download_url(
    session_id: UUID,
    file_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    storage: Storage,
) -> DownloadURLResponse:
    """Signed download link for a file attached to a shared session."""
    session = await get_shared_session_or_404(db, session_id, current_user.id)
    result = await db.execute(
        select(StudyFile).where(StudyFile.id == file_id, StudyFile.session_id == session.id)
    )
    study_file = result.scalar_one_or_none()
    if study_file is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")

    expires_in = settings.download_url_expiration_seconds
    try:
        url = await storage.generate_presigned_download_url(
            study_file.storage_path, expiration=expires_in
        )
    except StorageError as e:
        logger.error("Could not create a download link: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_error(e, generic_message="Could not create a download link."),
        )

    return DownloadURLResponse(download_url=url, expires_in=expires_in)

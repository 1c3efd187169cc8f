"""Subject CRUD routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status
from sqlalchemy import select

from skoolife.api.deps import CurrentUser, DbSession, get_user_resource_or_404
from skoolife.db.models import Subject
from skoolife.schemas.subjects import (
    SubjectCreate,
    SubjectRead,
    SubjectStatusType,
    SubjectUpdate,
)

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.get("/", response_model=list[SubjectRead])
async def list_subjects(
    current_user: CurrentUser,
    db: DbSession,
    status_filter: Annotated[SubjectStatusType | None, Query(alias="status")] = None,
) -> list[SubjectRead]:
    """
    List subjects for the current user.

    Ordered by exam date (subjects without an exam last), then name.
    """
    query = select(Subject).where(Subject.user_id == current_user.id)

    if status_filter:
        query = query.where(Subject.status == status_filter)

    query = query.order_by(Subject.exam_date.asc().nulls_last(), Subject.name.asc())

    result = await db.execute(query)
    return [SubjectRead.model_validate(s) for s in result.scalars()]


@router.post("/", response_model=SubjectRead, status_code=status.HTTP_201_CREATED)
async def create_subject(
    data: SubjectCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> SubjectRead:
    """Create a new subject."""
    subject = Subject(
        user_id=current_user.id,
        **data.model_dump(),
    )
    db.add(subject)
    await db.commit()
    await db.refresh(subject)
    return SubjectRead.model_validate(subject)


@router.get("/{subject_id}", response_model=SubjectRead)
async def get_subject(
    subject_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SubjectRead:
    """Get a specific subject by ID."""
    subject = await get_user_resource_or_404(db, Subject, subject_id, current_user.id)
    return SubjectRead.model_validate(subject)


@router.patch("/{subject_id}", response_model=SubjectRead)
async def update_subject(
    subject_id: UUID,
    data: SubjectUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> SubjectRead:
    """Update a subject."""
    subject = await get_user_resource_or_404(db, Subject, subject_id, current_user.id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(subject, key, value)
    await db.commit()
    await db.refresh(subject)
    return SubjectRead.model_validate(subject)


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subject(
    subject_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> None:
    """Delete a subject and its revision sessions."""
    subject = await get_user_resource_or_404(db, Subject, subject_id, current_user.id)
    await db.delete(subject)
    await db.commit()

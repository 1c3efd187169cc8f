"""
School portal routes.

Endpoints:
- POST /schools - Create the caller's school (or return the one they run)
- POST /schools/join - Join a school with an access code
- /schools/me/... - Administration of the caller's school (admin_school only)
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from skoolife.api.deps import CurrentUser, DbSession, SchoolAdmin
from skoolife.config import get_settings
from skoolife.db.models import AccessCode, Cohort, School, SchoolClass, SchoolMember, User
from skoolife.schemas.schools import (
    AccessCodeCreate,
    AccessCodeRead,
    AccessCodeUpdate,
    ClassCreate,
    ClassRead,
    CohortCreate,
    CohortRead,
    JoinSchoolRequest,
    JoinSchoolResponse,
    MemberImportRequest,
    MemberImportResult,
    MemberRead,
    SchoolAnalytics,
    SchoolCreate,
    SchoolCreateResponse,
    SchoolRead,
)
from skoolife.services.email_import import EmailImportError, extract_emails_from_file
from skoolife.services.schools import (
    AccessCodeError,
    RedeemFailure,
    compute_school_stats,
    create_school,
    import_members,
    redeem_access_code,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schools", tags=["schools"])
settings = get_settings()

REDEEM_ERRORS = {
    RedeemFailure.INVALID: (status.HTTP_404_NOT_FOUND, "Invalid access code"),
    RedeemFailure.EXPIRED: (status.HTTP_410_GONE, "Access code has expired"),
    RedeemFailure.EXHAUSTED: (status.HTTP_409_CONFLICT, "Access code has reached its usage limit"),
    RedeemFailure.ALREADY_MEMBER: (status.HTTP_409_CONFLICT, "You are already a member of this school"),
}


def _member_read(member: SchoolMember, user: User | None = None) -> MemberRead:
    user = user or member.user
    return MemberRead(
        id=member.id,
        user_id=member.user_id,
        email=user.email,
        name=user.name,
        role=member.role,
        cohort_id=member.cohort_id,
        class_id=member.class_id,
        is_active=member.is_active,
        joined_at=member.joined_at,
    )


async def _school_cohort_or_404(db: DbSession, school_id: UUID, cohort_id: UUID) -> Cohort:
    result = await db.execute(
        select(Cohort).where(Cohort.id == cohort_id, Cohort.school_id == school_id)
    )
    cohort = result.scalar_one_or_none()
    if cohort is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cohort not found")
    return cohort


async def _school_class_or_404(db: DbSession, school_id: UUID, class_id: UUID) -> SchoolClass:
    result = await db.execute(
        select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.school_id == school_id)
    )
    school_class = result.scalar_one_or_none()
    if school_class is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return school_class


# =============================================================================
# SCHOOL
# =============================================================================


@router.post("/", response_model=SchoolCreateResponse, status_code=status.HTTP_201_CREATED)
async def create(
    data: SchoolCreate,
    response: Response,
    current_user: CurrentUser,
    db: DbSession,
) -> SchoolCreateResponse:
    """
    Create a school with the caller as its administrator.

    Calling again returns the existing school with `reused: true`.
    """
    school, reused = await create_school(db, current_user, data.name)
    await db.commit()
    if reused:
        response.status_code = status.HTTP_200_OK
    return SchoolCreateResponse(school=SchoolRead.model_validate(school), reused=reused)


@router.post("/join", response_model=JoinSchoolResponse)
async def join(
    data: JoinSchoolRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> JoinSchoolResponse:
    """Join a school as a student using one of its access codes."""
    try:
        school, member = await redeem_access_code(db, data.code, current_user)
    except AccessCodeError as e:
        status_code, detail = REDEEM_ERRORS[e.reason]
        raise HTTPException(status_code=status_code, detail=detail)

    await db.commit()
    return JoinSchoolResponse(
        school=SchoolRead.model_validate(school),
        membership=_member_read(member, current_user),
    )


@router.get("/me", response_model=SchoolRead)
async def get_my_school(admin: SchoolAdmin, db: DbSession) -> SchoolRead:
    """The school the caller administers."""
    school = await db.get(School, admin.school_id)
    if school is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return SchoolRead.model_validate(school)


# =============================================================================
# COHORTS & CLASSES
# =============================================================================


@router.get("/me/cohorts", response_model=list[CohortRead])
async def list_cohorts(admin: SchoolAdmin, db: DbSession) -> list[CohortRead]:
    result = await db.execute(
        select(Cohort)
        .where(Cohort.school_id == admin.school_id)
        .order_by(Cohort.year_start.desc(), Cohort.name.asc())
    )
    return [CohortRead.model_validate(c) for c in result.scalars()]


@router.post("/me/cohorts", response_model=CohortRead, status_code=status.HTTP_201_CREATED)
async def create_cohort(data: CohortCreate, admin: SchoolAdmin, db: DbSession) -> CohortRead:
    cohort = Cohort(school_id=admin.school_id, **data.model_dump())
    db.add(cohort)
    await db.commit()
    await db.refresh(cohort)
    return CohortRead.model_validate(cohort)


@router.get("/me/classes", response_model=list[ClassRead])
async def list_classes(
    admin: SchoolAdmin,
    db: DbSession,
    cohort_id: UUID | None = None,
) -> list[ClassRead]:
    query = select(SchoolClass).where(SchoolClass.school_id == admin.school_id)
    if cohort_id:
        query = query.where(SchoolClass.cohort_id == cohort_id)
    result = await db.execute(query.order_by(SchoolClass.name.asc()))
    return [ClassRead.model_validate(c) for c in result.scalars()]


@router.post("/me/classes", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
async def create_class(data: ClassCreate, admin: SchoolAdmin, db: DbSession) -> ClassRead:
    """Create a class inside one of the school's cohorts."""
    await _school_cohort_or_404(db, admin.school_id, data.cohort_id)
    school_class = SchoolClass(school_id=admin.school_id, **data.model_dump())
    db.add(school_class)
    await db.commit()
    await db.refresh(school_class)
    return ClassRead.model_validate(school_class)


# =============================================================================
# ACCESS CODES
# =============================================================================


@router.get("/me/access-codes", response_model=list[AccessCodeRead])
async def list_access_codes(admin: SchoolAdmin, db: DbSession) -> list[AccessCodeRead]:
    result = await db.execute(
        select(AccessCode)
        .where(AccessCode.school_id == admin.school_id)
        .order_by(AccessCode.created_at.desc())
    )
    return [AccessCodeRead.model_validate(c) for c in result.scalars()]


@router.post("/me/access-codes", response_model=AccessCodeRead, status_code=status.HTTP_201_CREATED)
async def create_access_code(
    data: AccessCodeCreate,
    admin: SchoolAdmin,
    db: DbSession,
) -> AccessCodeRead:
    """Create an enrolment code, optionally tied to a cohort and class."""
    if data.cohort_id:
        await _school_cohort_or_404(db, admin.school_id, data.cohort_id)
    if data.class_id:
        await _school_class_or_404(db, admin.school_id, data.class_id)

    existing = await db.execute(select(AccessCode.id).where(AccessCode.code == data.code))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Access code already exists")

    access_code = AccessCode(
        school_id=admin.school_id,
        created_by=admin.user_id,
        **data.model_dump(),
    )
    db.add(access_code)
    await db.commit()
    await db.refresh(access_code)
    logger.info("Access code %s created for school %s", access_code.code, admin.school_id)
    return AccessCodeRead.model_validate(access_code)


@router.patch("/me/access-codes/{code_id}", response_model=AccessCodeRead)
async def update_access_code(
    code_id: UUID,
    data: AccessCodeUpdate,
    admin: SchoolAdmin,
    db: DbSession,
) -> AccessCodeRead:
    """Activate or deactivate an access code."""
    result = await db.execute(
        select(AccessCode).where(AccessCode.id == code_id, AccessCode.school_id == admin.school_id)
    )
    access_code = result.scalar_one_or_none()
    if access_code is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Access code not found")

    access_code.is_active = data.is_active
    await db.commit()
    await db.refresh(access_code)
    return AccessCodeRead.model_validate(access_code)


# =============================================================================
# MEMBERS
# =============================================================================


@router.get("/me/members", response_model=list[MemberRead])
async def list_members(admin: SchoolAdmin, db: DbSession) -> list[MemberRead]:
    result = await db.execute(
        select(SchoolMember)
        .options(selectinload(SchoolMember.user))
        .where(SchoolMember.school_id == admin.school_id)
        .order_by(SchoolMember.joined_at.asc())
    )
    return [_member_read(m) for m in result.scalars()]


@router.post("/me/members/import", response_model=MemberImportResult)
async def import_member_list(
    data: MemberImportRequest,
    admin: SchoolAdmin,
    db: DbSession,
) -> MemberImportResult:
    """Add existing users to the school from a list of emails and roles."""
    results = await import_members(
        db,
        admin.school_id,
        [(entry.email, entry.role) for entry in data.members],
        invited_by=admin.user_id,
    )
    await db.commit()
    return MemberImportResult(**vars(results))


@router.post("/me/members/import-file", response_model=MemberImportResult)
async def import_member_file(
    admin: SchoolAdmin,
    db: DbSession,
    file: Annotated[UploadFile, File()],
    role: Annotated[str, Form()] = "student",
) -> MemberImportResult:
    """
    Add existing users from an uploaded CSV, TXT or Excel file.

    Every address found in the file is imported with the same `role`.
    """
    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File is too large",
        )

    try:
        emails = extract_emails_from_file(file.filename or "", content)
    except EmailImportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not emails:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid email address found in the file",
        )

    results = await import_members(
        db,
        admin.school_id,
        [(email, role) for email in emails],
        invited_by=admin.user_id,
    )
    await db.commit()
    return MemberImportResult(**vars(results))


# =============================================================================
# ANALYTICS
# =============================================================================


@router.get("/me/analytics", response_model=SchoolAnalytics)
async def get_analytics(admin: SchoolAdmin, db: DbSession) -> SchoolAnalytics:
    """Revision activity of the school's students."""
    stats = await compute_school_stats(db, admin.school_id)
    return SchoolAnalytics(**vars(stats))

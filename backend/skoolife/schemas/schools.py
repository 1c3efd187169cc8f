"""School portal schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from skoolife.schemas.base import BaseSchema
from skoolife.services.schools import normalize_code


class SchoolCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)


class SchoolRead(BaseSchema):
    """Schema for reading school data."""

    id: UUID
    name: str
    contact_email: str
    contact_phone: str | None
    address: str | None
    city: str | None
    postal_code: str | None
    subscription_tier: str
    is_active: bool
    created_at: datetime


class SchoolCreateResponse(BaseModel):
    school: SchoolRead
    reused: bool


class CohortCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)
    year_start: int = Field(..., ge=1900, le=2200)
    year_end: int = Field(..., ge=1900, le=2200)

    @model_validator(mode="after")
    def validate_years(self) -> "CohortCreate":
        if self.year_end < self.year_start:
            raise ValueError("year_end must not be before year_start")
        return self


class CohortRead(BaseSchema):
    id: UUID
    school_id: UUID
    name: str
    year_start: int
    year_end: int
    is_active: bool
    created_at: datetime


class ClassCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)
    cohort_id: UUID


class ClassRead(BaseSchema):
    id: UUID
    school_id: UUID
    cohort_id: UUID
    name: str
    is_active: bool
    created_at: datetime


class AccessCodeCreate(BaseSchema):
    """New enrolment code; stored uppercased."""

    code: str = Field(..., min_length=4, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    cohort_id: UUID | None = None
    class_id: UUID | None = None
    max_uses: int | None = Field(100, ge=1)
    expires_at: datetime | None = None

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, value: str) -> str:
        return normalize_code(value)


class AccessCodeRead(BaseSchema):
    id: UUID
    school_id: UUID
    code: str
    cohort_id: UUID | None
    class_id: UUID | None
    max_uses: int | None
    current_uses: int
    expires_at: datetime | None
    is_active: bool
    created_at: datetime


class AccessCodeUpdate(BaseSchema):
    is_active: bool


class JoinSchoolRequest(BaseSchema):
    code: str = Field(..., min_length=1, max_length=50)


class MemberRead(BaseModel):
    """A school member with the user's contact details."""

    id: UUID
    user_id: UUID
    email: str | None
    name: str
    role: str
    cohort_id: UUID | None
    class_id: UUID | None
    is_active: bool
    joined_at: datetime


class JoinSchoolResponse(BaseModel):
    school: SchoolRead
    membership: MemberRead


class MemberImportEntry(BaseSchema):
    email: str = Field(..., min_length=1, max_length=255)
    role: str | None = "student"


class MemberImportRequest(BaseSchema):
    members: list[MemberImportEntry] = Field(..., min_length=1)


class MemberImportResult(BaseModel):
    added: int
    already_exists: int
    not_found: int
    errors: list[str]


class SchoolAnalytics(BaseModel):
    total_students: int
    active_students: int
    total_sessions: int
    completed_sessions: int
    total_hours: float
    avg_sessions_per_student: float

"""User schemas."""

from datetime import datetime
from uuid import UUID

from skoolife.schemas.base import BaseSchema


class UserRead(BaseSchema):
    """Schema for reading user data."""

    id: UUID
    email: str | None
    name: str
    first_name: str | None
    last_name: str | None
    signed_up_via_invite: bool
    is_onboarding_complete: bool
    created_at: datetime
    updated_at: datetime

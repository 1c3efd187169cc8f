"""Pydantic schemas for API request/response validation."""

from skoolife.schemas.user import UserRead
from skoolife.schemas.auth import GoogleAuthRequest, TokenResponse
from skoolife.schemas.subjects import SubjectCreate, SubjectRead, SubjectUpdate
from skoolife.schemas.sessions import SessionCreate, SessionRead, SessionUpdate
from skoolife.schemas.events import ConfirmationRequired, EventCreate, EventEdit, EventRead
from skoolife.schemas.invites import (
    AcceptedSessionRead,
    InviteAcceptRequest,
    InviteAcceptResponse,
    InviteCreate,
    InviteCreateResponse,
    InvitePreview,
)
from skoolife.schemas.files import (
    FileUploadURLRequest,
    FileUploadURLResponse,
    StudyFileRead,
    StudyFileUpdate,
)
from skoolife.schemas.schools import (
    AccessCodeCreate,
    AccessCodeRead,
    JoinSchoolRequest,
    MemberImportRequest,
    MemberImportResult,
    SchoolAnalytics,
    SchoolCreate,
    SchoolRead,
)
from skoolife.schemas.subscription import PortalResponse, SubscriptionRead

__all__ = [
    # User
    "UserRead",
    # Auth
    "GoogleAuthRequest",
    "TokenResponse",
    # Subjects
    "SubjectCreate",
    "SubjectRead",
    "SubjectUpdate",
    # Revision sessions
    "SessionCreate",
    "SessionRead",
    "SessionUpdate",
    # Events
    "ConfirmationRequired",
    "EventCreate",
    "EventEdit",
    "EventRead",
    # Invites
    "AcceptedSessionRead",
    "InviteAcceptRequest",
    "InviteAcceptResponse",
    "InviteCreate",
    "InviteCreateResponse",
    "InvitePreview",
    # Files
    "FileUploadURLRequest",
    "FileUploadURLResponse",
    "StudyFileRead",
    "StudyFileUpdate",
    # Schools
    "AccessCodeCreate",
    "AccessCodeRead",
    "JoinSchoolRequest",
    "MemberImportRequest",
    "MemberImportResult",
    "SchoolAnalytics",
    "SchoolCreate",
    "SchoolRead",
    # Subscription
    "PortalResponse",
    "SubscriptionRead",
]

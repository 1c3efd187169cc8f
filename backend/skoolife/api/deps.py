"""
FastAPI Dependencies for Authentication and Authorization.

Key patterns:
1. get_current_user: Extracts and validates JWT, returns User object
2. User-scoped queries: lookups take user_id and filter on it in SQL
3. External services (storage, billing, subscription cache) are injected
   so tests can swap them through app.dependency_overrides
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, TypeVar
from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skoolife.config import get_settings
from skoolife.db.models import RevisionSession, SchoolMember, SchoolRole, SessionInvite, User
from skoolife.db.session import get_db
from skoolife.services.billing import BillingGateway, get_billing_gateway
from skoolife.services.storage import StorageService, get_storage_service
from skoolife.services.subscription import SubscriptionCache

settings = get_settings()

ModelT = TypeVar("ModelT")


# =============================================================================
# JWT UTILITIES
# =============================================================================


def create_access_token(user_id: UUID) -> str:
    """
    Create a JWT access token for a user.

    Payload holds only `sub` (user id) and `exp`; no profile data.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(user_id),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID | None:
    """
    Decode and validate a JWT access token.

    Returns user_id if valid, None if invalid/expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        user_id_str = payload.get("sub")
        if user_id_str is None:
            return None
        return UUID(user_id_str)
    except (JWTError, ValueError):
        return None


# =============================================================================
# AUTHENTICATION DEPENDENCIES
# =============================================================================


async def get_token_from_request(
    authorization: Annotated[str | None, Header()] = None,
    access_token: Annotated[str | None, Cookie()] = None,
) -> str:
    """
    Extract JWT token from request.

    HttpOnly cookie `access_token` first, then `Authorization: Bearer <token>`.
    """
    if access_token:
        return access_token

    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Annotated[str, Depends(get_token_from_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Validate JWT and return the current authenticated user.

    Raises 401 if the token is missing, invalid or expired, or if the user
    no longer exists.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_access_token(token)
    if user_id is None:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    return user


def get_subscription_cache(request: Request) -> SubscriptionCache:
    """Return the per-app subscription cache created at startup."""
    return request.app.state.subscription_cache


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Storage = Annotated[StorageService, Depends(get_storage_service)]
Billing = Annotated[BillingGateway, Depends(get_billing_gateway)]
SubscriptionCacheDep = Annotated[SubscriptionCache, Depends(get_subscription_cache)]


# =============================================================================
# AUTHORIZATION HELPERS
# =============================================================================


async def get_user_resource_or_404(
    db: AsyncSession,
    model: type[ModelT],
    resource_id: UUID,
    user_id: UUID,
) -> ModelT:
    """
    Fetch a user-owned resource by ID.

    Scoping happens in SQL (WHERE user_id = ...). A resource owned by
    someone else is reported as 404 so its existence is not revealed.
    """
    result = await db.execute(
        select(model).where(model.id == resource_id, model.user_id == user_id)
    )
    resource = result.scalar_one_or_none()

    if resource is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")

    return resource


async def get_shared_session_or_404(
    db: AsyncSession,
    session_id: UUID,
    user_id: UUID,
) -> RevisionSession:
    """
    Fetch a revision session the user owns or has accepted an invite to.

    Anyone else gets 404, as with get_user_resource_or_404.
    """
    accepted = select(SessionInvite.id).where(
        SessionInvite.session_id == RevisionSession.id,
        SessionInvite.accepted_by == user_id,
    )
    result = await db.execute(
        select(RevisionSession).where(
            RevisionSession.id == session_id,
            or_(RevisionSession.user_id == user_id, accepted.exists()),
        )
    )
    session = result.scalar_one_or_none()

    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")

    return session


async def get_school_admin_membership(
    current_user: CurrentUser,
    db: DbSession,
) -> SchoolMember:
    """
    Return the caller's active admin_school membership or raise 403.

    The earliest membership wins if older data holds more than one.
    """
    result = await db.execute(
        select(SchoolMember)
        .where(
            SchoolMember.user_id == current_user.id,
            SchoolMember.role == SchoolRole.ADMIN_SCHOOL.value,
            SchoolMember.is_active.is_(True),
        )
        .order_by(SchoolMember.joined_at.asc(), SchoolMember.id.asc())
    )
    membership = result.scalars().first()
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="School administrator access required",
        )
    return membership


SchoolAdmin = Annotated[SchoolMember, Depends(get_school_admin_membership)]

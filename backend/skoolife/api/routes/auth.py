"""
Authentication Routes

Endpoints:
- POST /auth/google - Exchange Google id_token for session
- POST /auth/logout - Clear session
- GET /auth/me - Get current user profile

Auth Flow:
1. Frontend performs the Google sign-in and receives an id_token
2. Frontend POSTs id_token to /auth/google
3. Backend verifies id_token with Google's public keys
4. Backend upserts user + auth_identity
5. Backend returns JWT (in cookie and response body)

We do NOT store Google access/refresh tokens.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Response, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from skoolife.api.deps import CurrentUser, DbSession, create_access_token
from skoolife.config import get_settings
from skoolife.db.models import AuthIdentity, User
from skoolife.schemas.auth import GoogleAuthRequest, TokenResponse
from skoolife.schemas.user import UserRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.cookie_cross_domain or settings.environment != "development",
        "samesite": "none" if settings.cookie_cross_domain else "lax",
    }


@router.post("/google", response_model=TokenResponse)
async def google_login(
    request: GoogleAuthRequest,
    response: Response,
    db: DbSession,
) -> TokenResponse:
    """
    Exchange Google id_token for a session JWT.

    Flow:
    1. Verify id_token with Google's public keys
    2. Extract user info (sub, email, names)
    3. Find or create auth_identity by (provider='google', provider_user_id=sub)
    4. Find or create user, link to auth_identity
    5. Return JWT
    """
    try:
        # Checks signature, expiry and audience
        idinfo = google_id_token.verify_oauth2_token(
            request.id_token,
            google_requests.Request(),
            settings.google_client_id,
        )

        provider_user_id = idinfo["sub"]
        email = idinfo.get("email")
        name = idinfo.get("name", email or "Unknown User")

        if idinfo.get("iss") not in GOOGLE_ISSUERS:
            raise ValueError("Invalid issuer")

        # Unverified emails could allow account hijacking
        if email and not idinfo.get("email_verified", False):
            email = None

    except ValueError as e:
        logger.info("Rejected Google id_token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Google id_token: {e}",
        )

    # Eagerly load user to avoid async lazy-load
    result = await db.execute(
        select(AuthIdentity)
        .options(selectinload(AuthIdentity.user))
        .where(
            AuthIdentity.provider == "google",
            AuthIdentity.provider_user_id == provider_user_id,
        )
    )
    auth_identity = result.scalar_one_or_none()

    if auth_identity:
        auth_identity.last_login_at = datetime.now(timezone.utc)
        if email:
            auth_identity.email = email
        user = auth_identity.user
    else:
        # New identity - link to an existing account with the same email
        user = None
        if email:
            result = await db.execute(select(User).where(User.email == email.lower()))
            user = result.scalar_one_or_none()

        if user is None:
            user = User(
                email=email.lower() if email else None,
                name=name,
                first_name=idinfo.get("given_name"),
                last_name=idinfo.get("family_name"),
            )
            db.add(user)
            await db.flush()
            logger.info("Created user %s from Google sign-in", user.id)

        auth_identity = AuthIdentity(
            user_id=user.id,
            provider="google",
            provider_user_id=provider_user_id,
            email=email,
        )
        db.add(auth_identity)

    await db.commit()

    access_token = create_access_token(user.id)
    expires_in = settings.jwt_expire_minutes * 60

    # Cross-domain deployments need samesite="none" + secure=True
    response.set_cookie(
        key="access_token",
        value=access_token,
        max_age=expires_in,
        **_cookie_options(),
    )

    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> None:
    """
    Clear the authentication cookie.

    A JWT stored elsewhere by the client stays valid until expiry.
    """
    response.delete_cookie(key="access_token", **_cookie_options())


@router.get("/me", response_model=UserRead)
async def get_me(current_user: CurrentUser) -> UserRead:
    """Get the current authenticated user's profile."""
    return UserRead.model_validate(current_user)

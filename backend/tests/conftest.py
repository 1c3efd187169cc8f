"""Pytest configuration and fixtures."""

import os

# Settings are read at import time, so the test environment goes first
os.environ.update(
    {
        "ENVIRONMENT": "development",
        "DATABASE_URL_OVERRIDE": "sqlite+aiosqlite:///:memory:",
        "JWT_SECRET_KEY": "test-secret-key",
        "GOOGLE_CLIENT_ID": "test-client-id.apps.googleusercontent.com",
        "AWS_ACCESS_KEY_ID": "test",
        "AWS_SECRET_ACCESS_KEY": "test",
        "AWS_S3_BUCKET": "skoolife-test",
        "DEFAULT_TIMEZONE": "UTC",
        "FRONTEND_BASE_URL": "https://app.skoolife.test",
        "STRIPE_SECRET_KEY": "sk_test_dummy",
        "STRIPE_PRODUCT_STUDENT": "prod_student",
        "STRIPE_PRODUCT_MAJOR": "prod_major",
    }
)

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import date, datetime, time, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from skoolife.api.deps import create_access_token  # noqa: E402
from skoolife.db.base import Base  # noqa: E402
from skoolife.db.models import RevisionSession, SessionInvite, Subject, User  # noqa: E402
from skoolife.db.session import get_db  # noqa: E402
from skoolife.main import app  # noqa: E402
from skoolife.services.billing import BillingError, SubscriptionStatus, get_billing_gateway  # noqa: E402
from skoolife.services.storage import get_storage_service  # noqa: E402
from skoolife.services.subscription import SubscriptionCache  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# FAKE EXTERNAL SERVICES
# =============================================================================


class FakeStorage:
    """In-memory stand-in for the S3 storage service."""

    def __init__(self):
        self.objects: dict[str, int] = {}
        self.deleted: list[str] = []

    async def generate_presigned_upload_url(self, file_key, content_type, expiration=300):
        return {
            "url": "https://s3.test/skoolife-test",
            "fields": {"key": file_key, "Content-Type": content_type},
        }

    async def generate_presigned_download_url(self, file_key, expiration=3600):
        return f"https://s3.test/skoolife-test/{file_key}?expires={expiration}"

    async def get_object_size(self, file_key):
        return self.objects.get(file_key)

    async def delete_object(self, file_key):
        self.objects.pop(file_key, None)
        self.deleted.append(file_key)


class FakeBilling:
    """Billing gateway double that records calls."""

    def __init__(self):
        self.status = SubscriptionStatus(subscribed=False)
        self.portal_url: str | None = "https://billing.stripe.test/session/abc"
        self.error: BillingError | None = None
        self.fetch_calls = 0

    async def fetch_subscription_status(self, email):
        self.fetch_calls += 1
        if self.error:
            raise self.error
        return self.status

    async def create_portal_url(self, email, return_url):
        if self.error:
            raise self.error
        return self.portal_url


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test, shared with the app through get_db."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def billing() -> FakeBilling:
    return FakeBilling()


@pytest.fixture
async def client(
    db_session: AsyncSession,
    storage: FakeStorage,
    billing: FakeBilling,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_billing_gateway] = lambda: billing
    # ASGITransport does not run the lifespan
    app.state.subscription_cache = SubscriptionCache(ttl_seconds=60)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# DATA FACTORIES
# =============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make_user(email: str = "alice@example.com", name: str = "Alice Martin", **kwargs) -> User:
        user = User(email=email, name=name, **kwargs)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_subject(db_session: AsyncSession):
    async def _make_subject(user: User, name: str = "Mathematics", **kwargs) -> Subject:
        subject = Subject(user_id=user.id, name=name, **kwargs)
        db_session.add(subject)
        await db_session.commit()
        return subject

    return _make_subject


@pytest.fixture
def make_session(db_session: AsyncSession):
    async def _make_session(
        subject: Subject,
        day: date | None = None,
        start: time = time(10, 0),
        end: time = time(11, 0),
        **kwargs,
    ) -> RevisionSession:
        session = RevisionSession(
            user_id=subject.user_id,
            subject_id=subject.id,
            date=day or date.today() + timedelta(days=7),
            start_time=start,
            end_time=end,
            **kwargs,
        )
        db_session.add(session)
        await db_session.commit()
        return session

    return _make_session


@pytest.fixture
def make_invite(db_session: AsyncSession):
    async def _make_invite(
        session: RevisionSession,
        token: str = "abc123",
        expires_at: datetime | None = None,
        **kwargs,
    ) -> SessionInvite:
        invite = SessionInvite(
            session_id=session.id,
            invited_by=session.user_id,
            unique_token=token,
            expires_at=expires_at or datetime.now(timezone.utc) + timedelta(days=3),
            **kwargs,
        )
        db_session.add(invite)
        await db_session.commit()
        return invite

    return _make_invite


@pytest.fixture
async def user(make_user) -> User:
    return await make_user()


@pytest.fixture
def auth_headers(user: User) -> dict[str, str]:
    return headers_for(user)


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def parse_utc(value: str) -> datetime:
    """Parse an API timestamp; SQLite hands back naive UTC values."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

"""
Pytest configuration and fixtures for FocusRoom tests.

Provides:
- Async test database with SQLite
- Test client for API testing
- Factory fixtures for creating test data

Factories commit rather than flush: ledger operations commit or roll back
the shared session, and a rollback must not discard fixture rows.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from focusroom.config import Settings, get_settings
from focusroom.core.database import get_db
from focusroom.core.datetime_utils import utc_now
from focusroom.dependencies import get_delivery
from focusroom.main import app
from focusroom.models import Base
from focusroom.models.content import Event, Feedback, Poll, PollOption, Project, Spotlight, Task
from focusroom.models.digest import DigestRun
from focusroom.models.user import Session, User
from focusroom.services.delivery import DeliveryReport

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CRON_SECRET = "test-cron-secret"


# Override settings for testing
class TestSettings(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    resend_api_key: str = "test-key"
    secret_key: str = "test-secret-key"
    cron_secret: str = CRON_SECRET
    base_url: str = "http://localhost:8000"
    scheduler_enabled: bool = False


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_delivery():
    """Delivery adapter that accepts every send."""
    delivery = AsyncMock()
    delivery.name = "mock"
    delivery.is_configured = lambda: True

    async def _send(to: list[str], subject: str, html: str) -> DeliveryReport:
        return DeliveryReport(emails_sent=len(to), emails_failed=0, message_id="msg_test")

    delivery.send.side_effect = _send
    return delivery


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, mock_delivery) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database override."""
    from focusroom.core.rate_limit import limiter

    async def override_get_db():
        yield db_session

    def override_get_settings():
        return TestSettings()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings
    app.dependency_overrides[get_delivery] = lambda: mock_delivery

    # Reset rate limiter storage before each test
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def user_factory(db_session: AsyncSession):
    """Factory for creating test users."""

    async def _create_user(
        email: str | None = "",
        role: str = "member",
        name: str = "Test Member",
        user_id: str | None = None,
    ) -> User:
        if email == "":
            email = f"test-{uuid.uuid4().hex[:8]}@example.com"

        user = User(
            id=user_id or f"user_{uuid.uuid4().hex[:12]}",
            name=name,
            email=email,
            role=role,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _create_user


@pytest_asyncio.fixture
async def session_factory(db_session: AsyncSession, user_factory):
    """Factory for creating test sessions."""

    async def _create_session(user: User | None = None, expired: bool = False) -> Session:
        if user is None:
            user = await user_factory()

        session = Session(
            user_id=user.id,
            expires_at=utc_now() + timedelta(days=-1 if expired else 30),
        )
        db_session.add(session)
        await db_session.commit()
        return session

    return _create_session


@pytest_asyncio.fixture
async def auth_cookies(session_factory, user_factory):
    """Factory returning (user, cookies) for an authenticated client."""

    async def _login(role: str = "member") -> tuple[User, dict[str, str]]:
        user = await user_factory(role=role)
        session = await session_factory(user)
        return user, {"session_id": str(session.id)}

    return _login


@pytest_asyncio.fixture
async def event_factory(db_session: AsyncSession):
    """Factory for creating test events."""

    async def _create_event(
        title: str = "Open Mic Night",
        description: str | None = "Bring your instrument",
        start_at: datetime | None = None,
        created_at: datetime | None = None,
    ) -> Event:
        event = Event(
            title=title,
            description=description,
            start_at=start_at,
            created_at=created_at or utc_now(),
        )
        db_session.add(event)
        await db_session.commit()
        return event

    return _create_event


@pytest_asyncio.fixture
async def poll_factory(db_session: AsyncSession):
    """Factory for creating test polls with options."""

    async def _create_poll(
        question: str = "Which venue next month?",
        options: list[str] | None = None,
        is_active: bool = True,
        ends_at: datetime | None = None,
        created_at: datetime | None = None,
    ) -> Poll:
        poll = Poll(
            question=question,
            is_active=is_active,
            ends_at=ends_at,
            created_at=created_at or utc_now(),
        )
        db_session.add(poll)
        await db_session.flush()

        for text in options or ["The Loft", "Garage Studio"]:
            db_session.add(PollOption(poll_id=poll.id, text=text, votes=0))

        await db_session.commit()
        await db_session.refresh(poll, ["options"])
        return poll

    return _create_poll


@pytest_asyncio.fixture
async def spotlight_factory(db_session: AsyncSession):
    """Factory for creating test spotlights."""

    async def _create_spotlight(
        name: str = "Jane Doe",
        title: str = "Session drummer",
        type: str = "artist",
        created_at: datetime | None = None,
    ) -> Spotlight:
        spotlight = Spotlight(
            name=name,
            title=title,
            type=type,
            created_at=created_at or utc_now(),
        )
        db_session.add(spotlight)
        await db_session.commit()
        return spotlight

    return _create_spotlight


@pytest_asyncio.fixture
async def feedback_factory(db_session: AsyncSession):
    """Factory for creating test feedback."""

    async def _create_feedback(
        content: str = "The calendar view is great",
        status: str | None = "open",
        created_at: datetime | None = None,
    ) -> Feedback:
        feedback = Feedback(content=content, status=status, created_at=created_at or utc_now())
        db_session.add(feedback)
        await db_session.commit()
        return feedback

    return _create_feedback


@pytest_asyncio.fixture
async def project_factory(db_session: AsyncSession):
    """Factory for creating test projects, optionally with tasks."""

    async def _create_project(
        name: str | None = "Summer EP",
        description: str | None = None,
        tasks: list[str] | None = None,
    ) -> Project:
        project = Project(name=name, description=description, status="active")
        db_session.add(project)
        await db_session.flush()

        for title in tasks or []:
            db_session.add(Task(title=title, project_id=project.id, status="todo"))

        await db_session.commit()
        return project

    return _create_project


@pytest_asyncio.fixture
async def digest_run_factory(db_session: AsyncSession):
    """Factory for recording past digest runs."""

    async def _create_run(sent_at: datetime, recipient_count: int = 1) -> DigestRun:
        run = DigestRun(
            sent_at=sent_at,
            recipient_count=recipient_count,
            content_summary=(
                "0 projects, 0 tasks, 0 events, 0 polls, 0 spotlights, 0 feedback items"
            ),
            emails_sent=recipient_count,
            emails_failed=0,
        )
        db_session.add(run)
        await db_session.commit()
        return run

    return _create_run

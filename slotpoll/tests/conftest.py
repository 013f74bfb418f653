import pytest_asyncio
import uuid
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SKIP_CONFIG_VALIDATION", "true")
os.environ.setdefault("BREVO_API_KEY", "")

os.environ["RATE_LIMIT_PER_MINUTE"] = "1000"
os.environ["POLL_MAX_EVENTS"] = "20"

import sys
from pathlib import Path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from slotpoll.main import app
from slotpoll.database import get_db
from slotpoll.models.base import Base
from slotpoll.core.background_tasks import NotificationDispatcher, notification_tasks
from slotpoll.services.mail_service import MailService, mail_service
from slotpoll.services.poll_service import PollService

TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


class RecordingEmailSender:
    """Stands in for the Brevo client and keeps every mail it is asked to send."""

    def __init__(self):
        self.sent: list[dict[str, str | None]] = []

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        to_name: str | None = None,
    ) -> bool:
        self.sent.append(
            {
                "to_email": to_email,
                "to_name": to_name,
                "subject": subject,
                "html_content": html_content,
            }
        )
        return True

    def to(self, address: str) -> list[dict[str, str | None]]:
        return [mail for mail in self.sent if mail["to_email"] == address]


@pytest_asyncio.fixture
async def async_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

        db_file = "./test.db"
        if os.path.exists(db_file):
            os.remove(db_file)

    except Exception as e:
        print(f"Test cleanup warning: {e}")


@pytest_asyncio.fixture
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    async_session_maker = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def outbox(monkeypatch) -> AsyncGenerator[RecordingEmailSender, None]:
    sender = RecordingEmailSender()
    monkeypatch.setattr(mail_service, "email_service", sender)

    yield sender

    await notification_tasks.flush()


@pytest_asyncio.fixture
async def async_client(
    async_session: AsyncSession, outbox: RecordingEmailSender
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield async_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest_asyncio.fixture
async def dispatcher() -> AsyncGenerator[NotificationDispatcher, None]:
    tasks = NotificationDispatcher()

    yield tasks

    await tasks.flush()


@pytest_asyncio.fixture
async def poll_service(
    async_session: AsyncSession,
    sender: RecordingEmailSender,
    dispatcher: NotificationDispatcher,
) -> PollService:
    return PollService(async_session, MailService(sender), dispatcher)


def _unique_token(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def _slot(day: int, hour: int, hours: int = 1) -> dict[str, str]:
    start = datetime(2030, 5, 1, hour, 0, tzinfo=timezone.utc) + timedelta(days=day)
    return {
        "start": start.isoformat(),
        "end": (start + timedelta(hours=hours)).isoformat(),
    }


@pytest_asyncio.fixture
async def admin_token() -> str:
    return _unique_token("admin")


@pytest_asyncio.fixture
async def participant_token() -> str:
    return _unique_token("participant")


@pytest_asyncio.fixture
async def test_poll_data(admin_token: str):
    unique_id = str(uuid.uuid4())[:8]
    return {
        "title": f"Team dinner {unique_id}",
        "description": "Find a date for the team dinner",
        "location": "Town hall",
        "settings": {"allowMaybe": True},
        "admin_token": admin_token,
        "admin_mail": "admin@example.com",
    }


@pytest_asyncio.fixture
async def test_events_data():
    return [
        {**_slot(0, 18), "note": "after work"},
        _slot(1, 18),
        _slot(2, 12, hours=2),
    ]

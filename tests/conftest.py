"""Pytest configuration and fixtures."""

import sys
from datetime import date
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.core.config import Settings  # noqa: E402
from app.core.database import Base, get_db  # noqa: E402
from app.models import Citizen, UserRole  # noqa: E402
from app.services.document_workflow import DocumentWorkflowService  # noqa: E402
from app.services.notification_service import NotificationDispatcher  # noqa: E402
from app.services.profile_service import refresh_profile_flag  # noqa: E402
from app.services.template_renderer import template_renderer  # noqa: E402
from app.services.template_store import TemplateStore  # noqa: E402
from app.utils.file_handling import GeneratedDocumentStorage  # noqa: E402


class RecordingSmsGateway:
    """Collects messages instead of sending them."""

    def __init__(self):
        self.messages = []

    async def send_sms(self, phone_number: str, message: str) -> bool:
        self.messages.append((phone_number, message))
        return True


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at temporary storage, ignoring any .env file."""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        TEMPLATES_DIR=tmp_path / "templates",
        GENERATED_DIR=tmp_path / "generated",
        SMS_PROVIDER="mock",
        SMS_TIMEOUT_SECONDS=1.0,
        LOG_LEVEL="DEBUG",
    )


@pytest_asyncio.fixture
async def engine(test_settings):
    """Isolated SQLite database with all tables created."""
    engine = create_async_engine(test_settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return RecordingSmsGateway()


@pytest_asyncio.fixture
async def dispatcher(gateway, test_settings):
    dispatcher = NotificationDispatcher(gateway, timeout=test_settings.SMS_TIMEOUT_SECONDS)
    yield dispatcher
    await dispatcher.close()


@pytest.fixture
def workflow(test_settings, dispatcher):
    return DocumentWorkflowService(
        template_store=TemplateStore(test_settings.TEMPLATES_DIR),
        storage=GeneratedDocumentStorage(test_settings.GENERATED_DIR),
        dispatcher=dispatcher,
        renderer=template_renderer,
        settings=test_settings,
    )


@pytest.fixture
def make_citizen(db):
    """Factory for committed citizens; complete profile unless overridden."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.CITIZEN, **fields) -> Citizen:
        counter["n"] += 1
        values = {
            "email": f"user{counter['n']}@example.com",
            "first_name": "Juan",
            "middle_name": "Santos",
            "last_name": "Dela Cruz",
            "date_of_birth": date(1990, 1, 15),
            "phone_number": "09171234567",
            "street_number": "123",
            "street_name": "Rizal Street",
        }
        values.update(fields)
        citizen = Citizen(role=role, **values)
        refresh_profile_flag(citizen)
        db.add(citizen)
        await db.commit()
        return citizen

    return _make


@pytest_asyncio.fixture
async def app(test_settings, gateway, session_factory):
    """Application wired to the test database and recording gateway."""
    from main import create_app

    application = create_app(test_settings, gateway=gateway)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                if session.new or session.dirty or session.deleted:
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    yield application
    await application.state.dispatcher.close()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

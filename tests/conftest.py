import os

# Must be set before app.config is imported.
os.environ["ADMIN_SECRET_KEY"] = "test-secret"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_bootstrap.db")

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from app.database import Base, build_engine, build_sessionmaker, get_db
from app.main import app as fastapi_app
from app.services.balance import AtomicAdjuster
from app.services.events import DeliveryOutcome, EventBus, StatusChanged
from tests.helpers import ADMIN_HEADERS


@pytest.fixture
async def engine(tmp_path):
    # File-backed so that separate sessions see each other's commits.
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class RecordingEmail:
    """Stands in for EmailNotifier on the event bus."""

    def __init__(self) -> None:
        self.events: list[StatusChanged] = []
        self.fail_with: Exception | None = None

    async def __call__(self, event: StatusChanged) -> DeliveryOutcome:
        self.events.append(event)
        if self.fail_with is not None:
            raise self.fail_with
        return DeliveryOutcome(handler="email", success=True)


@pytest.fixture
def email_recorder():
    return RecordingEmail()


@pytest.fixture
def event_bus(email_recorder):
    bus = EventBus()
    bus.subscribe(StatusChanged, email_recorder, name="email")
    return bus


@pytest.fixture
async def client(session_factory, event_bus) -> AsyncIterator[AsyncClient]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.state.adjuster = AtomicAdjuster()
    fastapi_app.state.event_bus = event_bus
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://testserver", headers=ADMIN_HEADERS) as c:
        yield c
    fastapi_app.dependency_overrides.clear()

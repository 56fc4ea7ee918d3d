"""
Pytest configuration and shared fixtures for the storefront service tests.

Provides an in-memory SQLite session, a fresh app (and broadcaster) per test,
an httpx client bound to that app, and recording sinks for broadcaster tests.
"""
import pytest
import pytest_asyncio
from typing import AsyncGenerator, Callable

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, enable_sqlite_pragmas, get_db
from db_models import Order
from domain.enums import OrderStatus
from services.broadcaster import EventBroadcaster


# ── Fake sinks ───────────────────────────────────────────────────────


class RecordingSink:
    """In-memory sink that records delivered events."""

    def __init__(self, fail_with: Exception | None = None):
        self.events: list[dict] = []
        self.closed = False
        self.fail_with = fail_with
        self._callbacks: list[Callable[[], None]] = []

    def deliver(self, event: dict) -> None:
        if self.closed:
            raise RuntimeError("closed")
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)

    def on_close(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for cb in self._callbacks:
            cb()


@pytest.fixture
def sink_factory() -> Callable[..., RecordingSink]:
    return RecordingSink


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster()


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_pragmas(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


# ── App / HTTP Fixtures ──────────────────────────────────────────────


@pytest.fixture
def app(db_session: AsyncSession):
    """Fresh application (with its own broadcaster) bound to the test DB session."""
    from main import create_app

    application = create_app()

    async def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture
async def sample_order(db_session: AsyncSession) -> Order:
    """A pending NETS order with no provider reference yet."""
    order = Order(
        total_amount=21.4,
        payment_method="nets",
        payment_status=OrderStatus.PENDING.value,
        customer_name="Test Buyer",
        customer_email="buyer@example.com",
    )
    db_session.add(order)
    await db_session.commit()
    await db_session.refresh(order)
    return order

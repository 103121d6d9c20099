import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from app.db.base import Base
from app.db.session import get_db
from app.ledger.ledger import OrderLedger
from app.main import app
from app.services.broadcast import manager


DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    engine = create_async_engine(DATABASE_URL, echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with AsyncSessionLocal() as session:
        yield session


class FakeSocket:
    """Stands in for a connected dashboard on the server side."""

    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


@pytest.fixture
def push_socket():
    socket = FakeSocket()
    manager.connections.append(socket)
    yield socket
    manager.disconnect(socket)


@pytest.fixture
async def api_client(engine):
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with AsyncSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float):
        self.value += seconds


class FakeStore:
    """Order store double: confirms status updates, optionally failing or waiting."""

    def __init__(self, error: Exception = None, overrides: dict = None):
        self.error = error
        self.overrides = overrides or {}
        self.calls = []
        self.gate = None

    async def update_order_status(self, order_id, status):
        self.calls.append((order_id, status))
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return {"id": order_id, "status": status, **self.overrides.get(order_id, {})}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def ledger(fake_store, clock):
    return OrderLedger(store=fake_store, clock=clock)

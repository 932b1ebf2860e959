"""
Pytest fixtures for the ledger core, the test database, and the API client.

Core tests drive `Ledger` directly. API tests run the FastAPI app over an
in-memory SQLite database (aiosqlite) with the DB dependency overridden and
a freshly hydrated LedgerService per test.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ticket_ledger.main import app
from ticket_ledger.db.base import Base
from ticket_ledger.db.session import get_db
from ticket_ledger.core.security import create_access_token
from ticket_ledger.ledger import Ledger, LedgerLimits
from ticket_ledger.services.ledger_service import LedgerService

ORGANIZER = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
ALICE = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
BOB = "5FLSigC9HGRKVhB9FiEo4Y3koPsNmBmLJbpXg2mp1hXcS59Y"


class StepClock:
    """Deterministic ledger clock: one second per call."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


class RecordingTransfer:
    """Payout hook that records every transfer; can be told to fail."""

    def __init__(self):
        self.payouts: list[tuple[str, int]] = []
        self.fail = False

    def __call__(self, recipient: str, amount: int) -> None:
        if self.fail:
            raise ConnectionError("payment rail unavailable")
        self.payouts.append((recipient, amount))

    def total_to(self, recipient: str) -> int:
        return sum(amount for who, amount in self.payouts if who == recipient)


# --- Core fixtures ---

@pytest.fixture
def transfer() -> RecordingTransfer:
    return RecordingTransfer()


@pytest.fixture
def ledger(transfer: RecordingTransfer) -> Ledger:
    return Ledger(transfer=transfer, clock=StepClock())


@pytest.fixture
def concert(ledger: Ledger) -> int:
    """Event with price=50 and two tickets."""
    return ledger.create_event(ORGANIZER, "Polkadot Decoded", 50, 2, "QmConcertMetadata")


# --- Database / API fixtures ---

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def ledger_service(db_session: AsyncSession) -> LedgerService:
    return await LedgerService.start(db_session, LedgerLimits(), persistence_enabled=True)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, ledger_service: LedgerService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test session and a fresh ledger."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.ledger_service = ledger_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers_for(account: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': account})}"}


@pytest.fixture
def organizer_headers() -> dict:
    return auth_headers_for(ORGANIZER)


@pytest.fixture
def alice_headers() -> dict:
    return auth_headers_for(ALICE)


@pytest.fixture
def bob_headers() -> dict:
    return auth_headers_for(BOB)


@pytest_asyncio.fixture
async def test_event(client: AsyncClient, organizer_headers: dict) -> dict:
    """Event with price=50 and two tickets, created through the API."""
    response = await client.post(
        "/api/v1/events/",
        json={
            "name": "Polkadot Decoded",
            "price": 50,
            "total_tickets": 2,
            "metadata_cid": "QmConcertMetadata",
        },
        headers=organizer_headers,
    )
    assert response.status_code == 201
    return response.json()

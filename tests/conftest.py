"""Shared fixtures: an in-memory database per test and an API client bound to it."""
import os
import sys
from datetime import date, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Must be set before the settings object is built
os.environ.setdefault("TESTING", "true")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event as sa_event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import eventspark.models  # noqa: E402,F401
from eventspark import crud  # noqa: E402
from eventspark.api import deps  # noqa: E402
from eventspark.core.database_manager import Base  # noqa: E402
from eventspark.core.security import create_access_token  # noqa: E402
from eventspark.main import app  # noqa: E402
from eventspark.models.event import Event  # noqa: E402
from eventspark.models.user import User, UserRole  # noqa: E402
from eventspark.schemas.event import EventCreate  # noqa: E402
from eventspark.schemas.user import UserCreate  # noqa: E402
from eventspark.services.notifications import Notifier  # noqa: E402
from eventspark.services.payment import PaymentGateway, PaymentOutcome  # noqa: E402

DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeGateway(PaymentGateway):
    """Approves or declines every charge, recording what it was asked."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.charges: List[Tuple[int, Decimal, str]] = []

    async def charge(
        self, booking_id: int, amount: Decimal, payment_method: str
    ) -> PaymentOutcome:
        self.charges.append((booking_id, amount, payment_method))
        if self.succeed:
            return PaymentOutcome(success=True, transaction_id=f"tx-{booking_id}")
        return PaymentOutcome(success=False, reason="declined")


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[Tuple[str, List[Any]]] = []

    def _send(self, task_name: str, args: List[Any]) -> bool:
        if self.fail:
            raise RuntimeError("broker unreachable")
        self.sent.append((task_name, args))
        return True


@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(DATABASE_URL, poolclass=StaticPool)

    @sa_event.listens_for(engine.sync_engine, "connect")  # type: ignore[misc]
    def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_maker() as session:
        yield session


async def make_user(
    db: AsyncSession,
    role: UserRole = UserRole.USER,
    email: Optional[str] = None,
    password: str = "secret123",
) -> User:
    return await crud.user.create(
        db,
        obj_in=UserCreate(
            name=f"{role.value.title()} Person",
            email=email or f"{role.value}@example.com",
            password=password,
            role=role,
        ),
    )


def event_payload(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": "Jazz Night",
        "description": "Live quartet in the small hall",
        "date": date.today() + timedelta(days=30),
        "time": time(20, 0),
        "venue": "Blue Hall",
        "category": "music",
        "total_seats": 100,
        "ticket_price": Decimal("50.00"),
        "dynamic_pricing_enabled": False,
        "pricing_rules": [],
    }
    payload.update(overrides)
    return payload


async def make_event(db: AsyncSession, organizer: User, **overrides: Any) -> Event:
    return await crud.event.create_event(
        db, event=EventCreate(**event_payload(**overrides)), organizer_id=organizer.id
    )


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user.id, additional_claims={"role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def attendee(db: AsyncSession) -> User:
    return await make_user(db, UserRole.USER)


@pytest_asyncio.fixture
async def organizer(db: AsyncSession) -> User:
    return await make_user(db, UserRole.ORGANIZER)


@pytest_asyncio.fixture
async def admin(db: AsyncSession) -> User:
    return await make_user(db, UserRole.ADMIN)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(
    db: AsyncSession, gateway: FakeGateway, notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

"""
Test configuration and fixtures.

Provides:
- SQLite database (override with DATABASE_URL) with all rows cleared after each test
- Users, orders and ActorSession helpers
- A controllable clock for the services' ``_now_utc`` hooks
- A recording notification dispatcher
- HTTPX AsyncClient with session cookie + CSRF header
"""
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

_DB_DIR = tempfile.mkdtemp(prefix="order-collab-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DB_DIR}/test.db")
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PUBLIC_BASE_URL", "https://portal.example.com")

from app.main import app
from app.core.deps import COOKIE_NAME, get_notification_dispatcher
from app.core.security import create_session_token
from app.db.base import Base
from app.db.models import Order, User
from app.db.session import SessionLocal, engine
from app.schemas.auth import ActorSession


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _clear_tables() -> None:
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Plain session on the test database.

    Services commit, and notification workers and API requests use their own
    sessions, so isolation is by clearing every table afterwards rather than
    by a wrapping transaction.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        _clear_tables()


# =============================================================================
# Clock
# =============================================================================

CLOCK_MODULES = (
    "app.services.thread_repository",
    "app.services.order_admin_service",
    "app.services.read_receipt_service",
    "app.services.inbox_service",
)


@dataclass
class FrozenClock:
    now: datetime

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock(monkeypatch) -> FrozenClock:
    """Freeze service time; advance with clock.advance(seconds=...)."""
    frozen = FrozenClock(now=datetime(2026, 3, 2, 15, 30, 0, tzinfo=timezone.utc))
    for module in CLOCK_MODULES:
        monkeypatch.setattr(f"{module}._now_utc", frozen)
    return frozen


# =============================================================================
# Users and Orders
# =============================================================================

_counter = {"n": 0}


def make_user(db: Session, *, is_admin: bool = False, email: str | None = None) -> User:
    _counter["n"] += 1
    user = User(
        email=email or f"user{_counter['n']}@example.com",
        display_name=f"User {_counter['n']}",
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_order(
    db: Session,
    customer: User | None,
    *,
    status: str = "pending",
    assigned_admin: User | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    **fields,
) -> Order:
    created_at = created_at or datetime.now(timezone.utc)
    values = {
        "name": "Jamie Rivera",
        "email": customer.email if customer else "guest@example.com",
        "business_name": "Rivera Bakery",
        "project_type": "website",
        "budget": "5k-10k",
        "timeline": "1-2 months",
        "description": "New storefront site",
    }
    values.update(fields)
    order = Order(
        customer_id=customer.id if customer else None,
        status=status,
        assigned_admin_id=assigned_admin.id if assigned_admin else None,
        created_at=created_at,
        updated_at=updated_at or created_at,
        **values,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def as_actor(user: User) -> ActorSession:
    return ActorSession(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_admin=user.is_admin,
    )


@pytest.fixture
def customer(db: Session) -> User:
    return make_user(db)


@pytest.fixture
def other_customer(db: Session) -> User:
    return make_user(db)


@pytest.fixture
def admin(db: Session) -> User:
    return make_user(db, is_admin=True)


@pytest.fixture
def other_admin(db: Session) -> User:
    return make_user(db, is_admin=True)


@pytest.fixture
def order(db: Session, customer: User, admin: User) -> Order:
    return make_order(db, customer, assigned_admin=admin)


# =============================================================================
# Notifications
# =============================================================================

@dataclass
class RecordingDispatcher:
    """Stands in for NotificationDispatcher; keeps submitted notices."""
    notices: list = field(default_factory=list)
    accept: bool = True

    def submit(self, notice) -> bool:
        self.notices.append(notice)
        return self.accept


@pytest.fixture
def dispatcher() -> Generator[RecordingDispatcher, None, None]:
    recorder = RecordingDispatcher()
    app.dependency_overrides[get_notification_dispatcher] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_notification_dispatcher, None)


# =============================================================================
# Client Fixtures
# =============================================================================

def session_cookie(user: User) -> dict[str, str]:
    return {COOKIE_NAME: create_session_token(user.id, user.token_version)}


@asynccontextmanager
async def client_for(user: User | None, *, csrf: bool = True) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient authenticated as ``user`` (anonymous when None)."""
    headers = {"X-Requested-With": "XMLHttpRequest"} if csrf else {}
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=session_cookie(user) if user else {},
        headers=headers,
    ) as c:
        yield c


@pytest.fixture
async def customer_client(customer: User, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(customer) as c:
        yield c


@pytest.fixture
async def admin_client(admin: User, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(admin) as c:
        yield c

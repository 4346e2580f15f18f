import uuid
from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.dependencies import get_current_user, get_db
from app.core.exceptions import PersistenceError
from app.models.base import Base
from app.models.payment_model import Payment, PaymentStatus
from app.models.plan_model import SubscriptionPlan
from app.models.subscription_model import Subscription, SubscriptionStatus
from app.modules.notification.publisher import event_publisher
from app.schemas.token_schema import TokenData

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


# --- In-memory stand-ins for the repositories ---

class InMemoryRepository:
    """Keeps entities in a dict; `failing_saves` holds 1-based save call numbers that raise."""

    def __init__(self):
        self.items = {}
        self.save_calls = 0
        self.failing_saves = set()
        self.fail_all_saves = False

    async def get(self, db, id):
        return self.items.get(id)

    async def save(self, db, obj):
        self.save_calls += 1
        if self.fail_all_saves or self.save_calls in self.failing_saves:
            raise PersistenceError(f"Failed to save {obj.id}")
        self.items[obj.id] = obj
        return obj

    async def delete(self, db, id):
        return self.items.pop(id, None)

    def add(self, obj):
        self.items[obj.id] = obj
        return obj


class InMemoryPaymentRepository(InMemoryRepository):
    async def list_by_user(self, db, user_id):
        return [p for p in self.items.values() if p.user_id == user_id]


class InMemorySubscriptionRepository(InMemoryRepository):
    async def list_by_user(self, db, user_id):
        return [s for s in self.items.values() if s.user_id == user_id]

    async def get_for_user(self, db, subscription_id, user_id):
        subscription = self.items.get(subscription_id)
        if subscription and subscription.user_id == user_id:
            return subscription
        return None

    async def get_by_user_and_status(self, db, user_id, status):
        for subscription in self.items.values():
            if subscription.user_id == user_id and subscription.status == status:
                return subscription
        return None

    async def exists_for_plan(self, db, user_id, plan_id, status):
        return any(
            s.user_id == user_id and s.plan_id == plan_id and s.status == status
            for s in self.items.values()
        )

    async def list_due_for_renewal_ids(self, db, now):
        return [
            s.id for s in self.items.values()
            if s.status == SubscriptionStatus.ACTIVE and s.next_billing_date and s.next_billing_date < now
        ]

    async def list_trials_ending_ids(self, db, now):
        return [
            s.id for s in self.items.values()
            if s.status == SubscriptionStatus.TRIAL and s.trial_end_date and s.trial_end_date < now
        ]


class InMemoryPlanRepository(InMemoryRepository):
    async def get_by_code(self, db, code):
        for plan in self.items.values():
            if plan.code == code.upper():
                return plan
        return None

    async def exists_by_code(self, db, code):
        return await self.get_by_code(db, code) is not None

    async def list_all(self, db):
        return list(self.items.values())

    async def list_active(self, db):
        return sorted((p for p in self.items.values() if p.is_active), key=lambda p: p.sort_order or 0)


class RecordingPublisher:
    def __init__(self):
        self.messages = []

    def publish(self, channel, key, payload):
        self.messages.append((channel, key, payload))
        return True

    def on(self, channel):
        return [payload for ch, _, payload in self.messages if ch == channel]


class RecordingTransport:
    def __init__(self):
        self.sent = []
        self.closed = False

    async def __call__(self, channel, key, payload):
        self.sent.append((channel, key, payload))

    async def close(self):
        self.closed = True


# --- Fixtures ---

@pytest.fixture
def mock_db_session():
    return AsyncMock(spec=AsyncSession)


@pytest_asyncio.fixture
async def sqlite_sessionmaker():
    """Real async sessions on an in-memory SQLite database, one per test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_sessionmaker):
    async with sqlite_sessionmaker() as session:
        yield session


@pytest.fixture
def reject_subscription_writes():
    """Makes every flush carrying a modified Subscription fail, as a lost database connection would."""
    def _before_flush(sync_session, flush_context, instances):
        if any(isinstance(obj, Subscription) for obj in sync_session.dirty):
            raise SQLAlchemyError("subscription write rejected")

    def _install(session: AsyncSession):
        event.listen(session.sync_session, "before_flush", _before_flush)

    return _install


@pytest.fixture(autouse=True)
def override_get_db(mock_db_session):
    async def _override():
        yield mock_db_session
    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def stub_event_transport(monkeypatch):
    """Keeps the app-wide publisher away from Redis."""
    transport = RecordingTransport()
    monkeypatch.setattr(event_publisher, "transport", transport)
    return transport


@pytest.fixture
def payment_repo():
    return InMemoryPaymentRepository()


@pytest.fixture
def subscription_repo():
    return InMemorySubscriptionRepository()


@pytest.fixture
def plan_repo():
    return InMemoryPlanRepository()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def make_subscription():
    def _make(**overrides):
        values = dict(
            id=str(uuid.uuid4()),
            user_id=USER_ID,
            plan_id="plan-pro",
            plan_name="Pro",
            status=SubscriptionStatus.PENDING,
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 2, 1),
            next_billing_date=datetime(2024, 2, 1),
            price=Decimal("50.00"),
            currency="USD",
            billing_cycle="MONTHLY",
            trial_days=0,
            auto_renew=True,
        )
        values.update(overrides)
        return Subscription(**values)
    return _make


@pytest.fixture
def make_payment():
    def _make(**overrides):
        values = dict(
            id=str(uuid.uuid4()),
            user_id=USER_ID,
            subscription_id="sub-1",
            amount=Decimal("50.00"),
            status=PaymentStatus.SUCCEEDED,
            transaction_id="txn_0123456789abcdef",
            created_at=datetime(2024, 1, 1, 12, 0),
        )
        values.update(overrides)
        return Payment(**values)
    return _make


@pytest.fixture
def make_plan():
    def _make(**overrides):
        values = dict(
            id=str(uuid.uuid4()),
            code="PRO",
            name="Pro",
            description="Pro plan",
            price=Decimal("50.00"),
            currency="USD",
            billing_cycle="MONTHLY",
            trial_days=0,
            is_active=True,
            max_users=5,
            max_projects=10,
            api_rate_limit=1000,
            sort_order=0,
            created_at=datetime(2024, 1, 1),
        )
        values.update(overrides)
        return SubscriptionPlan(**values)
    return _make


@pytest.fixture
def authenticated_client():
    """Provide an authenticated client for testing (as regular user)."""
    app.dependency_overrides[get_current_user] = lambda: TokenData(sub=USER_ID, role="user", name="Test User")
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def admin_client():
    """Provide an authenticated client as plan administrator."""
    app.dependency_overrides[get_current_user] = lambda: TokenData(sub="admin-1", role="admin", name="Admin User")
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def anonymous_client():
    with TestClient(app) as client:
        yield client

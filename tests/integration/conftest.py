import asyncio
import json
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import loyalty.domain  # noqa: F401  registers every table on SQLModel.metadata
from config import ApplicationConfig
from loyalty.app.services.order_gateway import (
    CouponPage,
    CouponRecord,
    OrderGateway,
    OrderPage,
    OrderRecord,
)
from loyalty.app.services.payment_gateway import PaymentGateway, PaymentIntentHandle, PaymentNotification
from loyalty.domain.errors import UpstreamUnavailable, ValidationError
from loyalty.domain.payment import PaymentStatus
from loyalty.depends import (
    get_config,
    get_notification_service,
    get_order_gateway,
    get_payment_gateway,
    get_session,
)


class IntegrationConfig(ApplicationConfig):
    DB_CREATE_TABLES = False
    SYNC_ENABLED = False
    SYNC_RUN_IN_API = False
    CORS_ORIGINS: list = []
    UPSTREAM_MAX_ATTEMPTS = 2
    UPSTREAM_BACKOFF_SECONDS = 0.0
    REGISTRATION_WELFARE_AMOUNT = 0
    REFERRER_REQUIRES_PAID_TIER = True
    SYNC_ORDER_PAGE_SIZE = 2
    SYNC_COUPON_PAGE_SIZE = 2


class FakeOrderGateway(OrderGateway):
    """In-memory point-of-sale platform"""

    def __init__(self):
        self.orders: List[dict] = []
        self.coupons: List[dict] = []
        self.minted: List[tuple] = []
        self.mint_failures = 0
        self.fail_order_pages = set()
        self.order_page_gate: Optional[asyncio.Event] = None
        self.order_page_entered = asyncio.Event()

    async def login(self) -> str:
        return "token"

    async def list_orders(self, start, end, page, page_size) -> OrderPage:
        if self.order_page_gate is not None:
            self.order_page_entered.set()
            await self.order_page_gate.wait()
        if page in self.fail_order_pages:
            raise UpstreamUnavailable(f"orders page {page} timed out")
        return self._page(self.orders, OrderRecord, page, page_size, OrderPage)

    async def list_discount_codes(self, used_filter, page, page_size) -> CouponPage:
        return self._page(self.coupons, CouponRecord, page, page_size, CouponPage)

    async def mint_discount_code(self, code, amount, expire_months) -> Optional[str]:
        if self.mint_failures:
            self.mint_failures -= 1
            raise UpstreamUnavailable("mint endpoint down")
        self.minted.append((code, amount, expire_months))
        return f"ext-{code}"

    def _page(self, items, model, page, page_size, page_cls):
        total_pages = (len(items) + page_size - 1) // page_size
        chunk = items[(page - 1) * page_size:page * page_size]
        return page_cls(records=[model.model_validate(item) for item in chunk], total_pages=total_pages)


class FakePaymentGateway(PaymentGateway):
    """In-memory payment platform; the signature "valid" passes verification"""

    def __init__(self):
        self.statuses: Dict[str, PaymentStatus] = {}
        self.created: List[tuple] = []
        self.retrieve_calls = 0

    async def create_payment_intent(self, amount, metadata, description=None) -> PaymentIntentHandle:
        reference = f"pi_test_{len(self.created) + 1}"
        self.created.append((reference, amount, metadata))
        self.statuses[reference] = PaymentStatus.PENDING
        return PaymentIntentHandle(
            reference=reference, client_secret=f"{reference}_secret", upstream_status="requires_payment_method"
        )

    async def retrieve_status(self, reference) -> PaymentStatus:
        self.retrieve_calls += 1
        return self.statuses.get(reference, PaymentStatus.PENDING)

    def verify_notification(self, payload, signature) -> Optional[PaymentNotification]:
        if signature != "valid":
            raise ValidationError("Invalid webhook signature", code="INVALID_WEBHOOK_SIGNATURE")
        event = json.loads(payload)
        if event["type"] == "invoice.paid":
            return PaymentNotification(
                event_id=event["id"],
                event_type=event["type"],
                reference=event["reference"],
                status=PaymentStatus.SUCCEEDED,
                upstream_status="paid",
                subscription_reference=event["subscription"],
                card_reference=event.get("monthly_card_reference"),
            )
        if event["type"] != "payment_intent.succeeded":
            return None
        return PaymentNotification(
            event_id=event["id"],
            event_type=event["type"],
            reference=event["reference"],
            status=PaymentStatus.SUCCEEDED,
            upstream_status="succeeded",
        )


class RecordingNotifier:
    def __init__(self):
        self.alerts: List[tuple] = []

    async def send_alert(self, alert_type, message, context) -> bool:
        self.alerts.append((alert_type, message, context))
        return True


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite so separate sessions use separate connections"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'loyalty_test.db'}", echo=False, future=True
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def order_gateway():
    return FakeOrderGateway()


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def config():
    return IntegrationConfig


@pytest_asyncio.fixture
async def client(session_factory, order_gateway, payment_gateway, notifier, config):
    """Create test client; every request gets its own session"""
    from loyalty.api.app import create_app

    app = create_app(config)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_order_gateway] = lambda: order_gateway
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_notification_service] = lambda: notifier
    app.dependency_overrides[get_config] = lambda: config

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

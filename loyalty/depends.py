from functools import lru_cache

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from loyalty.adapter.factory import create_order_gateway, create_payment_gateway
from loyalty.adapter.services.notification_service import create_notification_service
from loyalty.app.services.notification_service import NotificationService
from loyalty.app.services.order_gateway import OrderGateway
from loyalty.app.services.payment_gateway import PaymentGateway

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_config():
    return ApplicationConfig


@lru_cache
def get_order_gateway() -> OrderGateway:
    return create_order_gateway(ApplicationConfig)


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return create_payment_gateway(ApplicationConfig)


@lru_cache
def get_notification_service() -> NotificationService:
    return create_notification_service(ApplicationConfig.OPERATIONS_NOTIFICATION_WEBHOOK)

from .unit_of_work import UnitOfWork
from .notification_service import NotificationService
from .ledger_engine import LedgerEngine
from .code_minter import CodeMinter
from .retry import RetryPolicy, call_with_retry
from .order_gateway import OrderGateway
from .payment_gateway import PaymentGateway

__all__ = [
    "UnitOfWork",
    "NotificationService",
    "LedgerEngine",
    "CodeMinter",
    "RetryPolicy",
    "call_with_retry",
    "OrderGateway",
    "PaymentGateway",
]

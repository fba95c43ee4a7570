from .base import BaseModel, utcnow
from .account import Account, Tier
from .ledger_transaction import LedgerTransaction, TransactionKind
from .discount_code import DiscountCode, CodeReservation, CodeType, CodeStatus
from .payment import RechargeRecord, MembershipPurchase, MonthlyCard, MonthlyCardPlan, PaymentStatus
from .external_order import ExternalOrder
from .sync_state import SyncCursor, SyncLease, SyncMode, SyncState

__all__ = [
    "BaseModel",
    "utcnow",
    "Account",
    "Tier",
    "LedgerTransaction",
    "TransactionKind",
    "DiscountCode",
    "CodeReservation",
    "CodeType",
    "CodeStatus",
    "RechargeRecord",
    "MembershipPurchase",
    "MonthlyCard",
    "MonthlyCardPlan",
    "PaymentStatus",
    "ExternalOrder",
    "SyncCursor",
    "SyncLease",
    "SyncMode",
    "SyncState",
]

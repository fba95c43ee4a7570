from .account_repository import AccountRepository
from .ledger_transaction_repository import LedgerTransactionRepository
from .discount_code_repository import DiscountCodeRepository
from .payment_repository import RechargeRecordRepository, MembershipPurchaseRepository
from .external_order_repository import ExternalOrderRepository
from .sync_state_repository import SyncStateRepository

__all__ = [
    "AccountRepository",
    "LedgerTransactionRepository",
    "DiscountCodeRepository",
    "RechargeRecordRepository",
    "MembershipPurchaseRepository",
    "ExternalOrderRepository",
    "SyncStateRepository",
]

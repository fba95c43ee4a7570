from .account_repository import SqlAlchemyAccountRepository
from .ledger_transaction_repository import SqlAlchemyLedgerTransactionRepository
from .discount_code_repository import SqlAlchemyDiscountCodeRepository
from .payment_repository import (
    SqlAlchemyRechargeRecordRepository,
    SqlAlchemyMembershipPurchaseRepository,
    SqlAlchemyMonthlyCardRepository,
)
from .external_order_repository import SqlAlchemyExternalOrderRepository
from .sync_state_repository import SqlAlchemySyncStateRepository

__all__ = [
    "SqlAlchemyAccountRepository",
    "SqlAlchemyLedgerTransactionRepository",
    "SqlAlchemyDiscountCodeRepository",
    "SqlAlchemyRechargeRecordRepository",
    "SqlAlchemyMembershipPurchaseRepository",
    "SqlAlchemyMonthlyCardRepository",
    "SqlAlchemyExternalOrderRepository",
    "SqlAlchemySyncStateRepository",
]

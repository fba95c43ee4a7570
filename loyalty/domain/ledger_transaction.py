"""Ledger Transaction Domain Entity

Immutable append-only record of every balance/stamps mutation. The ledger is
the source of truth; Account.balance and Account.stamps are a projection that
must match a replay of these rows.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Tuple
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, ForeignKey, String
from loyalty.domain.base import BaseModel, BigIntPK, utcnow


class TransactionKind(str, Enum):
    """Ledger transaction kinds"""
    EARN = "earn"        # Recharge, purchase reward, cashback, reversal
    REDEEM = "redeem"    # Stamps or balance spent on a discount code


class LedgerTransaction(BaseModel, table=True):
    """
    Ledger Transaction - immutable audit trail of account mutations

    Domain Rules:
    - Rows are never updated or deleted
    - balance_after/stamps_after are the account state right after this row
    - idempotency_key is unique when present (prevents double-crediting)
    - related_order_id / related_discount_code explain what caused the mutation
    """

    __tablename__ = "ledger_transactions"
    __table_args__ = (
        Index("ix_ledger_transactions_account_id_id", "account_id", "id"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntPK, primary_key=True, autoincrement=True),
    )

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False),
    )

    kind: TransactionKind

    balance_delta: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    stamps_delta: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    balance_after: int = Field(sa_column=Column(BigInteger, nullable=False))
    stamps_after: int = Field(sa_column=Column(BigInteger, nullable=False))

    related_order_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, nullable=True, index=True),
    )

    related_discount_code: Optional[str] = Field(
        default=None,
        sa_column=Column(String(16), nullable=True),
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), unique=True, nullable=True),
    )

    description: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=utcnow)


def replay(transactions: Iterable[LedgerTransaction]) -> Tuple[int, int, Optional[int]]:
    """
    Rebuild balance and stamps from zero

    Args:
        transactions: Transactions of a single account in creation order

    Returns:
        (balance, stamps, first_broken_transaction_id) where the last item is
        the id of the first row whose *_after snapshot disagrees with the replay
    """
    balance = 0
    stamps = 0
    broken_at = None
    for txn in transactions:
        balance += txn.balance_delta
        stamps += txn.stamps_delta
        if broken_at is None and (txn.balance_after != balance or txn.stamps_after != stamps):
            broken_at = txn.id
    return balance, stamps, broken_at

"""Payment Record Domain Entities

RechargeRecord, MembershipPurchase and MonthlyCard track one upstream payment
each. The upstream payment reference is the natural idempotency key: exactly
one record exists per reference and its effect is applied exactly once.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, ForeignKey, String, CheckConstraint
from loyalty.domain.account import Tier
from loyalty.domain.base import BaseModel, BigIntPK, utcnow


class PaymentStatus(str, Enum):
    """pending -> succeeded | failed | canceled (all terminal)"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self != PaymentStatus.PENDING


class RechargeRecord(BaseModel, table=True):
    """
    Recharge (balance top-up)

    Domain Rules:
    - payment_reference is globally unique
    - total_amount = amount + bonus_amount, credited as a single earn transaction
    - ledger_transaction_id is set once the credit is applied
    """

    __tablename__ = "recharge_records"
    __table_args__ = (
        CheckConstraint("amount > 0", name="recharge_amount_positive"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntPK, primary_key=True, autoincrement=True),
    )

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False, index=True),
    )

    payment_reference: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )

    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    bonus_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    total_amount: int = Field(sa_column=Column(BigInteger, nullable=False))

    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    upstream_status: Optional[str] = Field(default=None, max_length=64)

    ledger_transaction_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("ledger_transactions.id"), nullable=True),
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MembershipPurchase(BaseModel, table=True):
    """
    Membership upgrade purchase

    Domain Rules:
    - payment_reference is globally unique
    - On success the account tier becomes target_tier for one year
    """

    __tablename__ = "membership_purchases"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntPK, primary_key=True, autoincrement=True),
    )

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False, index=True),
    )

    payment_reference: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )

    target_tier: Tier
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))

    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    upstream_status: Optional[str] = Field(default=None, max_length=64)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MonthlyCardPlan(str, Enum):
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"


class MonthlyCard(BaseModel, table=True):
    """
    Monthly card purchase

    Domain Rules:
    - payment_reference is globally unique
    - On success the card runs for 30 days from confirmation
    - An active card earns one welfare code per calendar day
      (last_coupon_granted_on records the last day served)
    - A subscription renewal extends ends_at by 30 days once per renewal
      reference
    """

    __tablename__ = "monthly_cards"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntPK, primary_key=True, autoincrement=True),
    )

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False, index=True),
    )

    payment_reference: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )

    plan_type: MonthlyCardPlan = Field(default=MonthlyCardPlan.ONE_TIME)
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))

    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    upstream_status: Optional[str] = Field(default=None, max_length=64)

    subscription_reference: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), unique=True, nullable=True),
    )
    last_renewal_reference: Optional[str] = Field(default=None, max_length=255)

    starts_at: Optional[datetime] = Field(default=None)
    ends_at: Optional[datetime] = Field(default=None, index=True)
    last_coupon_granted_on: Optional[date] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if self.status != PaymentStatus.SUCCEEDED or self.ends_at is None:
            return False
        return self.ends_at >= (now or utcnow())

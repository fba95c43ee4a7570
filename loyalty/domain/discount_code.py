"""Discount Code Domain Entity

Codes minted on the point-of-sale platform and owned by an account.
Lifecycle: issued -> used (terminal) or issued -> expired (time based).
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, ForeignKey, String, CheckConstraint
from loyalty.domain.base import BaseModel, BigIntPK, utcnow


class CodeType(str, Enum):
    SHAREHOLDER_REWARD = "shareholder_reward"
    SUPER_SHAREHOLDER_REWARD = "super_shareholder_reward"
    SWEETS_CREDITS_REWARD = "sweets_credits_reward"


class CodeStatus(str, Enum):
    ISSUED = "issued"
    USED = "used"
    EXPIRED = "expired"


class DiscountCode(BaseModel, table=True):
    """
    Discount Code

    Domain Rules:
    - code is unique and never reused
    - discount_amount never changes after issuance
    - expires_at is at most 3 months after issuance
    - ledger_transaction_id links the debit that paid for the code (None for welfare codes)
    """

    __tablename__ = "discount_codes"
    __table_args__ = (
        CheckConstraint("discount_amount > 0", name="discount_amount_positive"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntPK, primary_key=True, autoincrement=True),
    )

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False, index=True),
    )

    code: str = Field(
        sa_column=Column(String(16), unique=True, index=True, nullable=False),
    )

    discount_amount: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Discount in cents",
    )

    code_type: CodeType

    is_used: bool = Field(default=False)
    used_at: Optional[datetime] = Field(default=None)
    expires_at: datetime

    external_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))

    ledger_transaction_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("ledger_transactions.id"), nullable=True, index=True),
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def status(self, now: Optional[datetime] = None) -> CodeStatus:
        if self.is_used:
            return CodeStatus.USED
        if (now or utcnow()) > self.expires_at:
            return CodeStatus.EXPIRED
        return CodeStatus.ISSUED


class CodeReservation(BaseModel, table=True):
    """
    Claim on a code string, taken before the code is minted upstream

    The primary key makes the claim exclusive: two redemptions can never mint
    the same code. A reservation outlives a failed mint so the string is
    never handed out again.
    """

    __tablename__ = "discount_code_reservations"

    code: str = Field(sa_column=Column(String(16), primary_key=True))

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False, index=True),
    )

    reserved_at: datetime = Field(default_factory=utcnow)

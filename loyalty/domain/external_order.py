"""External Order Domain Entity

Local projection of an order synced from the point-of-sale platform. The
external id is the primary key, so an order can be ingested (and rewarded)
only once.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, ForeignKey, String
from loyalty.domain.base import BaseModel, utcnow


class ExternalOrder(BaseModel, table=True):
    __tablename__ = "external_orders"

    external_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )

    account_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("accounts.id"), nullable=False, index=True),
    )

    member_code: Optional[str] = Field(default=None, sa_column=Column(String(10), nullable=True))
    price: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    product_name: str = Field(default="", max_length=255)
    product_no: Optional[str] = Field(default=None, max_length=64)
    order_status: int = Field(default=0)
    pay_type: Optional[int] = Field(default=None)

    stamps_earned: int = Field(default=0)
    cashback_earned: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))

    external_created_at: datetime
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

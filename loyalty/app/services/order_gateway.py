"""Order/Coupon Gateway Interface

Contract with the point-of-sale platform. Response models keep only the
fields this service consumes; unknown fields are ignored and optional fields
may be absent, so upstream schema drift does not break parsing.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class OrderRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    id: int
    create_date: int = Field(alias="createDate", description="Epoch milliseconds")
    member_code: Optional[str] = Field(default=None, alias="memberCode")
    price: Optional[float] = None
    product_name: str = Field(default="", alias="productName")
    product_no: Optional[str] = Field(default=None, alias="productNo")
    status: int = 0
    pay_type: Optional[int] = Field(default=None, alias="payType")

    @property
    def price_cents(self) -> int:
        return int(round((self.price or 0.0) * 100))


class CouponRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    id: int
    code: str
    is_use: str = Field(default="0", alias="isUse")
    use_date: Optional[int] = Field(default=None, alias="useDate", description="Epoch milliseconds")
    discount: Optional[float] = None

    @property
    def is_used(self) -> Optional[bool]:
        """None when the platform reports an unknown value"""
        return {"0": False, "1": True}.get(str(self.is_use))


class OrderPage(BaseModel):
    records: List[OrderRecord]
    total_pages: int
    skipped_records: int = 0


class CouponPage(BaseModel):
    records: List[CouponRecord]
    total_pages: int
    skipped_records: int = 0


class OrderGateway(ABC):
    """
    Point-of-sale platform client

    Session handling is internal: an expired session surfaces as
    UpstreamUnavailable and the next call logs in again.
    """

    @abstractmethod
    async def login(self) -> str:
        """Authenticate and return the session token"""
        pass

    @abstractmethod
    async def list_orders(self, start: datetime, end: datetime, page: int, page_size: int) -> OrderPage:
        pass

    @abstractmethod
    async def list_discount_codes(self, used_filter: Optional[bool], page: int, page_size: int) -> CouponPage:
        pass

    @abstractmethod
    async def mint_discount_code(self, code: str, amount: int, expire_months: int) -> Optional[str]:
        """
        Create a code on the platform

        Args:
            code: 6-digit code string
            amount: Discount in cents
            expire_months: 1-3

        Returns:
            The platform identifier of the code, when it reports one
        """
        pass

    async def close(self) -> None:
        pass

"""Discount code use cases"""

from .redeem_with_stamps import RedeemWithStamps
from .redeem_with_balance import RedeemWithBalance
from .issue_welfare_code import IssueWelfareCode
from .reverse_redemption import ReverseRedemption
from .list_discount_codes import ListDiscountCodes
from .dtos import (
    RedeemCommandDTO,
    IssueWelfareCommandDTO,
    ReverseRedemptionCommandDTO,
    DiscountCodeDTO,
    RedemptionResponseDTO,
    ReversalResponseDTO,
    ListDiscountCodesResponseDTO,
)

__all__ = [
    "RedeemWithStamps",
    "RedeemWithBalance",
    "IssueWelfareCode",
    "ReverseRedemption",
    "ListDiscountCodes",
    "RedeemCommandDTO",
    "IssueWelfareCommandDTO",
    "ReverseRedemptionCommandDTO",
    "DiscountCodeDTO",
    "RedemptionResponseDTO",
    "ReversalResponseDTO",
    "ListDiscountCodesResponseDTO",
]

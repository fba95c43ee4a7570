"""RedeemWithStamps Use Case

Exchanges stamps for a fixed-value discount code.
"""

from typing import Tuple

from loyalty.domain.discount_code import CodeType
from loyalty.domain.errors import ValidationError
from loyalty.domain.rewards import STAMPS_REWARD_TABLE, stamps_cost
from .redemption import Redemption


class RedeemWithStamps(Redemption):
    """
    Use Case: Redeem stamps for a discount code

    Business Rules:
    1. Only amounts from the reward table are redeemable ($5, $10, $20, $25)
    2. Cost is 200 stamps per dollar of discount
    3. expire_months is 1-3
    4. The stamps debit commits before the code is minted
    """

    code_type = CodeType.SWEETS_CREDITS_REWARD
    failure_code = "REDEEM_WITH_STAMPS_FAILED"

    def cost(self, discount_amount: int) -> Tuple[int, int]:
        stamps = stamps_cost(discount_amount)
        if stamps is None:
            raise ValidationError(
                f"Discount amount {discount_amount} is not redeemable with stamps",
                code="INVALID_DISCOUNT_AMOUNT",
                details={"allowed": sorted(STAMPS_REWARD_TABLE)},
            )
        return 0, stamps

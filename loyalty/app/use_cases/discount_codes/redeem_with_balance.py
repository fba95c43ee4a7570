"""RedeemWithBalance Use Case

Turns stored balance into a discount code of the same value.
"""

from typing import Tuple

from loyalty.domain.discount_code import CodeType
from loyalty.domain.errors import ValidationError
from .redemption import Redemption


class RedeemWithBalance(Redemption):
    """Whole-dollar amounts only; debits balance one to one"""

    code_type = CodeType.SWEETS_CREDITS_REWARD
    failure_code = "REDEEM_WITH_BALANCE_FAILED"

    def cost(self, discount_amount: int) -> Tuple[int, int]:
        if discount_amount <= 0 or discount_amount % 100 != 0:
            raise ValidationError(
                f"Discount amount {discount_amount} must be a positive whole-dollar amount",
                code="INVALID_DISCOUNT_AMOUNT",
            )
        return discount_amount, 0

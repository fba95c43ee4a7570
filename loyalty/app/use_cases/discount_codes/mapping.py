from loyalty.domain.base import utcnow
from loyalty.domain.discount_code import DiscountCode
from .dtos import DiscountCodeDTO


def to_discount_code_dto(discount_code: DiscountCode) -> DiscountCodeDTO:
    code_type = discount_code.code_type
    return DiscountCodeDTO(
        id=discount_code.id,
        account_id=discount_code.account_id,
        code=discount_code.code,
        discount_amount=discount_code.discount_amount,
        code_type=code_type.value if hasattr(code_type, "value") else code_type,
        status=discount_code.status(utcnow()).value,
        expires_at=discount_code.expires_at,
        used_at=discount_code.used_at,
        external_id=discount_code.external_id,
        ledger_transaction_id=discount_code.ledger_transaction_id,
        created_at=discount_code.created_at,
    )

from loyalty.domain.base import utcnow
from loyalty.domain.payment import MonthlyCard
from .dtos import MonthlyCardDTO


def to_monthly_card_dto(card: MonthlyCard) -> MonthlyCardDTO:
    return MonthlyCardDTO(
        id=card.id,
        account_id=card.account_id,
        payment_reference=card.payment_reference,
        plan_type=card.plan_type.value if hasattr(card.plan_type, "value") else card.plan_type,
        amount=card.amount,
        status=card.status.value if hasattr(card.status, "value") else card.status,
        active=card.is_active(utcnow()),
        subscription_reference=card.subscription_reference,
        starts_at=card.starts_at,
        ends_at=card.ends_at,
        last_coupon_granted_on=card.last_coupon_granted_on,
        created_at=card.created_at,
    )

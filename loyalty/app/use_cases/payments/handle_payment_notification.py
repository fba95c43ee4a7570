"""HandlePaymentNotification Use Case

Verifies a payment platform webhook and routes payment outcomes to
ConfirmPayment and paid subscription invoices to RenewMonthlyCard.
"""

import logging
from typing import Optional

from libs.result import Result, Return
from loyalty.app.services.payment_gateway import PaymentGateway, PaymentNotification
from loyalty.app.use_cases.errors import to_error
from loyalty.domain.errors import ValidationError
from .confirm_payment import ConfirmPayment
from .renew_monthly_card import RenewMonthlyCard
from .dtos import NotificationResultDTO

logger = logging.getLogger(__name__)


class HandlePaymentNotification:
    """Unsupported event types and unknown references are acknowledged, not failed"""

    def __init__(
        self,
        payment_gateway: PaymentGateway,
        confirm_payment: ConfirmPayment,
        card_renewer: Optional[RenewMonthlyCard] = None,
    ):
        self.payment_gateway = payment_gateway
        self.confirm_payment = confirm_payment
        self.card_renewer = card_renewer

    async def execute(self, payload: bytes, signature: str) -> Result[NotificationResultDTO]:
        try:
            notification = self.payment_gateway.verify_notification(payload, signature)
        except ValidationError as e:
            logger.warning(f"Rejected payment notification: {e.message}")
            return Return.err(to_error(e))

        if notification is None:
            return Return.ok(NotificationResultDTO(handled=False))

        if notification.is_renewal:
            return await self._renew(notification)

        result = await self.confirm_payment.execute(
            notification.reference,
            delivered_status=notification.status,
            upstream_status=notification.upstream_status,
        )
        if result.is_err():
            if result.error.code == "PAYMENT_NOT_FOUND":
                logger.warning(
                    f"Notification {notification.event_id} references unknown payment "
                    f"{notification.reference}"
                )
                return Return.ok(
                    NotificationResultDTO(
                        handled=False,
                        event_id=notification.event_id,
                        event_type=notification.event_type,
                    )
                )
            return result

        return Return.ok(
            NotificationResultDTO(
                handled=True,
                event_id=notification.event_id,
                event_type=notification.event_type,
                payment=result.value,
            )
        )

    async def _renew(self, notification: PaymentNotification) -> Result[NotificationResultDTO]:
        if self.card_renewer is None:
            return Return.ok(
                NotificationResultDTO(
                    handled=False, event_id=notification.event_id, event_type=notification.event_type
                )
            )

        result = await self.card_renewer.execute(
            notification.subscription_reference,
            notification.reference,
            card_reference=notification.card_reference,
        )
        if result.is_err():
            if result.error.code in ("MONTHLY_CARD_NOT_FOUND", "MONTHLY_CARD_NOT_SUBSCRIPTION"):
                logger.warning(
                    f"Invoice {notification.reference} for subscription "
                    f"{notification.subscription_reference} not applied: {result.error.code}"
                )
                return Return.ok(
                    NotificationResultDTO(
                        handled=False, event_id=notification.event_id, event_type=notification.event_type
                    )
                )
            return result

        return Return.ok(
            NotificationResultDTO(
                handled=True,
                event_id=notification.event_id,
                event_type=notification.event_type,
                monthly_card=result.value,
            )
        )

"""Stripe payment gateway

Blocking Stripe SDK calls run in a worker thread. Webhooks are verified with
the endpoint signing secret before anything is trusted.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import stripe

from loyalty.app.services.payment_gateway import PaymentGateway, PaymentIntentHandle, PaymentNotification
from loyalty.domain.errors import UpstreamUnavailable, ValidationError
from loyalty.domain.payment import PaymentStatus

logger = logging.getLogger(__name__)

# PaymentIntent.status -> local status; anything else is still in flight
INTENT_STATUS_MAP = {
    "succeeded": PaymentStatus.SUCCEEDED,
    "canceled": PaymentStatus.CANCELED,
}

EVENT_STATUS_MAP = {
    "payment_intent.succeeded": PaymentStatus.SUCCEEDED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "payment_intent.canceled": PaymentStatus.CANCELED,
}

# Paid subscription invoices renew monthly cards
INVOICE_PAID_EVENTS = ("invoice.paid", "invoice.payment_succeeded")


def invoice_subscription(invoice: Any) -> Optional[str]:
    subscription = invoice.get("subscription")
    if subscription:
        return subscription if isinstance(subscription, str) else subscription.get("id")
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return details.get("subscription")


def map_intent_status(upstream_status: Optional[str]) -> PaymentStatus:
    return INTENT_STATUS_MAP.get(upstream_status or "", PaymentStatus.PENDING)


class StripePaymentGateway(PaymentGateway):

    def __init__(self, secret_key: str, webhook_secret: str, currency: str = "usd"):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    async def _run(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(func, *args, **kwargs)

    async def create_payment_intent(
        self,
        amount: int,
        metadata: Dict[str, str],
        description: Optional[str] = None,
    ) -> PaymentIntentHandle:
        try:
            intent = await self._run(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=self.currency,
                metadata=metadata,
                description=description,
                automatic_payment_methods={"enabled": True},
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe PaymentIntent for {amount}: {e}")
            raise UpstreamUnavailable(f"Stripe PaymentIntent creation failed: {e}") from e

        logger.info(f"Created Stripe PaymentIntent {intent.id} for {amount} {self.currency}")
        return PaymentIntentHandle(
            reference=intent.id,
            client_secret=intent.client_secret,
            upstream_status=intent.status,
        )

    async def retrieve_status(self, reference: str) -> PaymentStatus:
        try:
            intent = await self._run(stripe.PaymentIntent.retrieve, reference, api_key=self.secret_key)
        except stripe.StripeError as e:
            raise UpstreamUnavailable(f"Stripe PaymentIntent {reference} lookup failed: {e}") from e

        status = map_intent_status(intent.status)
        if status == PaymentStatus.PENDING and intent.status == "requires_payment_method" and intent.get(
            "last_payment_error"
        ):
            status = PaymentStatus.FAILED
        return status

    def verify_notification(self, payload: bytes, signature: str) -> Optional[PaymentNotification]:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload", code="INVALID_WEBHOOK_PAYLOAD") from e
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature", code="INVALID_WEBHOOK_SIGNATURE") from e

        if event["type"] in INVOICE_PAID_EVENTS:
            return self._invoice_notification(event)

        status = EVENT_STATUS_MAP.get(event["type"])
        if status is None:
            logger.info(f"Ignoring Stripe event {event['id']} of type {event['type']}")
            return None

        intent = event["data"]["object"]
        return PaymentNotification(
            event_id=event["id"],
            event_type=event["type"],
            reference=intent["id"],
            status=status,
            upstream_status=intent.get("status"),
        )

    def _invoice_notification(self, event: Any) -> Optional[PaymentNotification]:
        invoice = event["data"]["object"]
        subscription = invoice_subscription(invoice)
        if not subscription:
            logger.info(f"Ignoring Stripe invoice {invoice['id']} without a subscription")
            return None

        metadata = invoice.get("metadata") or {}
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        card_reference = metadata.get("monthly_card_reference") or (details.get("metadata") or {}).get(
            "monthly_card_reference"
        )
        return PaymentNotification(
            event_id=event["id"],
            event_type=event["type"],
            reference=invoice["id"],
            status=PaymentStatus.SUCCEEDED,
            upstream_status=invoice.get("status"),
            subscription_reference=subscription,
            card_reference=card_reference,
        )

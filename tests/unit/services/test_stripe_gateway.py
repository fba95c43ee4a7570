"""Unit tests for StripePaymentGateway

Stripe SDK calls are patched; no network access.
"""

import pytest
import stripe
from unittest.mock import patch

from loyalty.adapter.services.stripe_gateway import StripePaymentGateway, map_intent_status
from loyalty.domain.errors import UpstreamUnavailable, ValidationError
from loyalty.domain.payment import PaymentStatus


class Intent(dict):
    """Dict with attribute access, like a StripeObject"""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e


@pytest.fixture
def gateway():
    return StripePaymentGateway("sk_test_123", "whsec_123")


@pytest.mark.parametrize(
    "upstream, expected",
    [
        ("succeeded", PaymentStatus.SUCCEEDED),
        ("canceled", PaymentStatus.CANCELED),
        ("processing", PaymentStatus.PENDING),
        ("requires_action", PaymentStatus.PENDING),
        (None, PaymentStatus.PENDING),
    ],
)
def test_map_intent_status(upstream, expected):
    assert map_intent_status(upstream) == expected


@pytest.mark.asyncio
class TestStripePaymentGateway:

    @patch("loyalty.adapter.services.stripe_gateway.stripe.PaymentIntent.create")
    async def test_create_payment_intent(self, mock_create, gateway):
        mock_create.return_value = Intent(id="pi_1", client_secret="pi_1_secret", status="requires_payment_method")

        handle = await gateway.create_payment_intent(20000, {"kind": "recharge", "account_id": "1"})

        assert handle.reference == "pi_1"
        assert handle.client_secret == "pi_1_secret"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["amount"] == 20000
        assert kwargs["currency"] == "usd"
        assert kwargs["api_key"] == "sk_test_123"

    @patch("loyalty.adapter.services.stripe_gateway.stripe.PaymentIntent.create")
    async def test_create_failure_is_upstream_unavailable(self, mock_create, gateway):
        mock_create.side_effect = stripe.APIConnectionError("network down")

        with pytest.raises(UpstreamUnavailable):
            await gateway.create_payment_intent(20000, {})

    @patch("loyalty.adapter.services.stripe_gateway.stripe.PaymentIntent.retrieve")
    async def test_retrieve_failed_payment(self, mock_retrieve, gateway):
        mock_retrieve.return_value = Intent(
            id="pi_1", status="requires_payment_method", last_payment_error={"code": "card_declined"}
        )

        assert await gateway.retrieve_status("pi_1") == PaymentStatus.FAILED

    @patch("loyalty.adapter.services.stripe_gateway.stripe.PaymentIntent.retrieve")
    async def test_retrieve_succeeded(self, mock_retrieve, gateway):
        mock_retrieve.return_value = Intent(id="pi_1", status="succeeded")

        assert await gateway.retrieve_status("pi_1") == PaymentStatus.SUCCEEDED


class TestVerifyNotification:

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_succeeded_event(self, mock_construct, gateway):
        mock_construct.return_value = {
            "id": "evt_1",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_1", "status": "succeeded"}},
        }

        notification = gateway.verify_notification(b"{}", "t=1,v1=abc")

        assert notification.reference == "pi_1"
        assert notification.status == PaymentStatus.SUCCEEDED
        mock_construct.assert_called_once_with(b"{}", "t=1,v1=abc", "whsec_123")

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_ignored_event_type(self, mock_construct, gateway):
        mock_construct.return_value = {"id": "evt_2", "type": "charge.refunded", "data": {"object": {}}}

        assert gateway.verify_notification(b"{}", "sig") is None

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_paid_invoice_is_a_renewal(self, mock_construct, gateway):
        """
        Given a paid subscription invoice in the current API shape
        When it is verified
        Then the invoice id, subscription id and card reference are carried over
        """
        mock_construct.return_value = {
            "id": "evt_3",
            "type": "invoice.paid",
            "data": {
                "object": {
                    "id": "in_1",
                    "status": "paid",
                    "parent": {
                        "subscription_details": {
                            "subscription": "sub_1",
                            "metadata": {"monthly_card_reference": "pi_card"},
                        }
                    },
                }
            },
        }

        notification = gateway.verify_notification(b"{}", "sig")

        assert notification.is_renewal
        assert notification.reference == "in_1"
        assert notification.subscription_reference == "sub_1"
        assert notification.card_reference == "pi_card"
        assert notification.status == PaymentStatus.SUCCEEDED

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_legacy_invoice_subscription_field(self, mock_construct, gateway):
        mock_construct.return_value = {
            "id": "evt_4",
            "type": "invoice.payment_succeeded",
            "data": {"object": {"id": "in_2", "subscription": "sub_2", "metadata": {}}},
        }

        notification = gateway.verify_notification(b"{}", "sig")

        assert notification.subscription_reference == "sub_2"
        assert notification.card_reference is None

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_one_off_invoice_is_ignored(self, mock_construct, gateway):
        mock_construct.return_value = {"id": "evt_5", "type": "invoice.paid", "data": {"object": {"id": "in_3"}}}

        assert gateway.verify_notification(b"{}", "sig") is None

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_bad_signature(self, mock_construct, gateway):
        mock_construct.side_effect = stripe.SignatureVerificationError("bad", "sig")

        with pytest.raises(ValidationError) as exc_info:
            gateway.verify_notification(b"{}", "sig")

        assert exc_info.value.code == "INVALID_WEBHOOK_SIGNATURE"

    @patch("loyalty.adapter.services.stripe_gateway.stripe.Webhook.construct_event")
    def test_bad_payload(self, mock_construct, gateway):
        mock_construct.side_effect = ValueError("not json")

        with pytest.raises(ValidationError) as exc_info:
            gateway.verify_notification(b"nope", "sig")

        assert exc_info.value.code == "INVALID_WEBHOOK_PAYLOAD"

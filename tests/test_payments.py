"""Tests for the Stripe checkout gateway (SDK mocked)."""
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import stripe

from interview_coach.billing.payments import StripeCheckoutGateway
from interview_coach.billing.pricing import resolve_price
from interview_coach.errors import PaymentUnavailable
from interview_coach.types import CoachingSession, SessionKind, SessionStatus

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _session(kind: SessionKind = SessionKind.FULL_MOCK) -> CoachingSession:
    return CoachingSession(
        id="sess-1",
        owner_email="candidate@example.com",
        kind=kind,
        status=SessionStatus.PENDING,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def gateway() -> StripeCheckoutGateway:
    return StripeCheckoutGateway(
        secret_key="sk_test_123",
        success_url="https://app.test/done?type={session_kind}&id={session_id}&cs={{CHECKOUT_SESSION_ID}}",
        cancel_url="https://app.test/?canceled=true",
    )


class TestStripeCheckoutGateway:
    async def test_missing_key_is_unavailable(self):
        gateway = StripeCheckoutGateway(None, "https://a.test", "https://b.test")
        with pytest.raises(PaymentUnavailable):
            await gateway.create_checkout(_session(), resolve_price(2900))

    @patch("interview_coach.billing.payments.stripe")
    async def test_plain_payment(self, mock_stripe, gateway):
        mock_stripe.StripeError = stripe.StripeError
        mock_stripe.checkout.Session.create = MagicMock(
            return_value={"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"}
        )
        ref = await gateway.create_checkout(_session(), resolve_price(2900))

        assert ref.reference == "cs_1"
        assert ref.url == "https://checkout.stripe.test/cs_1"
        mock_stripe.Coupon.create.assert_not_called()
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["customer_email"] == "candidate@example.com"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 2900
        assert kwargs["success_url"] == "https://app.test/done?type=full_mock&id=sess-1&cs={CHECKOUT_SESSION_ID}"
        assert kwargs["metadata"]["discount_source"] == "none"
        assert "discounts" not in kwargs

    @patch("interview_coach.billing.payments.stripe")
    async def test_discount_becomes_one_time_coupon(self, mock_stripe, gateway):
        mock_stripe.StripeError = stripe.StripeError
        mock_stripe.Coupon.create = MagicMock(return_value={"id": "co_1"})
        mock_stripe.checkout.Session.create = MagicMock(
            return_value={"id": "cs_2", "url": "https://checkout.stripe.test/cs_2"}
        )
        pricing = resolve_price(2900, 1000, 40, promo_code_id="code-1")
        await gateway.create_checkout(_session(), pricing)

        coupon_kwargs = mock_stripe.Coupon.create.call_args.kwargs
        assert coupon_kwargs["amount_off"] == 1160
        assert coupon_kwargs["duration"] == "once"
        assert coupon_kwargs["max_redemptions"] == 1
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["discounts"] == [{"coupon": "co_1"}]
        assert kwargs["metadata"]["discount_code_id"] == "code-1"

    @patch("interview_coach.billing.payments.stripe")
    async def test_subscription_mode_for_recurring_product(self, mock_stripe, gateway):
        mock_stripe.StripeError = stripe.StripeError
        mock_stripe.checkout.Session.create = MagicMock(
            return_value={"id": "cs_3", "url": "https://checkout.stripe.test/cs_3"}
        )
        await gateway.create_checkout(_session(SessionKind.PRO), resolve_price(7900))
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["line_items"][0]["price_data"]["recurring"] == {"interval": "month"}

    @patch("interview_coach.billing.payments.stripe")
    async def test_stripe_error_is_unavailable(self, mock_stripe, gateway):
        mock_stripe.StripeError = stripe.StripeError
        mock_stripe.checkout.Session.create = MagicMock(side_effect=stripe.StripeError("card network down"))
        with pytest.raises(PaymentUnavailable):
            await gateway.create_checkout(_session(), resolve_price(2900))

    @patch("interview_coach.billing.payments.stripe")
    async def test_missing_url_is_unavailable(self, mock_stripe, gateway):
        mock_stripe.StripeError = stripe.StripeError
        mock_stripe.checkout.Session.create = MagicMock(return_value={"id": "cs_4", "url": None})
        with pytest.raises(PaymentUnavailable):
            await gateway.create_checkout(_session(), resolve_price(2900))

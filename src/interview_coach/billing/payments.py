"""Payment-processor boundary.

The core creates a pending session and a price; collecting the payment is
delegated to the processor's hosted checkout. Only the reference the
processor hands back is kept for later reconciliation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import stripe
from starlette.concurrency import run_in_threadpool

from interview_coach.billing.catalog import get_product
from interview_coach.billing.pricing import PricingBreakdown
from interview_coach.errors import PaymentUnavailable
from interview_coach.types import CoachingSession, DiscountSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutReference:
    reference: str
    url: str


class PaymentGateway(Protocol):
    async def create_checkout(
        self, session: CoachingSession, pricing: PricingBreakdown
    ) -> CheckoutReference: ...


class StripeCheckoutGateway:
    """Hosted Stripe Checkout with a one-time coupon for the winning discount."""

    def __init__(
        self,
        secret_key: str | None,
        success_url: str,
        cancel_url: str,
        currency: str = "usd",
    ) -> None:
        self._secret_key = secret_key
        self._success_url = success_url
        self._cancel_url = cancel_url
        self._currency = currency

    def _line_item(self, session: CoachingSession, pricing: PricingBreakdown) -> dict[str, Any]:
        product = get_product(session.kind)
        price_data: dict[str, Any] = {
            "currency": self._currency,
            "product_data": {"name": product.name},
            "unit_amount": pricing.base_cents,
        }
        if product.recurring:
            price_data["recurring"] = {"interval": "month"}
        return {"price_data": price_data, "quantity": 1}

    def _metadata(self, session: CoachingSession, pricing: PricingBreakdown) -> dict[str, str]:
        metadata = {
            "session_id": session.id,
            "session_type": session.kind.value,
            "discount_source": pricing.winner.value,
        }
        if pricing.winner == DiscountSource.UPGRADE_CREDIT and pricing.upgraded_from_session_id:
            metadata["upgraded_from_session"] = pricing.upgraded_from_session_id
            metadata["upgrade_credit_applied"] = f"{pricing.discount_cents / 100:.2f}"
        if pricing.winner == DiscountSource.PROMO_CODE and pricing.promo_code_id:
            metadata["discount_code_id"] = pricing.promo_code_id
        return metadata

    async def create_checkout(
        self, session: CoachingSession, pricing: PricingBreakdown
    ) -> CheckoutReference:
        if not self._secret_key:
            raise PaymentUnavailable("STRIPE_SECRET_KEY is not set")

        product = get_product(session.kind)
        checkout_kwargs: dict[str, Any] = {
            "mode": "subscription" if product.recurring else "payment",
            "customer_email": session.owner_email,
            "line_items": [self._line_item(session, pricing)],
            "success_url": self._success_url.format(
                session_kind=session.kind.value, session_id=session.id
            ),
            "cancel_url": self._cancel_url,
            "metadata": self._metadata(session, pricing),
            "api_key": self._secret_key,
        }

        try:
            if pricing.discount_cents > 0:
                coupon = await run_in_threadpool(
                    lambda: stripe.Coupon.create(
                        amount_off=pricing.discount_cents,
                        currency=self._currency,
                        duration="once",
                        max_redemptions=1,
                        name=f"{pricing.winner.value.replace('_', ' ').title()} for {product.name}",
                        api_key=self._secret_key,
                    )
                )
                checkout_kwargs["discounts"] = [{"coupon": coupon["id"]}]
                logger.info(
                    "Created coupon %s: %d cents off %s", coupon["id"], pricing.discount_cents, session.id
                )
            checkout = await run_in_threadpool(lambda: stripe.checkout.Session.create(**checkout_kwargs))
        except stripe.StripeError as exc:
            raise PaymentUnavailable("Failed to create Stripe checkout session") from exc

        url = checkout.get("url")
        if not isinstance(url, str) or not url:
            raise PaymentUnavailable("Stripe session missing checkout url")
        return CheckoutReference(reference=checkout["id"], url=url)

"""Checkout billing: catalog, promo-code ledger, price resolution, processor boundary."""

from interview_coach.billing.catalog import CATALOG, TIER_ORDER, Product, get_product, parse_kind
from interview_coach.billing.discounts import DiscountLedger, normalize_code
from interview_coach.billing.payments import CheckoutReference, PaymentGateway, StripeCheckoutGateway
from interview_coach.billing.pricing import PricingBreakdown, PricingResolver, resolve_price

__all__ = [
    "CATALOG",
    "CheckoutReference",
    "DiscountLedger",
    "PaymentGateway",
    "PricingBreakdown",
    "PricingResolver",
    "Product",
    "StripeCheckoutGateway",
    "TIER_ORDER",
    "get_product",
    "normalize_code",
    "parse_kind",
    "resolve_price",
]

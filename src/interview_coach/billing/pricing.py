"""Checkout price resolution.

Two discounts can apply to a purchase: an upgrade credit earned by a recent
lower-tier purchase, and a promo code the buyer entered. They never stack;
the larger one wins and a tie goes to the promo code. All amounts are
integer cents.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from interview_coach.billing.catalog import get_product, tier_rank
from interview_coach.types import CoachingSession, DiscountSource, SessionKind


@dataclass(frozen=True)
class PricingBreakdown:
    base_cents: int
    upgrade_credit_cents: int
    promo_discount_cents: int
    promo_percent: int | None
    winner: DiscountSource
    discount_cents: int
    final_cents: int
    upgraded_from_session_id: str | None = None
    promo_code_id: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["winner"] = self.winner.value
        return data


def percent_of(base_cents: int, percent: int) -> int:
    amount = Decimal(base_cents) * Decimal(percent) / Decimal(100)
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper))


def resolve_price(
    base_cents: int,
    upgrade_credit_cents: int = 0,
    promo_percent: int | None = None,
    *,
    upgraded_from_session_id: str | None = None,
    promo_code_id: str | None = None,
) -> PricingBreakdown:
    """Pure: the same inputs always give the same breakdown."""
    base = max(base_cents, 0)
    credit = _clamp(upgrade_credit_cents, base)
    promo = _clamp(percent_of(base, promo_percent), base) if promo_percent else 0

    if promo > 0 and promo >= credit:
        winner, discount = DiscountSource.PROMO_CODE, promo
    elif credit > 0:
        winner, discount = DiscountSource.UPGRADE_CREDIT, credit
    else:
        winner, discount = DiscountSource.NONE, 0

    return PricingBreakdown(
        base_cents=base,
        upgrade_credit_cents=credit,
        promo_discount_cents=promo,
        promo_percent=promo_percent,
        winner=winner,
        discount_cents=discount,
        final_cents=base - discount,
        upgraded_from_session_id=upgraded_from_session_id if credit > 0 else None,
        promo_code_id=promo_code_id if promo > 0 else None,
    )


class PricingResolver:
    """Computes breakdowns from catalog prices and an owner's recent purchases."""

    def upgrade_credit(
        self, kind: SessionKind, recent_purchases: Iterable[CoachingSession]
    ) -> tuple[int, str | None]:
        """Credit for the most valuable lower-tier purchase; subscriptions get none."""
        if get_product(kind).recurring:
            return 0, None
        rank = tier_rank(kind)
        credit, source = 0, None
        for session in recent_purchases:
            if tier_rank(session.kind) >= rank:
                continue
            amount = get_product(session.kind).amount_cents
            if amount > credit:
                credit, source = amount, session.id
        return credit, source

    def resolve(
        self,
        kind: SessionKind,
        recent_purchases: Iterable[CoachingSession] = (),
        promo_percent: int | None = None,
        promo_code_id: str | None = None,
    ) -> PricingBreakdown:
        credit, source = self.upgrade_credit(kind, recent_purchases)
        return resolve_price(
            get_product(kind).amount_cents,
            credit,
            promo_percent,
            upgraded_from_session_id=source,
            promo_code_id=promo_code_id,
        )

"""Product tiers and their list prices (in cents)."""

from __future__ import annotations

from dataclasses import dataclass

from interview_coach.errors import InvalidRequest
from interview_coach.types import SessionKind


@dataclass(frozen=True)
class Product:
    kind: SessionKind
    name: str
    amount_cents: int
    recurring: bool = False


CATALOG: dict[SessionKind, Product] = {
    SessionKind.QUICK_PREP: Product(SessionKind.QUICK_PREP, "Quick Prep", 1200),
    SessionKind.FULL_MOCK: Product(SessionKind.FULL_MOCK, "Full Mock Interview", 2900),
    SessionKind.PREMIUM_AUDIO: Product(SessionKind.PREMIUM_AUDIO, "Premium Audio Mock", 4900),
    SessionKind.PRO: Product(SessionKind.PRO, "Pro Subscription", 7900, recurring=True),
}

# Lowest to highest
TIER_ORDER: tuple[SessionKind, ...] = (
    SessionKind.QUICK_PREP,
    SessionKind.FULL_MOCK,
    SessionKind.PREMIUM_AUDIO,
    SessionKind.PRO,
)


def parse_kind(value: str | SessionKind) -> SessionKind:
    try:
        return SessionKind(value)
    except ValueError:
        raise InvalidRequest(f"Invalid session type: {value}") from None


def get_product(kind: SessionKind) -> Product:
    return CATALOG[kind]


def tier_rank(kind: SessionKind) -> int:
    return TIER_ORDER.index(kind)

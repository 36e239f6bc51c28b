"""Promo-code validation and one-time redemption.

Checks run in a fixed order and the first failure wins:

1. code exists and is active
2. inside its activation window
3. applicable to the requested product
4. not already redeemed by this email
5. under its maximum redemption count

Steps 4 and 5 are enforced by the reservation INSERT itself: it only inserts
while the redemption count is below ``max_uses`` and does nothing on a
duplicate ``(code_id, email)``. Two concurrent requests for the last slot
cannot both succeed. A rejection writes nothing.

A reservation is spent by exactly one checkout: ``claim_reservation`` binds
it to the new session with a conditional UPDATE, and later checkouts with the
same code see ``ALREADY_REDEEMED``.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

import aiosqlite

from interview_coach.db import from_db_time, rows_to_dicts, to_db_time
from interview_coach.types import (
    DiscountCode,
    DiscountDecision,
    DiscountRejectionReason,
    SessionKind,
    normalize_email,
    utcnow,
)

logger = logging.getLogger(__name__)

REJECTION_MESSAGES: dict[DiscountRejectionReason, str] = {
    DiscountRejectionReason.CODE_NOT_FOUND: "Invalid promo code",
    DiscountRejectionReason.CODE_NOT_ACTIVE_YET: "This promo code is not yet active",
    DiscountRejectionReason.CODE_EXPIRED: "This promo code has expired",
    DiscountRejectionReason.CODE_NOT_APPLICABLE: "This promo code doesn't apply to this product",
    DiscountRejectionReason.ALREADY_REDEEMED: "You've already used this promo code",
    DiscountRejectionReason.MAX_REDEMPTIONS_REACHED: "This promo code has reached its maximum uses",
}


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _reject(reason: DiscountRejectionReason) -> DiscountDecision:
    return DiscountDecision(accepted=False, reason=reason, message=REJECTION_MESSAGES[reason])


def _accept(code: DiscountCode) -> DiscountDecision:
    return DiscountDecision(
        accepted=True,
        code_id=code.id,
        percent=code.discount_percent,
        description=code.description,
    )


def _to_code(row: dict) -> DiscountCode:
    products = json.loads(row["applicable_products"]) if row["applicable_products"] else None
    return DiscountCode(
        id=row["id"],
        code=row["code"],
        discount_percent=row["discount_percent"],
        description=row["description"],
        is_active=bool(row["is_active"]),
        valid_from=from_db_time(row["valid_from"]),
        valid_until=from_db_time(row["valid_until"]),
        applicable_products=tuple(SessionKind(p) for p in products) if products is not None else None,
        max_uses=row["max_uses"],
    )


class DiscountLedger:
    def __init__(self, db: aiosqlite.Connection, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    async def create_code(
        self,
        code: str,
        discount_percent: int,
        description: str | None = None,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        applicable_products: Iterable[SessionKind] | None = None,
        max_uses: int | None = None,
        is_active: bool = True,
    ) -> DiscountCode:
        """Operator entry point; codes are read-only to the checkout path."""
        code_id = str(uuid.uuid4())
        products = (
            json.dumps([SessionKind(p).value for p in applicable_products])
            if applicable_products is not None
            else None
        )
        await self._db.execute(
            "INSERT INTO discount_codes (id, code, discount_percent, description, is_active, "
            "valid_from, valid_until, applicable_products, max_uses, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                code_id,
                normalize_code(code),
                discount_percent,
                description,
                int(is_active),
                to_db_time(valid_from),
                to_db_time(valid_until),
                products,
                max_uses,
                to_db_time(self._clock()),
            ),
        )
        found = await self.get_code_by_id(code_id)
        assert found is not None
        return found

    async def get_code(self, code: str) -> DiscountCode | None:
        """Active code matching *code*, case-insensitively."""
        cursor = await self._db.execute(
            "SELECT * FROM discount_codes WHERE code = ? COLLATE NOCASE AND is_active = 1",
            (normalize_code(code),),
        )
        rows = rows_to_dicts(cursor, await cursor.fetchall())
        return _to_code(rows[0]) if rows else None

    async def get_code_by_id(self, code_id: str) -> DiscountCode | None:
        cursor = await self._db.execute("SELECT * FROM discount_codes WHERE id = ?", (code_id,))
        rows = rows_to_dicts(cursor, await cursor.fetchall())
        return _to_code(rows[0]) if rows else None

    async def redemption_count(self, code_id: str) -> int:
        cursor = await self._db.execute(
            "SELECT COUNT(*) FROM discount_redemptions WHERE code_id = ?", (code_id,)
        )
        return (await cursor.fetchone())[0]

    async def has_redeemed(self, code_id: str, email: str) -> bool:
        cursor = await self._db.execute(
            "SELECT 1 FROM discount_redemptions WHERE code_id = ? AND email = ?",
            (code_id, normalize_email(email)),
        )
        return await cursor.fetchone() is not None

    def _static_checks(self, code: DiscountCode | None, product_kind: SessionKind) -> DiscountRejectionReason | None:
        if code is None or not code.is_active:
            return DiscountRejectionReason.CODE_NOT_FOUND
        now = self._clock()
        if code.valid_from is not None and code.valid_from > now:
            return DiscountRejectionReason.CODE_NOT_ACTIVE_YET
        if code.valid_until is not None and code.valid_until < now:
            return DiscountRejectionReason.CODE_EXPIRED
        if code.applicable_products is not None and product_kind not in code.applicable_products:
            return DiscountRejectionReason.CODE_NOT_APPLICABLE
        return None

    async def validate_and_reserve(
        self, code: str, owner_email: str, product_kind: SessionKind
    ) -> DiscountDecision:
        """Validate *code* for *owner_email* and, if valid, record the redemption."""
        email = normalize_email(owner_email)
        found = await self.get_code(code)
        reason = self._static_checks(found, product_kind)
        if reason is not None:
            logger.info("Promo code %s rejected for %s: %s", normalize_code(code), email, reason.value)
            return _reject(reason)
        assert found is not None

        if await self.has_redeemed(found.id, email):
            logger.info("Promo code %s already used by %s", found.code, email)
            return _reject(DiscountRejectionReason.ALREADY_REDEEMED)

        cursor = await self._db.execute(
            "INSERT INTO discount_redemptions (id, code_id, email, product_kind, redeemed_at) "
            "SELECT ?, ?, ?, ?, ? "
            "WHERE (SELECT max_uses FROM discount_codes WHERE id = ?) IS NULL "
            "OR (SELECT COUNT(*) FROM discount_redemptions WHERE code_id = ?) "
            "< (SELECT max_uses FROM discount_codes WHERE id = ?) "
            "ON CONFLICT(code_id, email) DO NOTHING",
            (
                str(uuid.uuid4()),
                found.id,
                email,
                product_kind.value,
                to_db_time(self._clock()),
                found.id,
                found.id,
                found.id,
            ),
        )
        if cursor.rowcount != 1:
            # Lost a race: either this email redeemed concurrently or the last slot went.
            if await self.has_redeemed(found.id, email):
                return _reject(DiscountRejectionReason.ALREADY_REDEEMED)
            logger.info("Promo code %s max uses reached", found.code)
            return _reject(DiscountRejectionReason.MAX_REDEMPTIONS_REACHED)

        logger.info("Promo code %s reserved: %d%% off for %s", found.code, found.discount_percent, email)
        return _accept(found)

    async def _reservation(self, code_id: str, email: str) -> tuple | None:
        cursor = await self._db.execute(
            "SELECT session_id FROM discount_redemptions WHERE code_id = ? AND email = ?",
            (code_id, normalize_email(email)),
        )
        return await cursor.fetchone()

    async def get_reservation(
        self, code_id: str, owner_email: str, product_kind: SessionKind
    ) -> DiscountDecision:
        """The caller's unused redemption of *code_id*, re-checked for *product_kind*.

        Used at checkout after ``validate_and_reserve`` succeeded earlier.
        A redemption already claimed by a checkout is ``ALREADY_REDEEMED``.
        Writes nothing.
        """
        code = await self.get_code_by_id(code_id)
        reason = self._static_checks(code, product_kind)
        if reason is not None:
            return _reject(reason)
        assert code is not None
        row = await self._reservation(code.id, owner_email)
        if row is None:
            return _reject(DiscountRejectionReason.CODE_NOT_FOUND)
        if row[0] is not None:
            return _reject(DiscountRejectionReason.ALREADY_REDEEMED)
        return _accept(code)

    async def claim_reservation(self, code_id: str, owner_email: str, session_id: str) -> bool:
        """Bind the caller's redemption to the checkout *session_id*; at most one claim wins."""
        cursor = await self._db.execute(
            "UPDATE discount_redemptions SET session_id = ? "
            "WHERE code_id = ? AND email = ? AND session_id IS NULL",
            (session_id, code_id, normalize_email(owner_email)),
        )
        if cursor.rowcount != 1:
            logger.info("Promo code %s already claimed by %s", code_id, normalize_email(owner_email))
            return False
        logger.info("Promo code %s claimed for session %s", code_id, session_id)
        return True

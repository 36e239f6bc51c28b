"""Promo-code endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from interview_coach.api.auth import verify_token
from interview_coach.api.deps import get_service
from interview_coach.api.schemas import DiscountOut, DiscountValidateIn
from interview_coach.service import CoachService

router = APIRouter(prefix="/api/discounts", tags=["discounts"], dependencies=[Depends(verify_token)])


@router.post("/validate", response_model=DiscountOut)
async def validate_discount(body: DiscountValidateIn, service: CoachService = Depends(get_service)):
    """Check a code and reserve it for this email. Rejections answer 200 with ``valid: false``."""
    decision = await service.validate_discount(body.code, body.email, body.product_kind)
    if not decision.accepted:
        assert decision.reason is not None
        return DiscountOut(valid=False, error=decision.message, reason=decision.reason.value)
    return DiscountOut(
        valid=True,
        percent=decision.percent,
        description=decision.description,
        code_id=decision.code_id,
    )

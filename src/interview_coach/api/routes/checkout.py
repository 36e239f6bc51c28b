"""Checkout endpoints: price estimates and processor handoff."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from interview_coach.api.auth import verify_token
from interview_coach.api.deps import get_service
from interview_coach.api.schemas import CheckoutIn, CheckoutOut, PricingOut
from interview_coach.service import CoachService

router = APIRouter(prefix="/api/checkout", tags=["checkout"], dependencies=[Depends(verify_token)])


@router.post("/estimate", response_model=PricingOut)
async def estimate_price(body: CheckoutIn, service: CoachService = Depends(get_service)):
    """Display-only breakdown; nothing is created or reserved."""
    pricing = await service.estimate_price(body.product_kind, body.email, body.code_id)
    return PricingOut(**pricing.to_dict())


@router.post("", response_model=CheckoutOut)
async def create_checkout(body: CheckoutIn, service: CoachService = Depends(get_service)):
    result = await service.create_checkout(body.product_kind, body.email, body.code_id)
    return CheckoutOut(
        checkout_url=result.checkout_url,
        session_id=result.session.id,
        pricing=PricingOut(**result.pricing.to_dict()),
    )

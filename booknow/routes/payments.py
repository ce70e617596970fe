"""Admin payment settings endpoints"""

import logging

from fastapi import APIRouter, Depends

from ..config import CURRENCY, PAYMENT_REQUIRED, STRIPE_PUBLISHABLE_KEY
from ..encryption import mask
from ..security import get_current_admin
from ..services import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["Admin: Payments"], dependencies=[Depends(get_current_admin)])


@router.get("/status")
async def stripe_status():
    return {
        "configured": stripe_service.is_configured(),
        "publishable_key": mask(STRIPE_PUBLISHABLE_KEY) if STRIPE_PUBLISHABLE_KEY else None,
        "currency": CURRENCY,
        "payment_required": PAYMENT_REQUIRED,
    }


@router.post("/test-connection")
async def stripe_test_connection():
    """Check the secret key against the Stripe account API"""
    result = stripe_service.test_connection()
    if result.get("success"):
        logger.info(f"✅ Stripe connection test passed ({result.get('mode')} mode)")
    return result

"""
Stripe Service
PaymentIntent creation, confirmation and refunds for booking payments
"""

import json
import logging
from typing import Any, Optional

import stripe

from ..config import CURRENCY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(STRIPE_SECRET_KEY)


def _init_stripe():
    if not STRIPE_SECRET_KEY:
        raise RuntimeError("Stripe is not configured")
    stripe.api_key = STRIPE_SECRET_KEY


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def create_payment_intent(
    amount: float,
    currency: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    receipt_email: Optional[str] = None,
) -> dict:
    """
    Create a PaymentIntent for an amount in major units (e.g. dollars)

    Returns:
        {"success": True, "payment_intent_id", "client_secret", "amount", "currency"}
        or {"success": False, "error": str}
    """
    if not is_configured():
        return {"success": False, "error": "Stripe is not configured"}

    try:
        _init_stripe()
        params = {
            "amount": to_cents(amount),
            "currency": (currency or CURRENCY).lower(),
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        if receipt_email:
            params["receipt_email"] = receipt_email

        intent = stripe.PaymentIntent.create(**params)
        logger.info(f"💳 PaymentIntent created: {intent.id} ({params['amount']} {params['currency']})")
        return {
            "success": True,
            "payment_intent_id": intent.id,
            "client_secret": intent.client_secret,
            "amount": amount,
            "currency": params["currency"],
        }
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe PaymentIntent creation failed: {e}")
        return {"success": False, "error": str(e)}


def get_payment_intent(payment_intent_id: str):
    if not is_configured():
        return None
    try:
        _init_stripe()
        return stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.StripeError as e:
        logger.error(f"❌ Failed to retrieve PaymentIntent {payment_intent_id}: {e}")
        return None


def confirm_payment_intent(payment_intent_id: str) -> dict:
    """Confirm a PaymentIntent that is waiting for confirmation"""
    intent = get_payment_intent(payment_intent_id)
    if intent is None:
        return {"success": False, "error": "Payment intent not found"}

    try:
        if intent.status == "requires_confirmation":
            intent = stripe.PaymentIntent.confirm(payment_intent_id)
        return {"success": intent.status == "succeeded", "status": intent.status}
    except stripe.StripeError as e:
        logger.error(f"❌ Failed to confirm PaymentIntent {payment_intent_id}: {e}")
        return {"success": False, "error": str(e)}


def create_refund(payment_intent_id: str, amount: Optional[float] = None) -> dict:
    """Refund a PaymentIntent in full, or partially when amount is given"""
    if not is_configured():
        return {"success": False, "error": "Stripe is not configured"}

    try:
        _init_stripe()
        params = {"payment_intent": payment_intent_id, "reason": "requested_by_customer"}
        if amount is not None:
            params["amount"] = to_cents(amount)

        refund = stripe.Refund.create(**params)
        logger.info(f"💳 Refund created: {refund.id} for {payment_intent_id}")
        return {
            "success": True,
            "refund_id": refund.id,
            "status": refund.status,
            "amount": (refund.amount or 0) / 100,
        }
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe refund failed for {payment_intent_id}: {e}")
        return {"success": False, "error": str(e)}


def test_connection() -> dict:
    if not is_configured():
        return {"success": False, "message": "Stripe secret key is not set"}

    try:
        _init_stripe()
        account = stripe.Account.retrieve()
        mode = "test" if STRIPE_SECRET_KEY.startswith("sk_test") else "live"
        return {"success": True, "message": "Connected to Stripe", "account_id": account.id, "mode": mode}
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe connection test failed: {e}")
        return {"success": False, "message": str(e)}


def construct_event(payload: bytes, sig_header: str) -> dict:
    """
    Verify a webhook payload against STRIPE_WEBHOOK_SECRET and return the event as a plain dict.

    Raises:
        ValueError: invalid payload or webhook secret not configured
        stripe.SignatureVerificationError: signature mismatch
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise ValueError("Stripe webhook secret is not configured")
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(
        payload, sig_header, STRIPE_WEBHOOK_SECRET, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
    )
    return json.loads(payload)

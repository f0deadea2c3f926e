"""
Razorpay gateway helpers.

A payment starts with a gateway order opened server side for the cart total,
and ends with the checkout callback ``(order_id, payment_id, signature)``.
The callback is only trusted when the signature matches
``HMAC_SHA256(key_secret, "<order_id>|<payment_id>")``.
"""
import logging
import time

from core.imports import current_app, requests, hmac, hashlib, Decimal, ROUND_HALF_UP
from core.errors import PaymentVerificationError, UpstreamError

logger = logging.getLogger(__name__)


def to_minor_units(amount):
    """Rupees to paise."""
    paise = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(paise)


def compute_signature(gateway_order_id, gateway_payment_id, secret):
    payload = f"{gateway_order_id}|{gateway_payment_id}"
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(gateway_order_id, gateway_payment_id, signature):
    secret = current_app.config.get("RAZORPAY_KEY_SECRET")
    if not secret:
        raise UpstreamError("Payment gateway is not configured")

    expected = compute_signature(gateway_order_id, gateway_payment_id, secret)
    if not hmac.compare_digest(expected.encode("utf-8"), str(signature).encode("utf-8")):
        logger.warning("Signature mismatch for gateway order %s (payment %s)", gateway_order_id, gateway_payment_id)
        raise PaymentVerificationError("Payment verification failed")
    return True


def create_gateway_order(amount, currency, notes):
    key_id = current_app.config.get("RAZORPAY_KEY_ID")
    key_secret = current_app.config.get("RAZORPAY_KEY_SECRET")
    if not key_id or not key_secret:
        raise UpstreamError("Payment gateway is not configured")

    payload = {
        "amount": to_minor_units(amount),
        "currency": currency,
        "receipt": f"order_{int(time.time() * 1000)}",
        "notes": notes,
    }

    try:
        response = requests.post(
            f"{current_app.config['RAZORPAY_API_URL']}/orders",
            json=payload,
            auth=(key_id, key_secret),
            timeout=current_app.config.get("RAZORPAY_TIMEOUT", 10),
        )
    except requests.RequestException as e:
        raise UpstreamError("Failed to create payment order") from e

    if response.status_code not in (200, 201):
        logger.error("Gateway rejected order (%s): %s", response.status_code, response.text)
        raise UpstreamError("Failed to create payment order")

    gateway_order = response.json()
    logger.info("Opened gateway order %s for %s %s", gateway_order.get("id"), payload["amount"], currency)
    return gateway_order


def fetch_gateway_order(gateway_order_id):
    key_id = current_app.config.get("RAZORPAY_KEY_ID")
    key_secret = current_app.config.get("RAZORPAY_KEY_SECRET")
    if not key_id or not key_secret:
        raise UpstreamError("Payment gateway is not configured")

    try:
        response = requests.get(
            f"{current_app.config['RAZORPAY_API_URL']}/orders/{gateway_order_id}",
            auth=(key_id, key_secret),
            timeout=current_app.config.get("RAZORPAY_TIMEOUT", 10),
        )
    except requests.RequestException as e:
        raise UpstreamError("Failed to verify payment") from e

    if response.status_code != 200:
        logger.error("Gateway lookup of %s failed (%s): %s", gateway_order_id, response.status_code, response.text)
        raise UpstreamError("Failed to verify payment")
    return response.json()


def check_gateway_order(gateway_order, total, user_id):
    """
    The order being placed must be the one the gateway order was opened for:
    same amount in paise, opened by the same user.
    """
    notes = gateway_order.get("notes") or {}
    if gateway_order.get("amount") != to_minor_units(total):
        logger.warning(
            "Gateway order %s is for %s paise, order total is %s",
            gateway_order.get("id"), gateway_order.get("amount"), total
        )
        raise PaymentVerificationError("Payment verification failed")
    if notes.get("userId") != user_id:
        logger.warning("Gateway order %s was opened by another user", gateway_order.get("id"))
        raise PaymentVerificationError("Payment verification failed")
    return True

"""Stripe webhook verification and ``payment_intent.succeeded`` parsing.

The raw request body must reach ``verify_signature`` unmodified: the
signature is an HMAC-SHA256 over ``"{t}.{body}"`` and any re-serialization
breaks it.
"""

import json
import time
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

import stripe
from pydantic import BaseModel

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
DEFAULT_TOLERANCE = 300


class WebhookSignatureError(Exception):
    pass


class PaymentSucceeded(BaseModel):
    event_id: str
    payment_intent_id: str
    listing_id: str
    buyer_org_id: str
    credits_amount: Decimal
    amount_received: int = 0
    currency: str = ""
    status: str = "succeeded"


def _header_timestamp(header: str) -> Optional[int]:
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                return int(value)
            except ValueError:
                return None
    return None


def verify_signature(
    payload: Union[bytes, str],
    header: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """Verify a ``Stripe-Signature`` header and return the decoded event.

    Any ``v1`` entry may match. Timestamps older than ``tolerance`` seconds
    are rejected by the Stripe SDK; timestamps more than ``tolerance``
    seconds in the future are rejected here.
    """
    if not header or not secret:
        raise WebhookSignatureError("missing signature or secret")
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise WebhookSignatureError("payload is not valid UTF-8") from None

    try:
        stripe.WebhookSignature.verify_header(payload, header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(str(e)) from None

    timestamp = _header_timestamp(header)
    current = time.time() if now is None else now
    if timestamp is None or timestamp - current > tolerance:
        raise WebhookSignatureError("timestamp outside the tolerance zone")

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise WebhookSignatureError(f"invalid JSON payload: {e}") from None
    if not isinstance(event, dict):
        raise WebhookSignatureError("invalid event envelope")
    return event


def _is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _amount_received(value: Any) -> Optional[int]:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_payment_succeeded(event: Dict[str, Any]) -> Optional[PaymentSucceeded]:
    """Extract the purchase from a ``payment_intent.succeeded`` event.

    Returns ``None`` for other event types and for missing or malformed
    metadata, which the webhook acknowledges without settling anything.
    """
    if event.get("type") != PAYMENT_SUCCEEDED:
        return None
    data = event.get("data")
    if not isinstance(data, dict):
        return None
    obj = data.get("object")
    if not isinstance(obj, dict) or not obj.get("id"):
        return None
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return None

    listing_id = metadata.get("listing_id")
    buyer_org_id = metadata.get("buyer_org_id")
    raw_amount = metadata.get("credits_amount")
    if not listing_id or not buyer_org_id or not raw_amount:
        return None
    if not _is_uuid(listing_id) or not _is_uuid(buyer_org_id):
        return None
    try:
        credits_amount = Decimal(str(raw_amount))
    except InvalidOperation:
        return None
    if not credits_amount.is_finite() or credits_amount <= 0:
        return None
    amount_received = _amount_received(obj.get("amount_received"))
    if amount_received is None:
        return None

    return PaymentSucceeded(
        event_id=str(event.get("id") or ""),
        payment_intent_id=str(obj["id"]),
        listing_id=str(listing_id),
        buyer_org_id=str(buyer_org_id),
        credits_amount=credits_amount,
        amount_received=amount_received,
        currency=str(obj.get("currency") or ""),
        status=str(obj.get("status") or "succeeded"),
    )

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import stripe
from pydantic import BaseModel


class StripeNotConfiguredError(Exception):
    pass


class PaymentIntent(BaseModel):
    payment_intent_id: str
    client_secret: Optional[str] = None


def amount_to_cents(amount: Decimal, unit_price: Decimal) -> int:
    return int((amount * unit_price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def create_payment_intent(
    api_key: Optional[str],
    listing_id: str,
    buyer_org_id: str,
    amount: Decimal,
    unit_price: Decimal,
    currency: str = "usd",
) -> PaymentIntent:
    """Create the PaymentIntent a buyer pays for credits.

    Nothing is settled here; the metadata comes back on the
    ``payment_intent.succeeded`` webhook, which moves the credits.
    """
    if not api_key:
        raise StripeNotConfiguredError("Stripe is not configured")
    stripe.api_key = api_key
    intent = stripe.PaymentIntent.create(
        amount=amount_to_cents(amount, unit_price),
        currency=currency,
        automatic_payment_methods={"enabled": True},
        metadata={
            "listing_id": listing_id,
            "buyer_org_id": buyer_org_id,
            "credits_amount": f"{amount:.2f}",
        },
    )
    return PaymentIntent(payment_intent_id=intent.id, client_secret=intent.client_secret)

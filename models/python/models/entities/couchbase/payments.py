from decimal import Decimal
from typing import Any, Dict, Optional
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData


class PaymentData(BaseCouchbaseEntityData):
    stripe_payment_intent_id: str
    stripe_event_id: str
    buyer_org_id: str
    listing_id: str
    credits_amount: Decimal
    amount_paid_cents: int = 0
    currency: str = ""
    status: str = "succeeded"
    raw_payload: Optional[Dict[str, Any]] = None


class Payment(BaseModelCouchbase[PaymentData]):
    """Keyed by the Stripe payment intent id; the key is the idempotency gate."""

    _collection_name = "payments"

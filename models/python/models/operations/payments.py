from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel

from clients.store import DocumentExistsError, Store, UnitOfWork
from models.amounts import quantize
from models.entities.couchbase.payments import Payment, PaymentData
from models.errors import DuplicateSettlementError
from models.operations.unique_keys import unique_key_claim


class PaymentReceipt(BaseModel):
    """What the payment provider told us about a succeeded payment."""

    payment_intent_id: str
    event_id: str
    amount_paid_cents: int = 0
    currency: str = ""
    status: str = "succeeded"
    raw_payload: Optional[Dict[str, Any]] = None


async def payment_get_for_update(uow: UnitOfWork, payment_intent_id: str) -> Optional[Payment]:
    return await uow.get(Payment, payment_intent_id)


async def payment_record(
    uow: UnitOfWork, receipt: PaymentReceipt, buyer_org_id: str, listing_id: str, credits_amount: Decimal
) -> Payment:
    data = PaymentData(
        stripe_payment_intent_id=receipt.payment_intent_id,
        stripe_event_id=receipt.event_id,
        buyer_org_id=buyer_org_id,
        listing_id=listing_id,
        credits_amount=quantize(credits_amount),
        amount_paid_cents=receipt.amount_paid_cents,
        currency=receipt.currency,
        status=receipt.status,
        raw_payload=receipt.raw_payload,
    )
    try:
        payment = await uow.insert(Payment, data, key=receipt.payment_intent_id)
        if receipt.event_id:
            await unique_key_claim(uow, "stripe_event", receipt.event_id, receipt.payment_intent_id)
    except DocumentExistsError:
        raise DuplicateSettlementError(receipt.payment_intent_id) from None
    return payment


async def payment_get(store: Store, payment_intent_id: str) -> Optional[Payment]:
    return await store.get(Payment, payment_intent_id)

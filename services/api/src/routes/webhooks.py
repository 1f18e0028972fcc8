from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

import conf
from clients.store import Store, StoreError
from clients.stripe import WebhookSignatureError, parse_payment_succeeded, verify_signature
from models.errors import MarketplaceError, SignatureError
from models.operations.payments import PaymentReceipt
from models.operations.trading import trading_buy_via_webhook
from utils import log

from .dependencies import get_settlement_timeout, get_store

logger = log.get_logger(__name__)

router = APIRouter(prefix="/stripe", tags=["webhooks"])


@router.post("/webhook", response_class=PlainTextResponse)
async def route_stripe_webhook(
    request: Request,
    store: Store = Depends(get_store),
    timeout=Depends(get_settlement_timeout),
) -> str:
    """Settle purchases from ``payment_intent.succeeded``.

    Bad signatures get a 400. Everything else is acknowledged with 200 so
    Stripe does not redeliver: unusable metadata and settlement failures are
    logged and dropped.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not payload:
        logger.warning("Stripe webhook received empty body")
        raise SignatureError("Webhook Error: empty body")

    try:
        event = verify_signature(payload, sig_header, conf.get_stripe_conf().webhook_secret)
    except WebhookSignatureError as e:
        logger.warning(f"Stripe webhook signature verification failed (has_sig={bool(sig_header)}): {e}")
        raise SignatureError(f"Webhook Error: {e}")

    purchase = parse_payment_succeeded(event)
    if purchase is None:
        logger.info(f"Stripe event {event.get('id')} ({event.get('type')}) needs no settlement")
        return "ok"

    receipt = PaymentReceipt(
        payment_intent_id=purchase.payment_intent_id,
        event_id=purchase.event_id,
        amount_paid_cents=purchase.amount_received,
        currency=purchase.currency,
        status=purchase.status,
        raw_payload=event,
    )
    try:
        await trading_buy_via_webhook(
            store, purchase.listing_id, purchase.buyer_org_id, purchase.credits_amount, receipt, timeout=timeout
        )
    except (MarketplaceError, StoreError) as e:
        logger.error(f"Settlement of payment {purchase.payment_intent_id} failed: {e}")
    except Exception:
        # a verified event is always acknowledged
        logger.exception(f"Unexpected error settling payment {purchase.payment_intent_id}")
    return "ok"

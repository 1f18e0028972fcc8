from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

import conf
from clients.store import Store
from clients.stripe import StripeNotConfiguredError, create_payment_intent
from models.actors import Actor
from models.amounts import PositiveDecimal
from models.errors import ConflictError, InsufficientInventoryError, NotFoundError
from models.operations.listings import listing_get
from models.operations.trading import (
    trading_retire_credits,
    trading_sell_credits,
    trading_transfer_credits,
)
from utils import log

from .dependencies import get_settlement_timeout, get_store, require_org

logger = log.get_logger(__name__)

router = APIRouter(prefix="/trading", tags=["trading"])


# ── Request models ────────────────────────────────────────────────────────────

class BuyCreditsRequest(BaseModel):
    listing_id: UUID
    amount: PositiveDecimal


class SellCreditsRequest(BaseModel):
    project_id: UUID
    amount: PositiveDecimal
    price: PositiveDecimal


class TransferCreditsRequest(BaseModel):
    project_id: UUID
    to_org_code: str = Field(min_length=1)
    amount: PositiveDecimal


class RetireCreditsRequest(BaseModel):
    project_id: UUID
    amount: PositiveDecimal
    purpose: Optional[str] = None
    beneficiary: Optional[str] = None


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/buy-credits")
async def route_buy_credits(
    body: BuyCreditsRequest,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    """Start a purchase. Only creates the PaymentIntent; credits move when the
    payment succeeds and Stripe calls the webhook."""
    listing = await listing_get(store, str(body.listing_id))
    if not listing:
        raise NotFoundError("Listing not found")
    if listing.data.status != "open":
        raise ConflictError("Listing is not open for purchase")
    if listing.data.credits_available < body.amount:
        raise InsufficientInventoryError("Insufficient credits available in the listing")

    stripe_conf = conf.get_stripe_conf()
    try:
        intent = await run_in_threadpool(
            create_payment_intent,
            stripe_conf.secret_key,
            listing.id,
            actor.org_id,
            body.amount,
            listing.data.price_per_credit,
            stripe_conf.currency,
        )
    except StripeNotConfiguredError:
        raise HTTPException(status_code=503, detail="Stripe not configured")

    logger.info(f"Created payment intent {intent.payment_intent_id} for org {actor.org_id} on listing {listing.id}")
    return {"message": "Payment intent created", **intent.model_dump(mode="json")}


@router.post("/sell-credits")
async def route_sell_credits(
    body: SellCreditsRequest,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
    timeout: Optional[float] = Depends(get_settlement_timeout),
) -> Dict[str, Any]:
    result = await trading_sell_credits(store, actor, str(body.project_id), body.amount, body.price, timeout=timeout)
    return {"message": "Listing created/updated successfully", **result.model_dump(mode="json")}


@router.post("/transfer-credits")
async def route_transfer_credits(
    body: TransferCreditsRequest,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
    timeout: Optional[float] = Depends(get_settlement_timeout),
) -> Dict[str, Any]:
    result = await trading_transfer_credits(
        store, actor, str(body.project_id), body.to_org_code, body.amount, timeout=timeout
    )
    return {"message": "Credits transferred successfully", **result.model_dump(mode="json")}


@router.post("/retire-credits")
async def route_retire_credits(
    body: RetireCreditsRequest,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
    timeout: Optional[float] = Depends(get_settlement_timeout),
) -> Dict[str, Any]:
    result = await trading_retire_credits(
        store,
        actor,
        str(body.project_id),
        body.amount,
        purpose=body.purpose,
        beneficiary=body.beneficiary,
        timeout=timeout,
    )
    return result.model_dump(mode="json")

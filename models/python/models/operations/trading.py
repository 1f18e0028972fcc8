"""Settlement operations.

Each operation is one unit of work: it loads the holdings and listings it
touches, validates, writes holdings, listings, transactions and listing
events, and commits them together. Any error raised along the way aborts the
whole unit, so no partial ledger state is ever visible.

Buying only happens through ``trading_buy_via_webhook``, driven by a verified
payment webhook.
"""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from clients.store import Store, UnitOfWork
from models.actors import Actor
from models.amounts import ZERO, parse_positive, quantize
from models.entities.couchbase.listings import Listing
from models.errors import (
    AuthorizationError,
    DuplicateSettlementError,
    InsufficientCreditsError,
    NoValidChangesError,
    NotFoundError,
    ValidationError,
)
from models.operations.holdings import (
    holding_credit,
    holding_debit,
    holding_get_for_update,
    holding_lock,
    holding_unlock,
)
from models.operations.listing_events import listing_event_append
from models.operations.listings import (
    listing_add_available,
    listing_assert_mutable_by,
    listing_cancel,
    listing_create,
    listing_find_open,
    listing_get_for_update,
    listing_reduce_available,
    listing_set_available,
)
from models.operations.orgs import org_get_by_code, org_get_for_update
from models.operations.payments import PaymentReceipt, payment_get_for_update, payment_record
from models.operations.projects import project_get_for_update, project_listing_metadata
from models.operations.retirements import retirement_certificate_issue
from models.operations.transactions import transaction_append

logger = logging.getLogger(__name__)


class SellResult(BaseModel):
    listing_id: str
    credits_available: Decimal


class TransferResult(BaseModel):
    transferred: Decimal
    to_org_code: str


class RetireResult(BaseModel):
    message: str = "Credits retired successfully"
    certificate_id: str
    certificate_number: str
    retired_amount: Decimal


class BuyResult(BaseModel):
    payment_intent_id: str
    listing_id: str
    duplicate: bool = False
    credits_bought: Decimal = ZERO
    remaining_quantity: Optional[Decimal] = None
    transaction_id: Optional[str] = None


def _actor_org(actor: Actor) -> str:
    if not actor.org_id:
        raise AuthorizationError("Organization not associated with user")
    return actor.org_id


async def trading_sell_credits(
    store: Store,
    actor: Actor,
    project_id: str,
    amount: Decimal,
    price: Decimal,
    timeout: Optional[float] = None,
) -> SellResult:
    org_id = _actor_org(actor)
    amount = parse_positive(amount)
    price = parse_positive(price, field="price")

    async def _work(uow: UnitOfWork) -> SellResult:
        org = await org_get_for_update(uow, org_id)
        holding = await holding_get_for_update(uow, org_id, project_id)
        if holding.data.available < amount:
            raise InsufficientCreditsError("Insufficient credits to sell")
        project = await project_get_for_update(uow, project_id)

        existing = await listing_find_open(uow, org_id, project_id, price)
        if existing:
            listing = await listing_add_available(uow, existing, amount)
            await holding_lock(uow, holding, amount)
            await listing_event_append(
                uow,
                listing.id,
                "UPDATED",
                {
                    "credits_added": amount,
                    "new_credits_available": listing.data.credits_available,
                    "price_per_credit": listing.data.price_per_credit,
                },
                org.data.org_code,
            )
        else:
            await holding_lock(uow, holding, amount)
            listing = await listing_create(
                uow,
                seller_id=org_id,
                project_id=project_id,
                quantity=amount,
                price=price,
                metadata=project_listing_metadata(project),
                actor_org_code=org.data.org_code,
            )
        return SellResult(listing_id=listing.id, credits_available=listing.data.credits_available)

    result = await store.run_in_transaction(_work, timeout)
    logger.info(f"Org {org_id} listed {amount} credits of {project_id} at {price} on listing {result.listing_id}")
    return result


async def trading_edit_listing(
    store: Store,
    actor: Actor,
    listing_id: str,
    new_price: Optional[Decimal] = None,
    new_quantity: Optional[Decimal] = None,
    timeout: Optional[float] = None,
) -> Listing:
    org_id = _actor_org(actor)

    async def _work(uow: UnitOfWork) -> Listing:
        listing = await listing_get_for_update(uow, listing_id)
        listing_assert_mutable_by(listing, org_id, action="edited")
        event_data = {}

        if new_price is not None:
            price = parse_positive(new_price, field="price")
            if price != listing.data.price_per_credit:
                listing.data.price_per_credit = price
                event_data["new_price_per_credit"] = price

        quantity = None
        if new_quantity is not None:
            quantity = parse_positive(new_quantity, field="quantity")
            current = listing.data.credits_available
            delta = quantize(quantity - current)
            if delta != ZERO:
                holding = await holding_get_for_update(uow, org_id, listing.data.project_id, missing="Holdings not found")
                if delta > ZERO:
                    if holding.data.available < delta:
                        raise InsufficientCreditsError("Insufficient credits to increase listing")
                    await holding_lock(uow, holding, delta)
                else:
                    await holding_unlock(uow, holding, -delta)
                event_data["quantity_delta"] = delta
                event_data["new_credits_available"] = quantity
            else:
                quantity = None

        if not event_data:
            raise NoValidChangesError("No valid changes provided")

        if quantity is not None:
            await listing_set_available(uow, listing, quantity)
        else:
            await uow.replace(listing)

        org = await org_get_for_update(uow, org_id)
        await listing_event_append(uow, listing.id, "UPDATED", event_data, org.data.org_code)
        return listing

    return await store.run_in_transaction(_work, timeout)


async def trading_cancel_listing(
    store: Store, actor: Actor, listing_id: str, timeout: Optional[float] = None
) -> Listing:
    org_id = _actor_org(actor)

    async def _work(uow: UnitOfWork) -> Listing:
        listing = await listing_get_for_update(uow, listing_id)
        listing_assert_mutable_by(listing, org_id, action="cancelled")
        remaining = listing.data.credits_available

        holding = await holding_get_for_update(uow, org_id, listing.data.project_id, missing="Holdings not found")
        if remaining > ZERO:
            await holding_unlock(uow, holding, remaining)
        await listing_cancel(uow, listing, org_id)

        org = await org_get_for_update(uow, org_id)
        await listing_event_append(uow, listing.id, "CANCELLED", {"remaining_credits": remaining}, org.data.org_code)
        return listing

    listing = await store.run_in_transaction(_work, timeout)
    logger.info(f"Org {org_id} cancelled listing {listing_id}")
    return listing


async def trading_transfer_credits(
    store: Store,
    actor: Actor,
    project_id: str,
    to_org_code: str,
    amount: Decimal,
    timeout: Optional[float] = None,
) -> TransferResult:
    from_org_id = _actor_org(actor)
    amount = parse_positive(amount)
    if not to_org_code:
        raise ValidationError("Missing to_org_code")

    async def _work(uow: UnitOfWork) -> TransferResult:
        to_org = await org_get_by_code(uow, to_org_code)
        if not to_org:
            raise NotFoundError("Target organization not found")
        if to_org.id == from_org_id:
            raise AuthorizationError("Cannot transfer to the same organization")

        sender = await holding_get_for_update(uow, from_org_id, project_id)
        await holding_debit(uow, sender, amount)
        await holding_credit(uow, to_org.id, project_id, amount)
        await transaction_append(
            uow, "transfer", project_id, amount, from_org_id=from_org_id, to_org_id=to_org.id
        )
        return TransferResult(transferred=amount, to_org_code=to_org_code)

    result = await store.run_in_transaction(_work, timeout)
    logger.info(f"Org {from_org_id} transferred {amount} credits of {project_id} to {to_org_code}")
    return result


async def trading_retire_credits(
    store: Store,
    actor: Actor,
    project_id: str,
    amount: Decimal,
    purpose: Optional[str] = None,
    beneficiary: Optional[str] = None,
    timeout: Optional[float] = None,
) -> RetireResult:
    org_id = _actor_org(actor)
    amount = parse_positive(amount)

    async def _work(uow: UnitOfWork) -> RetireResult:
        holding = await holding_get_for_update(uow, org_id, project_id, missing="No holdings found")
        await holding_debit(uow, holding, amount)
        tx = await transaction_append(uow, "retire", project_id, amount, from_org_id=org_id)
        certificate = await retirement_certificate_issue(
            uow, org_id, project_id, amount, tx.id, purpose=purpose, beneficiary=beneficiary
        )
        return RetireResult(
            certificate_id=certificate.id,
            certificate_number=certificate.data.certificate_number,
            retired_amount=amount,
        )

    result = await store.run_in_transaction(_work, timeout)
    logger.info(f"Org {org_id} retired {amount} credits of {project_id} ({result.certificate_number})")
    return result


async def trading_buy_via_webhook(
    store: Store,
    listing_id: str,
    buyer_org_id: str,
    amount: Decimal,
    receipt: PaymentReceipt,
    timeout: Optional[float] = None,
) -> BuyResult:
    """Settle a paid purchase.

    A payment intent settles at most once: a receipt that was already recorded
    returns ``duplicate=True`` without touching the ledger, and a concurrent
    duplicate loses the race on the payment document's key and is reported the
    same way.
    """
    amount = parse_positive(amount)

    async def _work(uow: UnitOfWork) -> BuyResult:
        if await payment_get_for_update(uow, receipt.payment_intent_id):
            return BuyResult(payment_intent_id=receipt.payment_intent_id, listing_id=listing_id, duplicate=True)

        listing = await listing_get_for_update(uow, listing_id)
        buyer = await org_get_for_update(uow, buyer_org_id, missing="Buyer org not found")
        await listing_reduce_available(uow, listing, amount, buyer.data.org_code)

        if listing.data.seller_id is not None:
            seller_holding = await holding_get_for_update(
                uow, listing.data.seller_id, listing.data.project_id, missing="Seller holdings not found"
            )
            await holding_debit(uow, seller_holding, amount, from_locked=True)

        await holding_credit(uow, buyer_org_id, listing.data.project_id, amount)
        tx = await transaction_append(
            uow,
            "buy",
            listing.data.project_id,
            amount,
            from_org_id=listing.data.seller_id,
            to_org_id=buyer_org_id,
            related_listing_id=listing.id,
        )
        await payment_record(uow, receipt, buyer_org_id, listing.id, amount)
        return BuyResult(
            payment_intent_id=receipt.payment_intent_id,
            listing_id=listing.id,
            credits_bought=amount,
            remaining_quantity=listing.data.credits_available,
            transaction_id=tx.id,
        )

    try:
        result = await store.run_in_transaction(_work, timeout)
    except DuplicateSettlementError:
        result = BuyResult(payment_intent_id=receipt.payment_intent_id, listing_id=listing_id, duplicate=True)

    if result.duplicate:
        logger.info(f"Payment {receipt.payment_intent_id} already settled, skipping")
    else:
        logger.info(
            f"Settled payment {receipt.payment_intent_id}: {amount} credits from listing {listing_id} to org {buyer_org_id}"
        )
    return result

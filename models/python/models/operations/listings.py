"""Listing inventory and its open -> closed lifecycle.

A listing never reopens. Fulfilment that empties it closes it in the same
write; sellers may cancel their own open listings; registry-owned listings
(``seller_id is None``) are never editable or cancellable by an org.
"""

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from clients.store import Store, UnitOfWork
from models.amounts import ZERO, quantize
from models.entities.couchbase.listings import Listing, ListingData
from models.entities.couchbase.orgs import Org
from models.entities.couchbase.projects import Project
from models.errors import (
    AuthorizationError,
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from models.operations.listing_events import listing_event_append


def listing_assert_mutable_by(listing: Listing, org_id: str, action: str = "edited") -> None:
    if listing.data.status != "open":
        raise ConflictError(f"Listing is not open (status: '{listing.data.status}'). Only open listings can be {action}")
    if listing.data.is_registry_owned:
        raise AuthorizationError(f"Registry listings cannot be {action} by an organization")
    if listing.data.seller_id != org_id:
        raise AuthorizationError("Unauthorized: listing belongs to another organization")


async def listing_create(
    uow: UnitOfWork,
    seller_id: Optional[str],
    project_id: str,
    quantity: Decimal,
    price: Decimal,
    metadata: Optional[Dict[str, Any]] = None,
    actor_org_code: Optional[str] = None,
    source: Optional[str] = None,
) -> Listing:
    data = ListingData(
        project_id=project_id,
        seller_id=seller_id,
        credits_available=quantize(quantity),
        price_per_credit=quantize(price),
        status="open",
        **(metadata or {}),
    )
    listing = await uow.insert(Listing, data)
    event_data: Dict[str, Any] = {
        "credits_available": listing.data.credits_available,
        "price_per_credit": listing.data.price_per_credit,
    }
    if source:
        event_data["source"] = source
    await listing_event_append(uow, listing.id, "CREATED", event_data, actor_org_code)
    return listing


async def listing_get_for_update(uow: UnitOfWork, listing_id: str) -> Listing:
    listing = await uow.get(Listing, listing_id)
    if not listing:
        raise NotFoundError("Listing not found")
    return listing


async def listing_find_open(uow: UnitOfWork, seller_id: str, project_id: str, price: Decimal) -> Optional[Listing]:
    return await uow.find_one(
        Listing,
        seller_id=seller_id,
        project_id=project_id,
        price_per_credit=quantize(price),
        status="open",
    )


async def listing_add_available(uow: UnitOfWork, listing: Listing, amount: Decimal) -> Listing:
    if listing.data.status != "open":
        raise ConflictError("Listing is not open")
    listing.data.credits_available = quantize(listing.data.credits_available + amount)
    return await uow.replace(listing)


async def listing_reduce_available(
    uow: UnitOfWork, listing: Listing, amount: Decimal, actor_org_code: Optional[str] = None
) -> Listing:
    """Take ``amount`` out of an open listing's inventory.

    Appends FILLED when the listing is emptied (followed by CLOSED with reason
    ``fully_filled``), otherwise PARTIALLY_FILLED.
    """
    amount = quantize(amount)
    if listing.data.status != "open":
        raise ConflictError("Listing is not open for purchase")
    if listing.data.credits_available < amount:
        raise InsufficientInventoryError("Insufficient credits available in the listing")

    remaining = quantize(listing.data.credits_available - amount)
    listing.data.credits_available = remaining
    if remaining == ZERO:
        listing.data.status = "closed"
    await uow.replace(listing)

    await listing_event_append(
        uow,
        listing.id,
        "FILLED" if remaining == ZERO else "PARTIALLY_FILLED",
        {
            "bought_quantity": amount,
            "remaining_quantity": remaining,
            "price_per_credit": listing.data.price_per_credit,
        },
        actor_org_code,
    )
    if remaining == ZERO:
        await listing_event_append(uow, listing.id, "CLOSED", {"reason": "fully_filled"})
    return listing


async def listing_set_available(uow: UnitOfWork, listing: Listing, new_quantity: Decimal) -> Listing:
    if listing.data.status != "open":
        raise ConflictError("Only open listings can change quantity")
    new_quantity = quantize(new_quantity)
    if new_quantity <= ZERO:
        raise ValidationError("Invalid quantity")
    listing.data.credits_available = new_quantity
    return await uow.replace(listing)


async def listing_cancel(uow: UnitOfWork, listing: Listing, org_id: str) -> Listing:
    listing_assert_mutable_by(listing, org_id, action="cancelled")
    listing.data.status = "closed"
    return await uow.replace(listing)


async def listing_get(store: Store, listing_id: str) -> Optional[Listing]:
    return await store.get(Listing, listing_id)


async def listings_get_open(store: Store, limit: Optional[int] = None) -> List[Listing]:
    return await store.find(Listing, {"status": "open"}, order_by="created_at", descending=True, limit=limit)


async def listings_get_closed(store: Store, limit: Optional[int] = None) -> List[Listing]:
    return await store.find(Listing, {"status": "closed"}, order_by="updated_at", descending=True, limit=limit)


async def listings_get_by_seller(store: Store, seller_id: str, status: Optional[str] = None) -> List[Listing]:
    filters: Dict[str, Any] = {"seller_id": seller_id}
    if status:
        filters["status"] = status
    return await store.find(Listing, filters, order_by="created_at", descending=True)


class ListingSeller(BaseModel):
    type: Literal["org", "registry", "unknown"]
    org_id: Optional[str] = None
    org_name: Optional[str] = None
    org_code: Optional[str] = None
    name: Optional[str] = None


class ListingDetail(BaseModel):
    listing_id: str
    price_per_credit: Decimal
    credits_available: Decimal
    status: str
    seller: ListingSeller
    project: Dict[str, Any]


async def listing_get_detail(store: Store, listing_id: str) -> ListingDetail:
    """A listing with its seller (org or registry) and its project resolved."""
    listing = await store.get(Listing, listing_id)
    if not listing:
        raise NotFoundError("Listing not found")
    project = await store.get(Project, listing.data.project_id)
    if not project:
        raise NotFoundError("Project not found for listing")

    if listing.data.seller_id is None:
        seller = ListingSeller(type="registry", name=listing.data.registry or "Registry")
    else:
        org = await store.get(Org, listing.data.seller_id)
        if org:
            seller = ListingSeller(
                type="org", org_id=org.id, org_name=org.data.org_name, org_code=org.data.org_code
            )
        else:
            seller = ListingSeller(type="unknown")

    return ListingDetail(
        listing_id=listing.id,
        price_per_credit=listing.data.price_per_credit,
        credits_available=listing.data.credits_available,
        status=listing.data.status,
        seller=seller,
        project={"project_id": project.id, **project.data.model_dump(mode="json")},
    )

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from clients.store import Store
from models.actors import Actor
from models.amounts import PositiveDecimal
from models.entities.couchbase.listings import Listing
from models.errors import NotFoundError
from models.operations.listing_events import listing_events_get_by_listing
from models.operations.listings import (
    listing_get,
    listing_get_detail,
    listings_get_by_seller,
    listings_get_closed,
    listings_get_open,
)
from models.operations.trading import trading_cancel_listing, trading_edit_listing
from utils import log

from .dependencies import current_actor_get, get_settlement_timeout, get_store, require_org

logger = log.get_logger(__name__)

router = APIRouter(prefix="/listings", tags=["listings"])


# ── Request models ────────────────────────────────────────────────────────────

class ListingEditRequest(BaseModel):
    price_per_credit: Optional[PositiveDecimal] = None
    credits_available: Optional[PositiveDecimal] = None


# ── Helpers ───────────────────────────────────────────────────────────────────

def _listing_out(listing: Listing) -> Dict[str, Any]:
    return {"listing_id": listing.id, **listing.data.model_dump(mode="json")}


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/open")
async def route_listings_open(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    actor: Actor = Depends(current_actor_get),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    return [_listing_out(listing) for listing in await listings_get_open(store, limit=limit)]


@router.get("/closed")
async def route_listings_closed(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    actor: Actor = Depends(current_actor_get),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    return [_listing_out(listing) for listing in await listings_get_closed(store, limit=limit)]


@router.get("/mine")
async def route_listings_mine(
    status: Optional[str] = Query(default=None, pattern="^(open|closed)$"),
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    listings = await listings_get_by_seller(store, actor.org_id, status=status)
    return [_listing_out(listing) for listing in listings]


@router.get("/{listing_id}")
async def route_listing_get(
    listing_id: str,
    actor: Actor = Depends(current_actor_get),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    detail = await listing_get_detail(store, listing_id)
    return detail.model_dump(mode="json")


@router.patch("/{listing_id}")
async def route_listing_edit(
    listing_id: str,
    body: ListingEditRequest,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
    timeout: Optional[float] = Depends(get_settlement_timeout),
) -> Dict[str, Any]:
    listing = await trading_edit_listing(
        store,
        actor,
        listing_id,
        new_price=body.price_per_credit,
        new_quantity=body.credits_available,
        timeout=timeout,
    )
    return _listing_out(listing)


@router.post("/{listing_id}/cancel")
async def route_listing_cancel(
    listing_id: str,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
    timeout: Optional[float] = Depends(get_settlement_timeout),
) -> Dict[str, Any]:
    listing = await trading_cancel_listing(store, actor, listing_id, timeout=timeout)
    return {"message": "Listing cancelled", **_listing_out(listing)}


@router.get("/{listing_id}/events")
async def route_listing_events(
    listing_id: str,
    actor: Actor = Depends(current_actor_get),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    if not await listing_get(store, listing_id):
        raise NotFoundError("Listing not found")
    events = await listing_events_get_by_listing(store, listing_id)
    return [{"event_id": event.id, **event.data.model_dump(mode="json")} for event in events]

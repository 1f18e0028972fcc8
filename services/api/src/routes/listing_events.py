from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from clients.store import Store
from models.actors import Actor
from models.operations.listing_events import listing_events_get_by_org

from .dependencies import get_store, require_org

router = APIRouter(prefix="/listing-events", tags=["listing-events"])


@router.get("")
async def route_listing_events_mine(
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    """Listing events the caller's organization took part in, oldest first."""
    events = await listing_events_get_by_org(store, actor.org_id)
    return [{"event_id": event.id, **event.data.model_dump(mode="json")} for event in events]

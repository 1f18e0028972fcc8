from typing import Any, Dict, List, Optional

from pydantic_core import to_jsonable_python

from clients.store import Store, UnitOfWork
from models.entities.couchbase.listing_events import ListingEvent, ListingEventData, ListingEventType
from models.entities.couchbase.orgs import Org


async def listing_event_append(
    uow: UnitOfWork,
    listing_id: str,
    event_type: ListingEventType,
    event_data: Dict[str, Any],
    actor_org_code: Optional[str] = None,
) -> ListingEvent:
    data = ListingEventData(
        listing_id=listing_id,
        event_type=event_type,
        event_data=to_jsonable_python(event_data),
        actor_org_code=actor_org_code,
    )
    return await uow.insert(ListingEvent, data)


async def listing_events_get_by_listing(store: Store, listing_id: str) -> List[ListingEvent]:
    return await store.find(ListingEvent, {"listing_id": listing_id}, order_by="created_at")


async def listing_events_get_by_org(store: Store, org_id: str) -> List[ListingEvent]:
    """Events the org acted in, oldest first."""
    org = await store.get(Org, org_id)
    if not org:
        return []
    return await store.find(ListingEvent, {"actor_org_code": org.data.org_code}, order_by="created_at")

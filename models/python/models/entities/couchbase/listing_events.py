from typing import Any, Dict, Optional, Literal
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData

ListingEventType = Literal["CREATED", "UPDATED", "PARTIALLY_FILLED", "FILLED", "CLOSED", "CANCELLED"]


class ListingEventData(BaseCouchbaseEntityData):
    listing_id: str
    event_type: ListingEventType
    event_data: Dict[str, Any] = {}
    actor_org_code: Optional[str] = None


class ListingEvent(BaseModelCouchbase[ListingEventData]):
    _collection_name = "listing_events"

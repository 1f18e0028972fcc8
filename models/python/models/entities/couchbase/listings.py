from decimal import Decimal
from typing import Optional, Literal
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData

ListingStatus = Literal["open", "closed"]


class ListingData(BaseCouchbaseEntityData):
    project_id: str
    seller_id: Optional[str] = None  # None: registry-owned
    credits_available: Decimal
    price_per_credit: Decimal
    status: ListingStatus = "open"
    project_name: str = ""
    registry: str = ""
    location_country: Optional[str] = None
    methodology: Optional[str] = None
    vintage_year: Optional[int] = None
    external_trade_id: Optional[str] = None

    @property
    def is_registry_owned(self) -> bool:
        return self.seller_id is None


class Listing(BaseModelCouchbase[ListingData]):
    _collection_name = "listings"

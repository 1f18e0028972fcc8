from decimal import Decimal
from typing import Optional, Literal
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData

TransactionType = Literal["buy", "sell", "transfer", "retire"]


class TransactionData(BaseCouchbaseEntityData):
    type: TransactionType
    project_id: str
    from_org_id: Optional[str] = None
    to_org_id: Optional[str] = None
    amount: Decimal
    related_listing_id: Optional[str] = None


class Transaction(BaseModelCouchbase[TransactionData]):
    _collection_name = "transactions"

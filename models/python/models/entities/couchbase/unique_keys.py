from typing import Literal
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData

UniqueKeyKind = Literal["certificate_number", "stripe_event"]


class UniqueKeyData(BaseCouchbaseEntityData):
    kind: UniqueKeyKind
    value: str
    owner_id: str


class UniqueKey(BaseModelCouchbase[UniqueKeyData]):
    """Marker keyed by ``"{kind}:{value}"``. A second claim of the same value
    fails on the key and aborts the unit of work that made it."""

    _collection_name = "unique_keys"

    @staticmethod
    def key_for(kind: str, value: str) -> str:
        return f"{kind}:{value}"

from decimal import Decimal
from typing import Optional
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData


class HoldingData(BaseCouchbaseEntityData):
    org_id: str
    project_id: str
    vintage_year: Optional[int] = None
    credit_balance: Decimal = Decimal("0.00")
    locked_for_sale: Decimal = Decimal("0.00")

    @property
    def available(self) -> Decimal:
        return self.credit_balance - self.locked_for_sale


class Holding(BaseModelCouchbase[HoldingData]):
    _collection_name = "holdings"

    @staticmethod
    def key_for(org_id: str, project_id: str) -> str:
        # one document per (org, project); concurrent first credits collide on this key
        return f"{org_id}::{project_id}"

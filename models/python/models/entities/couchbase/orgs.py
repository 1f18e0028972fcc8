from typing import Optional
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData


class OrgData(BaseCouchbaseEntityData):
    org_name: str
    org_code: str
    country_code: str = ""
    registration_id: Optional[str] = None


class Org(BaseModelCouchbase[OrgData]):
    _collection_name = "orgs"

from typing import Optional, Literal
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData


class ProjectData(BaseCouchbaseEntityData):
    name: str
    registry: str = ""
    category: Optional[Literal[
        "Forest", "Renewable Energy", "GHG Management",
        "Energy Efficiency", "Fuel Switching", "Agriculture", "Other"
    ]] = None
    project_type: Optional[str] = None
    country: Optional[str] = None
    methodology: Optional[str] = None
    vintage_year: Optional[int] = None
    status: Optional[str] = "active"


class Project(BaseModelCouchbase[ProjectData]):
    _collection_name = "projects"

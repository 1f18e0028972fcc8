from typing import Any, Dict, List, Optional

from clients.store import Store, UnitOfWork
from models.entities.couchbase.projects import Project
from models.errors import NotFoundError


async def project_get_for_update(uow: UnitOfWork, project_id: str) -> Project:
    project = await uow.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


async def project_get(store: Store, project_id: str) -> Optional[Project]:
    return await store.get(Project, project_id)


def project_listing_metadata(project: Project) -> Dict[str, Any]:
    """Project fields copied onto a listing so the marketplace can render it without a join."""
    return {
        "project_name": project.data.name,
        "registry": project.data.registry,
        "location_country": project.data.country,
        "methodology": project.data.methodology or "N/A",
        "vintage_year": project.data.vintage_year,
    }


async def projects_get(store: Store, status: Optional[str] = None) -> List[Project]:
    filters: Dict[str, Any] = {}
    if status:
        filters["status"] = status
    return await store.find(Project, filters, order_by="name")

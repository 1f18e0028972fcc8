from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from clients.store import Store
from models.actors import Actor
from models.errors import NotFoundError
from models.operations.projects import project_get, projects_get

from .dependencies import current_actor_get, get_store

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
async def route_projects_list(
    status: Optional[str] = Query(default=None),
    actor: Actor = Depends(current_actor_get),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    projects = await projects_get(store, status=status)
    return {
        "projects": [{"project_id": p.id, **p.data.model_dump(mode="json")} for p in projects],
        "total": len(projects),
    }


@router.get("/{project_id}")
async def route_project_get(
    project_id: str,
    actor: Actor = Depends(current_actor_get),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    project = await project_get(store, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return {"project_id": project.id, **project.data.model_dump(mode="json")}

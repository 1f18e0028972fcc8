from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from clients.store import Store
from models.actors import Actor
from models.amounts import quantize
from models.operations.holdings import holding_project_get, holdings_get_by_org

from .dependencies import get_store, require_org

router = APIRouter(prefix="/holdings", tags=["holdings"])


@router.get("")
async def route_holdings_mine(
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    holdings = await holdings_get_by_org(store, actor.org_id)
    return [
        {
            "holding_id": holding.id,
            **holding.data.model_dump(mode="json"),
            "available": str(quantize(holding.data.available)),
        }
        for holding in holdings
    ]


@router.get("/{holding_id}/project")
async def route_holding_project(
    holding_id: str,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    """Project details for one of the caller's holdings."""
    holding, project = await holding_project_get(store, holding_id, actor.org_id)
    return {
        "holding_id": holding.id,
        "project_id": project.id,
        "project": {"project_id": project.id, **project.data.model_dump(mode="json")},
    }

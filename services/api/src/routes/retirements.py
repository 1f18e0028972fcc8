from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from clients.store import Store
from models.actors import Actor
from models.errors import NotFoundError
from models.operations.retirements import retirement_get, retirements_get_by_org

from .dependencies import get_store, require_org

router = APIRouter(prefix="/retirements", tags=["retirements"])


@router.get("")
async def route_retirements_mine(
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    certificates = await retirements_get_by_org(store, actor.org_id)
    return [{"certificate_id": cert.id, **cert.data.model_dump(mode="json")} for cert in certificates]


@router.get("/{certificate_id}")
async def route_retirement_get(
    certificate_id: str,
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    certificate = await retirement_get(store, certificate_id)
    # another org's certificate is reported as missing
    if not certificate or certificate.data.org_id != actor.org_id:
        raise NotFoundError("Retirement certificate not found")
    return {"certificate_id": certificate.id, **certificate.data.model_dump(mode="json")}

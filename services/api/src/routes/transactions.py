from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from clients.store import Store
from models.actors import Actor
from models.operations.transactions import transactions_get_by_org

from .dependencies import get_store, require_org

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("")
async def route_transactions_mine(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    actor: Actor = Depends(require_org),
    store: Store = Depends(get_store),
) -> List[Dict[str, Any]]:
    txs = await transactions_get_by_org(store, actor.org_id, limit=limit)
    return [{"tx_id": tx.id, **tx.data.model_dump(mode="json")} for tx in txs]

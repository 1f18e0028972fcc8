from decimal import Decimal
from typing import Dict, List, Optional

from clients.store import Store, UnitOfWork
from models.amounts import quantize
from models.entities.couchbase.transactions import Transaction, TransactionData, TransactionType


async def transaction_append(
    uow: UnitOfWork,
    type: TransactionType,
    project_id: str,
    amount: Decimal,
    from_org_id: Optional[str] = None,
    to_org_id: Optional[str] = None,
    related_listing_id: Optional[str] = None,
) -> Transaction:
    data = TransactionData(
        type=type,
        project_id=project_id,
        amount=quantize(amount),
        from_org_id=from_org_id,
        to_org_id=to_org_id,
        related_listing_id=related_listing_id,
    )
    return await uow.insert(Transaction, data)


async def transactions_get_by_org(store: Store, org_id: str, limit: Optional[int] = None) -> List[Transaction]:
    """Movements where the org is sender or receiver, newest first."""
    merged: Dict[str, Transaction] = {}
    for field in ("from_org_id", "to_org_id"):
        for tx in await store.find(Transaction, {field: org_id}):
            merged[tx.id] = tx
    ordered = sorted(merged.values(), key=lambda tx: tx.data.created_at, reverse=True)
    return ordered[:limit] if limit is not None else ordered

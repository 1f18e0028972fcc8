"""Holding ledger: per-(org, project) credit balance and the part locked for sale.

The mutators take the caller's unit of work and are only called from inside a
settlement operation; none of them commits anything on its own.
"""

from decimal import Decimal
from typing import List, Tuple

from clients.store import Store, UnitOfWork
from models.amounts import ZERO, quantize
from models.entities.couchbase.holdings import Holding, HoldingData
from models.entities.couchbase.projects import Project
from models.errors import (
    AuthorizationError,
    InsufficientCreditsError,
    InsufficientLockedCreditsError,
    InvalidLockStateError,
    NotFoundError,
    ValidationError,
)


def _require_positive(amount: Decimal) -> Decimal:
    amount = quantize(amount)
    if amount <= ZERO:
        raise ValidationError("Amount must be a positive number")
    return amount


async def holding_get_for_update(
    uow: UnitOfWork, org_id: str, project_id: str, missing: str = "No holdings found for this project"
) -> Holding:
    holding = await uow.get(Holding, Holding.key_for(org_id, project_id))
    if not holding:
        raise NotFoundError(missing)
    return holding


async def holding_credit(uow: UnitOfWork, org_id: str, project_id: str, amount: Decimal) -> Holding:
    """Add credits, opening the holding on first arrival."""
    amount = _require_positive(amount)
    key = Holding.key_for(org_id, project_id)
    holding = await uow.get(Holding, key)
    if not holding:
        data = HoldingData(org_id=org_id, project_id=project_id, credit_balance=amount, locked_for_sale=ZERO)
        return await uow.insert(Holding, data, key=key)
    holding.data.credit_balance = quantize(holding.data.credit_balance + amount)
    return await uow.replace(holding)


async def holding_debit(uow: UnitOfWork, holding: Holding, amount: Decimal, from_locked: bool = False) -> Holding:
    """Remove credits from a holding.

    Ordinary debits (transfer, retire) may only spend the available part.
    ``from_locked`` is the seller side of a fill: the credits leave both the
    lock and the balance.
    """
    amount = _require_positive(amount)
    data = holding.data
    if from_locked:
        if data.locked_for_sale < amount:
            raise InsufficientLockedCreditsError("Seller does not have enough locked credits")
        data.locked_for_sale = quantize(data.locked_for_sale - amount)
    elif data.available < amount:
        raise InsufficientCreditsError(
            f"Insufficient available credits: requested {amount} but only {quantize(data.available)} available"
        )
    data.credit_balance = quantize(data.credit_balance - amount)
    if data.credit_balance < data.locked_for_sale:
        raise InvalidLockStateError("Invalid locked_for_sale state")
    return await uow.replace(holding)


async def holding_lock(uow: UnitOfWork, holding: Holding, amount: Decimal) -> Holding:
    amount = _require_positive(amount)
    new_locked = quantize(holding.data.locked_for_sale + amount)
    if new_locked > holding.data.credit_balance:
        raise InvalidLockStateError("Cannot lock more credits than the holding's balance")
    holding.data.locked_for_sale = new_locked
    return await uow.replace(holding)


async def holding_unlock(uow: UnitOfWork, holding: Holding, amount: Decimal) -> Holding:
    amount = _require_positive(amount)
    new_locked = quantize(holding.data.locked_for_sale - amount)
    if new_locked < ZERO:
        raise InvalidLockStateError("Invalid locked state")
    holding.data.locked_for_sale = new_locked
    return await uow.replace(holding)


async def holdings_get_by_org(store: Store, org_id: str) -> List[Holding]:
    return await store.find(Holding, {"org_id": org_id}, order_by="created_at")


async def holding_project_get(store: Store, holding_id: str, org_id: str) -> Tuple[Holding, Project]:
    """The project behind one of the org's holdings."""
    holding = await store.get(Holding, holding_id)
    if not holding:
        raise NotFoundError("Holding not found")
    if holding.data.org_id != org_id:
        raise AuthorizationError("Unauthorized access to holding")
    project = await store.get(Project, holding.data.project_id)
    if not project:
        raise NotFoundError("Project not found")
    return holding, project

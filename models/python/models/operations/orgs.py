from typing import Optional

from clients.store import Store, UnitOfWork
from models.entities.couchbase.orgs import Org
from models.errors import NotFoundError


async def org_get_for_update(uow: UnitOfWork, org_id: str, missing: str = "Org not found") -> Org:
    org = await uow.get(Org, org_id)
    if not org:
        raise NotFoundError(missing)
    return org


async def org_get_by_code(uow: UnitOfWork, org_code: str) -> Optional[Org]:
    return await uow.find_one(Org, org_code=org_code)


async def org_get(store: Store, org_id: str) -> Optional[Org]:
    return await store.get(Org, org_id)

from clients.store import UnitOfWork
from models.entities.couchbase.unique_keys import UniqueKey, UniqueKeyData, UniqueKeyKind


async def unique_key_claim(uow: UnitOfWork, kind: UniqueKeyKind, value: str, owner_id: str) -> UniqueKey:
    """Raises ``DocumentExistsError`` when ``value`` is already claimed for ``kind``."""
    data = UniqueKeyData(kind=kind, value=value, owner_id=owner_id)
    return await uow.insert(UniqueKey, data, key=UniqueKey.key_for(kind, value))

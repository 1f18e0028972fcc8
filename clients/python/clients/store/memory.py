"""In-memory store.

Used by the test suite and by ``LEDGER_BACKEND=memory`` for local runs.
Units of work are serialized by a single lock and stage their writes until
the work returns, so a unit that raises or times out leaves no trace.
"""

import asyncio
import copy
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from clients.couchbase.base_model import BaseCouchbaseEntityData

from .protocols import (
    DocumentExistsError,
    DocumentMissingError,
    R,
    T,
    TransactionTimeoutError,
    UnitOfWork,
    json_filters,
)


def _matches(doc: dict, filters: Dict[str, Any]) -> bool:
    return all(doc.get(field) == value for field, value in filters.items())


class InMemoryUnitOfWork:
    def __init__(self, committed: Dict[str, Dict[str, dict]]) -> None:
        self._committed = committed
        self._staged: Dict[Tuple[str, str], dict] = {}

    def _read(self, collection: str, key: str) -> Optional[dict]:
        if (collection, key) in self._staged:
            return self._staged[(collection, key)]
        return self._committed.get(collection, {}).get(key)

    def _scan(self, collection: str) -> Iterator[Tuple[str, dict]]:
        seen = set()
        for (coll, key), doc in self._staged.items():
            if coll == collection:
                seen.add(key)
                yield key, doc
        for key, doc in self._committed.get(collection, {}).items():
            if key not in seen:
                yield key, doc

    async def get(self, model: type[T], key: str) -> Optional[T]:
        doc = self._read(model.collection_name(), key)
        if doc is None:
            return None
        return model.from_document(key, copy.deepcopy(doc))

    async def insert(self, model: type[T], data: BaseCouchbaseEntityData, key: Optional[str] = None) -> T:
        collection = model.collection_name()
        key = key or str(uuid.uuid4())
        if self._read(collection, key) is not None:
            raise DocumentExistsError(collection, key)
        model.stamp(data, creating=True)
        self._staged[(collection, key)] = model.to_document(data)
        return model(id=key, data=data)

    async def replace(self, entity: T) -> T:
        model = type(entity)
        collection = model.collection_name()
        if self._read(collection, entity.id) is None:
            raise DocumentMissingError(collection, entity.id)
        model.stamp(entity.data)
        self._staged[(collection, entity.id)] = model.to_document(entity.data)
        return entity

    async def find_one(self, model: type[T], **filters: Any) -> Optional[T]:
        wanted = json_filters(filters)
        for key, doc in self._scan(model.collection_name()):
            if _matches(doc, wanted):
                return model.from_document(key, copy.deepcopy(doc))
        return None

    def commit(self) -> int:
        for (collection, key), doc in self._staged.items():
            self._committed.setdefault(collection, {})[key] = doc
        written = len(self._staged)
        self._staged = {}
        return written


class InMemoryStore:
    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._lock = asyncio.Lock()

    async def run_in_transaction(
        self, work: Callable[[UnitOfWork], Awaitable[R]], timeout: Optional[float] = None
    ) -> R:
        async with self._lock:
            uow = InMemoryUnitOfWork(self._collections)
            try:
                result = await asyncio.wait_for(work(uow), timeout)
            except asyncio.TimeoutError:
                raise TransactionTimeoutError(f"Unit of work exceeded {timeout}s and was rolled back") from None
            uow.commit()
            return result

    async def get(self, model: type[T], key: str) -> Optional[T]:
        doc = self._collections.get(model.collection_name(), {}).get(key)
        if doc is None:
            return None
        return model.from_document(key, copy.deepcopy(doc))

    async def find(
        self,
        model: type[T],
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        wanted = json_filters(filters or {})
        rows = [
            (key, doc)
            for key, doc in self._collections.get(model.collection_name(), {}).items()
            if _matches(doc, wanted)
        ]
        if order_by:
            # nulls sort first, as in N1QL
            rows.sort(key=lambda row: (row[1].get(order_by) is not None, row[1].get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [model.from_document(key, copy.deepcopy(doc)) for key, doc in rows]

    async def upsert(self, model: type[T], key: str, data: BaseCouchbaseEntityData) -> T:
        model.stamp(data, creating=True)
        self._collections.setdefault(model.collection_name(), {})[key] = model.to_document(data)
        return model(id=key, data=data)

    def count(self, model: type[T]) -> int:
        return len(self._collections.get(model.collection_name(), {}))

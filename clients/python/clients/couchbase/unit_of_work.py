"""Couchbase-backed store using distributed ACID transactions.

Each ``run_in_transaction`` call is one Couchbase transaction. Documents read
through the unit of work are tracked so that a later ``replace`` carries the
read's CAS; a concurrent writer to the same document makes the attempt
conflict and the SDK re-runs the work from the top. Errors raised by the work
itself (domain validation) are not retried and reach the caller unchanged.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from couchbase.exceptions import (
    DocumentExistsException,
    DocumentNotFoundException,
    TransactionExpired,
    TransactionFailed,
)
from couchbase.options import TransactionOptions, TransactionQueryOptions

from clients.store.protocols import (
    DocumentExistsError,
    DocumentMissingError,
    R,
    T,
    TransactionTimeoutError,
    UnitOfWork,
    json_filters,
)

from .base_model import BaseCouchbaseEntityData
from .config import get_cluster

logger = logging.getLogger(__name__)


def _where(filters: Dict[str, Any], alias: str = "d") -> str:
    clauses = []
    for field, value in filters.items():
        if value is None:
            clauses.append(f"{alias}.`{field}` IS NULL")
        else:
            clauses.append(f"{alias}.`{field}` = ${field}")
    return " AND ".join(clauses) if clauses else "TRUE"


def _params(filters: Dict[str, Any]) -> Dict[str, Any]:
    return {field: value for field, value in filters.items() if value is not None}


class CouchbaseUnitOfWork:
    def __init__(self, ctx) -> None:
        self._ctx = ctx
        self._reads: Dict[Tuple[str, str], Any] = {}

    async def _collection(self, model: type[T]):
        return await model.get_keyspace().get_collection()

    async def get(self, model: type[T], key: str) -> Optional[T]:
        collection = await self._collection(model)
        try:
            result = await self._ctx.get(collection, key)
        except DocumentNotFoundException:
            return None
        self._reads[(model.collection_name(), key)] = result
        return model.from_document(key, result.content_as[dict])

    async def insert(self, model: type[T], data: BaseCouchbaseEntityData, key: Optional[str] = None) -> T:
        key = key or str(uuid.uuid4())
        model.stamp(data, creating=True)
        collection = await self._collection(model)
        try:
            result = await self._ctx.insert(collection, key, model.to_document(data))
        except DocumentExistsException:
            raise DocumentExistsError(model.collection_name(), key) from None
        self._reads[(model.collection_name(), key)] = result
        return model(id=key, data=data)

    async def replace(self, entity: T) -> T:
        model = type(entity)
        read = self._reads.get((model.collection_name(), entity.id))
        if read is None:
            # replace needs the transactional read of the same document
            fresh = await self.get(model, entity.id)
            if fresh is None:
                raise DocumentMissingError(model.collection_name(), entity.id)
            read = self._reads[(model.collection_name(), entity.id)]
        model.stamp(entity.data)
        result = await self._ctx.replace(read, model.to_document(entity.data))
        self._reads[(model.collection_name(), entity.id)] = result
        return entity

    async def find_one(self, model: type[T], **filters: Any) -> Optional[T]:
        wanted = json_filters(filters)
        keyspace = model.get_keyspace()
        statement = f"SELECT RAW META(d).id FROM {keyspace} AS d WHERE {_where(wanted)} LIMIT 1"
        result = await self._ctx.query(statement, TransactionQueryOptions(named_parameters=_params(wanted)))
        for key in result.rows():
            return await self.get(model, key)
        return None


class CouchbaseStore:
    def __init__(self, default_timeout: Optional[float] = None) -> None:
        self._default_timeout = default_timeout

    async def run_in_transaction(
        self, work: Callable[[UnitOfWork], Awaitable[R]], timeout: Optional[float] = None
    ) -> R:
        cluster = await get_cluster()
        outcome: Dict[str, Any] = {}

        async def _attempt(ctx) -> None:
            outcome.clear()
            try:
                outcome["result"] = await work(CouchbaseUnitOfWork(ctx))
            except Exception as exc:
                outcome["error"] = exc
                raise

        timeout = timeout or self._default_timeout
        try:
            if timeout:
                await cluster.transactions.run(_attempt, TransactionOptions(timeout=timedelta(seconds=timeout)))
            else:
                await cluster.transactions.run(_attempt)
        except TransactionExpired:
            raise TransactionTimeoutError(f"Transaction exceeded {timeout}s and was rolled back") from None
        except TransactionFailed:
            if "error" in outcome:
                raise outcome["error"] from None
            raise
        return outcome["result"]

    async def get(self, model: type[T], key: str) -> Optional[T]:
        return await model.get(key)

    async def find(
        self,
        model: type[T],
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        wanted = json_filters(filters or {})
        keyspace = model.get_keyspace()
        query = f"SELECT META(d).id AS id, d AS doc FROM {keyspace} AS d WHERE {_where(wanted)}"
        if order_by:
            query += f" ORDER BY d.`{order_by}` {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        rows = await keyspace.query(query, **_params(wanted))
        return [model.from_document(row["id"], row["doc"]) for row in rows if row.get("doc")]

    async def upsert(self, model: type[T], key: str, data: BaseCouchbaseEntityData) -> T:
        model.stamp(data, creating=True)
        result = await model.get_keyspace().upsert(key, model.to_document(data))
        return model(id=key, data=data, cas=result.cas)

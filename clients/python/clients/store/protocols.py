"""Storage protocols the ledger operations are written against.

Operations never touch a database handle directly. Each settlement runs as
``await store.run_in_transaction(work)`` where ``work`` receives a
``UnitOfWork``: everything written through it commits together or not at
all. Two stores implement this: ``clients.couchbase.CouchbaseStore`` and
``clients.store.InMemoryStore``.

Filters are equality matches on top-level document fields, compared in
their JSON form (decimals as strings, ``None`` as null).
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar, runtime_checkable

from pydantic_core import to_jsonable_python

from clients.couchbase.base_model import BaseCouchbaseEntityData, BaseModelCouchbase

T = TypeVar("T", bound=BaseModelCouchbase)
R = TypeVar("R")


class StoreError(Exception):
    """Base class for storage failures."""


class DocumentExistsError(StoreError):
    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"Document {collection}/{key} already exists")
        self.collection = collection
        self.key = key


class DocumentMissingError(StoreError):
    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"Document {collection}/{key} does not exist")
        self.collection = collection
        self.key = key


class TransactionTimeoutError(StoreError):
    """The unit of work did not finish in time and was rolled back."""


def json_filters(filters: Dict[str, Any]) -> Dict[str, Any]:
    return {field: to_jsonable_python(value) for field, value in filters.items()}


@runtime_checkable
class UnitOfWork(Protocol):
    async def get(self, model: type[T], key: str) -> Optional[T]: ...

    async def insert(self, model: type[T], data: BaseCouchbaseEntityData, key: Optional[str] = None) -> T: ...

    async def replace(self, entity: T) -> T: ...

    async def find_one(self, model: type[T], **filters: Any) -> Optional[T]: ...


@runtime_checkable
class Store(Protocol):
    async def run_in_transaction(
        self, work: Callable[[UnitOfWork], Awaitable[R]], timeout: Optional[float] = None
    ) -> R: ...

    async def get(self, model: type[T], key: str) -> Optional[T]: ...

    async def find(
        self,
        model: type[T],
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]: ...

    async def upsert(self, model: type[T], key: str, data: BaseCouchbaseEntityData) -> T: ...

from .protocols import (
    DocumentExistsError,
    DocumentMissingError,
    Store,
    StoreError,
    TransactionTimeoutError,
    UnitOfWork,
    json_filters,
)
from .memory import InMemoryStore, InMemoryUnitOfWork

__all__ = [
    "DocumentExistsError",
    "DocumentMissingError",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "Store",
    "StoreError",
    "TransactionTimeoutError",
    "UnitOfWork",
    "json_filters",
]

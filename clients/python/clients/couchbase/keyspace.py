from dataclasses import dataclass
from typing import Iterable, List, Optional
from couchbase.exceptions import CollectionAlreadyExistsException
from couchbase.result import MutationResult
from couchbase.options import QueryOptions
from .config import get_cluster, DEFAULT_BUCKET_NAME

@dataclass
class Keyspace:
    bucket_name: str
    scope_name: str
    collection_name: str

    @classmethod
    def from_string(cls, keyspace: str) -> 'Keyspace':
        parts = keyspace.split('.')
        if len(parts) != 3:
            raise ValueError(
                "Invalid keyspace format. Expected 'bucket_name.scope_name.collection_name', "
                f"got '{keyspace}'"
            )
        return cls(*parts)

    def __str__(self) -> str:
        return f"`{self.bucket_name}`.`{self.scope_name}`.`{self.collection_name}`"

    async def query(self, query: str, **kwargs) -> list:
        """Run a N1QL statement; ``${keyspace}`` expands to this keyspace and
        keyword arguments become named parameters."""
        cluster = await get_cluster()
        query = query.replace("${keyspace}", str(self))
        options = QueryOptions(named_parameters=kwargs) if kwargs else QueryOptions()
        result = cluster.query(query, options)
        return [row async for row in result]

    async def get_scope(self):
        cluster = await get_cluster()
        bucket = cluster.bucket(self.bucket_name)
        return bucket.scope(self.scope_name)

    async def get_collection(self):
        scope = await self.get_scope()
        return scope.collection(self.collection_name)

    async def upsert(self, key: str, value: dict, **kwargs) -> MutationResult:
        """Insert or update a document (idempotent write)."""
        collection = await self.get_collection()
        return await collection.upsert(key, value, **kwargs)

def get_keyspace(collection_name: str, scope_name: Optional[str] = "_default", bucket_name: Optional[str] = None) -> Keyspace:
    """
    Create a Keyspace instance with optional scope and bucket parameters.

    Args:
        collection_name: Name of the collection
        scope_name: Name of the scope (defaults to "_default")
        bucket_name: Name of the bucket (defaults to COUCHBASE_BUCKET)

    Returns:
        Keyspace instance
    """
    return Keyspace(bucket_name or DEFAULT_BUCKET_NAME, scope_name, collection_name)

async def ensure_collections(collection_names: Iterable[str], scope_name: str = "_default") -> List[str]:
    """Create any missing collections (and a primary index on each) in the
    default bucket. Returns the names that were newly created."""
    cluster = await get_cluster()
    bucket = cluster.bucket(DEFAULT_BUCKET_NAME)
    manager = bucket.collections()
    created = []
    for name in collection_names:
        try:
            await manager.create_collection(scope_name, name)
            created.append(name)
        except CollectionAlreadyExistsException:
            pass
        keyspace = get_keyspace(name, scope_name)
        await keyspace.query(f"CREATE PRIMARY INDEX IF NOT EXISTS ON {keyspace}")
    return created

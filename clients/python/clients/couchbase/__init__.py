from .config import (
    USERNAME,
    DEFAULT_BUCKET_NAME,
    HOST,
    PROTOCOL,
    get_cluster,
    get_default_bucket,
    check_connection,
    validate_config,
)
from .keyspace import (
    Keyspace,
    get_keyspace,
    ensure_collections,
)
from .base_model import (
    BaseModelCouchbase,
    BaseCouchbaseEntityData,
    DataT,
    T,
    iso_timestamp,
)

# The transactional store lives in clients.couchbase.unit_of_work; it is not
# re-exported here because it depends on clients.store, which imports this package.

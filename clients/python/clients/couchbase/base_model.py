from datetime import datetime, timezone
from typing import Optional, TypeVar, Generic, ClassVar
from pydantic import BaseModel, field_serializer
from couchbase.exceptions import DocumentNotFoundException
from .keyspace import Keyspace, get_keyspace

def iso_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width ISO form (always six fractional digits) so stored timestamps
    order correctly as strings."""
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")

class BaseCouchbaseEntityData(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by_user_id: Optional[str] = None

    @field_serializer("created_at", "updated_at", when_used="json")
    def serialize_timestamps(self, value: Optional[datetime]) -> Optional[str]:
        return iso_timestamp(value)

DataT = TypeVar("DataT", bound=BaseCouchbaseEntityData)
T = TypeVar("T", bound="BaseModelCouchbase")

class BaseModelCouchbase(BaseModel, Generic[DataT]):
    id: str
    data: DataT
    cas: Optional[int] = None

    _collection_name: ClassVar[str] = ""

    @staticmethod
    def to_document(data: BaseCouchbaseEntityData) -> dict:
        """
        Converts entity data to a JSON-safe dict for storage,
        ensuring fields marked with exclude=True are included.
        """
        doc = data.model_dump(mode='json')
        for field_name, field_info in type(data).model_fields.items():
            if field_info.exclude:
                value = getattr(data, field_name)
                if value is not None:
                    doc[field_name] = value
        return doc

    @staticmethod
    def stamp(data: BaseCouchbaseEntityData, user_id: Optional[str] = None, creating: bool = False) -> None:
        """Set audit timestamps before a write."""
        now = datetime.now(timezone.utc)
        if creating and data.created_at is None:
            data.created_at = now
        data.updated_at = now
        if user_id:
            data.created_by_user_id = user_id

    @classmethod
    def collection_name(cls) -> str:
        if not cls._collection_name:
            raise ValueError(f"_collection_name not set for {cls.__name__}")
        return cls._collection_name

    @classmethod
    def get_keyspace(cls) -> Keyspace:
        return get_keyspace(cls.collection_name())

    @classmethod
    def from_document(cls: type[T], id: str, doc: dict, cas: Optional[int] = None) -> T:
        return cls(id=id, data=doc, cas=cas)

    @classmethod
    async def get(cls: type[T], id: str) -> Optional[T]:
        try:
            collection = await cls.get_keyspace().get_collection()
            result = await collection.get(id)
            return cls.from_document(id, result.content_as[dict], cas=result.cas)
        except DocumentNotFoundException:
            return None

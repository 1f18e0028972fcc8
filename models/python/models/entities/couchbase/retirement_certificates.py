from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal
from pydantic import field_serializer
from clients.couchbase import BaseModelCouchbase, BaseCouchbaseEntityData, iso_timestamp


class RetirementCertificateData(BaseCouchbaseEntityData):
    org_id: str
    project_id: str
    amount: Decimal
    retired_at: datetime
    purpose: Optional[str] = None
    beneficiary: Optional[str] = None
    transaction_id: str
    certificate_number: str
    status: Literal["issued"] = "issued"

    @field_serializer("retired_at", when_used="json")
    def serialize_retired_at(self, value: datetime) -> Optional[str]:
        return iso_timestamp(value)


class RetirementCertificate(BaseModelCouchbase[RetirementCertificateData]):
    _collection_name = "retirement_certificates"

import secrets
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from clients.store import DocumentExistsError, Store, UnitOfWork
from models.amounts import quantize
from models.entities.couchbase.retirement_certificates import RetirementCertificate, RetirementCertificateData
from models.errors import ConflictError
from models.operations.unique_keys import unique_key_claim


def certificate_number_generate() -> str:
    return f"CERT-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


async def retirement_certificate_issue(
    uow: UnitOfWork,
    org_id: str,
    project_id: str,
    amount: Decimal,
    transaction_id: str,
    purpose: Optional[str] = None,
    beneficiary: Optional[str] = None,
) -> RetirementCertificate:
    data = RetirementCertificateData(
        org_id=org_id,
        project_id=project_id,
        amount=quantize(amount),
        retired_at=datetime.now(timezone.utc),
        purpose=purpose,
        beneficiary=beneficiary,
        transaction_id=transaction_id,
        certificate_number=certificate_number_generate(),
    )
    certificate = await uow.insert(RetirementCertificate, data)
    try:
        await unique_key_claim(uow, "certificate_number", data.certificate_number, certificate.id)
    except DocumentExistsError:
        raise ConflictError(f"Certificate number {data.certificate_number} already issued") from None
    return certificate


async def retirements_get_by_org(store: Store, org_id: str) -> List[RetirementCertificate]:
    return await store.find(RetirementCertificate, {"org_id": org_id}, order_by="retired_at", descending=True)


async def retirement_get(store: Store, certificate_id: str) -> Optional[RetirementCertificate]:
    return await store.get(RetirementCertificate, certificate_id)

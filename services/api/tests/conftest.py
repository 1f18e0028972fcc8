"""Shared fixtures: an in-memory ledger seeded with three orgs and one project.

Org A starts with 100 credits of the project; B and C hold nothing.
"""

import asyncio
from decimal import Decimal
from typing import Tuple

import pytest
from hypothesis import HealthCheck, settings

from clients.store import InMemoryStore
from models.actors import Actor
from models.entities.couchbase.holdings import Holding, HoldingData
from models.entities.couchbase.orgs import Org, OrgData
from models.entities.couchbase.projects import Project, ProjectData
from models.operations.payments import PaymentReceipt

settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.register_profile(
    "dev",
    max_examples=40,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.load_profile("dev")

ORG_A = "0b0c5c1e-7d1f-4d7e-9a51-2f3d8f7c1a01"
ORG_B = "0b0c5c1e-7d1f-4d7e-9a51-2f3d8f7c1a02"
ORG_C = "0b0c5c1e-7d1f-4d7e-9a51-2f3d8f7c1a03"
CODE_A = "AAA-111111"
CODE_B = "BBB-123456"
CODE_C = "CCC-654321"
PROJECT = "5e6f7a8b-1c2d-4e3f-8a9b-0c1d2e3f4a5b"
OTHER_PROJECT = "5e6f7a8b-1c2d-4e3f-8a9b-0c1d2e3f4a5c"

ACTOR_A = Actor(id="user-a", role="seller", org_id=ORG_A)
ACTOR_B = Actor(id="user-b", role="buyer", org_id=ORG_B)
ACTOR_C = Actor(id="user-c", role="both", org_id=ORG_C)


def run(coro):
    return asyncio.run(coro)


def receipt(payment_intent_id: str = "pi_1", event_id: str = "evt_1") -> PaymentReceipt:
    return PaymentReceipt(payment_intent_id=payment_intent_id, event_id=event_id, amount_paid_cents=0, currency="usd")


def balance(store: InMemoryStore, org_id: str, project_id: str = PROJECT) -> Tuple[Decimal, Decimal]:
    """(credit_balance, locked_for_sale), or (0, 0) when the org has no holding."""
    holding = run(store.get(Holding, Holding.key_for(org_id, project_id)))
    if holding is None:
        return Decimal("0.00"), Decimal("0.00")
    return holding.data.credit_balance, holding.data.locked_for_sale


async def seed_ledger(store: InMemoryStore, starting_balance: str = "100.00") -> InMemoryStore:
    for org_id, code, name in ((ORG_A, CODE_A, "Org A"), (ORG_B, CODE_B, "Org B"), (ORG_C, CODE_C, "Org C")):
        await store.upsert(Org, org_id, OrgData(org_name=name, org_code=code, country_code="SG"))
    for project_id, name in ((PROJECT, "Mangrove Restoration"), (OTHER_PROJECT, "Solar Park")):
        await store.upsert(
            Project,
            project_id,
            ProjectData(name=name, registry="Verra", country="VN", methodology="VM0033", vintage_year=2023),
        )
    await store.upsert(
        Holding,
        Holding.key_for(ORG_A, PROJECT),
        HoldingData(org_id=ORG_A, project_id=PROJECT, credit_balance=Decimal(starting_balance)),
    )
    return store


@pytest.fixture
def store() -> InMemoryStore:
    return run(seed_ledger(InMemoryStore()))

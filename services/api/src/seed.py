"""
Registry seed data for local development.

Populates the ledger store with:
- 4 organizations
- 5 registry projects
- registry-owned open listings (seller_id = null) with their CREATED events
- starting holdings for each organization

Keys are derived deterministically, so running the seed twice overwrites the
same documents instead of duplicating them.

Run standalone:   python seed.py [--memory]
Or via API:       POST /api/v1/seed
"""

import asyncio
import uuid
from decimal import Decimal
from typing import Dict

from clients.store import Store
from models.entities.couchbase.holdings import Holding, HoldingData
from models.entities.couchbase.listing_events import ListingEvent, ListingEventData
from models.entities.couchbase.listings import Listing, ListingData
from models.entities.couchbase.orgs import Org, OrgData
from models.entities.couchbase.projects import Project, ProjectData
from models.operations.projects import project_listing_metadata

from utils import log

logger = log.get_logger(__name__)

SEED_NAMESPACE = uuid.UUID("6f1c2a4e-3b8d-4c55-9a57-0e2f51d3c8a1")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def seed_id(name: str) -> str:
    return str(uuid.uuid5(SEED_NAMESPACE, name))


# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

ORGS = [
    {"key": "org-greenforest", "org_name": "GreenForest Carbon Co.", "org_code": "GFC-100001", "country_code": "BR"},
    {"key": "org-solarcredits", "org_name": "SolarCredits International", "org_code": "SCI-100002", "country_code": "IN"},
    {"key": "org-techcorp", "org_name": "TechCorp Inc.", "org_code": "TCI-100003", "country_code": "US"},
    {"key": "org-airline", "org_name": "European Airline Group", "org_code": "EAG-100004", "country_code": "DE"},
]

PROJECTS = [
    {
        "key": "project-amazon-redd",
        "name": "Amazon Basin REDD+ Conservation",
        "registry": "Verra",
        "category": "Forest",
        "project_type": "REDD+",
        "country": "BR",
        "methodology": "VM0015",
        "vintage_year": 2023,
    },
    {
        "key": "project-rajasthan-solar",
        "name": "Rajasthan Solar Park Phase II",
        "registry": "Gold Standard",
        "category": "Renewable Energy",
        "project_type": "Solar",
        "country": "IN",
        "methodology": "ACM0002",
        "vintage_year": 2022,
    },
    {
        "key": "project-kenya-cookstoves",
        "name": "Kenya Clean Cookstoves",
        "registry": "Gold Standard",
        "category": "Energy Efficiency",
        "project_type": "Cookstoves",
        "country": "KE",
        "methodology": "GS-TPDDTEC",
        "vintage_year": 2023,
    },
    {
        "key": "project-iceland-ccs",
        "name": "Iceland Direct Air Capture",
        "registry": "Puro.earth",
        "category": "GHG Management",
        "project_type": "DAC",
        "country": "IS",
        "methodology": "Puro Geologically Stored Carbon",
        "vintage_year": 2024,
    },
    {
        "key": "project-vietnam-mangroves",
        "name": "Mekong Delta Mangrove Restoration",
        "registry": "Verra",
        "category": "Forest",
        "project_type": "ARR",
        "country": "VN",
        "methodology": "VM0033",
        "vintage_year": 2022,
    },
]

# (project key, credits, price per credit)
REGISTRY_LISTINGS = [
    ("project-amazon-redd", "5000.00", "12.50"),
    ("project-rajasthan-solar", "8000.00", "6.75"),
    ("project-kenya-cookstoves", "2500.00", "9.20"),
    ("project-iceland-ccs", "300.00", "145.00"),
    ("project-vietnam-mangroves", "1200.00", "18.40"),
]

# (org key, project key, balance)
HOLDINGS = [
    ("org-greenforest", "project-amazon-redd", "1500.00"),
    ("org-greenforest", "project-vietnam-mangroves", "400.00"),
    ("org-solarcredits", "project-rajasthan-solar", "2200.00"),
    ("org-techcorp", "project-kenya-cookstoves", "150.00"),
    ("org-airline", "project-rajasthan-solar", "600.00"),
]


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

async def run_seed(store: Store) -> Dict[str, int]:
    """Upsert all seed data. Returns summary counts."""
    counts = {"orgs": 0, "projects": 0, "listings": 0, "listing_events": 0, "holdings": 0}

    for org in ORGS:
        fields = dict(org)
        await store.upsert(Org, seed_id(fields.pop("key")), OrgData(**fields))
        counts["orgs"] += 1
    logger.info(f"Seeded {counts['orgs']} orgs")

    projects = {}
    for project in PROJECTS:
        fields = dict(project)
        key = fields.pop("key")
        projects[key] = await store.upsert(Project, seed_id(key), ProjectData(**fields))
        counts["projects"] += 1
    logger.info(f"Seeded {counts['projects']} projects")

    for project_key, credits, price in REGISTRY_LISTINGS:
        project = projects[project_key]
        listing_id = seed_id(f"listing:{project_key}")
        data = ListingData(
            project_id=project.id,
            seller_id=None,
            credits_available=Decimal(credits),
            price_per_credit=Decimal(price),
            status="open",
            **project_listing_metadata(project),
        )
        await store.upsert(Listing, listing_id, data)
        counts["listings"] += 1

        event = ListingEventData(
            listing_id=listing_id,
            event_type="CREATED",
            event_data={"credits_available": credits, "price_per_credit": price, "source": "registry"},
        )
        await store.upsert(ListingEvent, seed_id(f"event:{listing_id}:CREATED"), event)
        counts["listing_events"] += 1
    logger.info(f"Seeded {counts['listings']} registry listings")

    for org_key, project_key, balance in HOLDINGS:
        org_id = seed_id(org_key)
        project_id = projects[project_key].id
        data = HoldingData(org_id=org_id, project_id=project_id, credit_balance=Decimal(balance))
        await store.upsert(Holding, Holding.key_for(org_id, project_id), data)
        counts["holdings"] += 1
    logger.info(f"Seeded {counts['holdings']} holdings")

    return counts


# ---------------------------------------------------------------------------
# Standalone entrypoint
# ---------------------------------------------------------------------------

async def _main():
    import sys

    if "--memory" in sys.argv:
        from clients.store import InMemoryStore

        store = InMemoryStore()
    else:
        from clients.couchbase import check_connection, ensure_collections
        from clients.couchbase.unit_of_work import CouchbaseStore
        from models.entities.couchbase.collections import collection_names

        await check_connection()
        await ensure_collections(collection_names())
        store = CouchbaseStore()

    result = await run_seed(store)
    print(f"Seed complete: {result}")


if __name__ == "__main__":
    asyncio.run(_main())

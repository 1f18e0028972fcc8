"""In-memory store: staged writes, rollback and queries."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from clients.store import DocumentExistsError, DocumentMissingError, InMemoryStore, TransactionTimeoutError
from models.entities.couchbase.holdings import Holding, HoldingData
from models.entities.couchbase.listing_events import ListingEvent, ListingEventData
from models.entities.couchbase.listings import Listing, ListingData

from conftest import run


def _holding(org: str = "org-1", balance: str = "10.00") -> HoldingData:
    return HoldingData(org_id=org, project_id="p-1", credit_balance=Decimal(balance))


class TestRunInTransaction:
    def test_writes_commit_when_work_returns(self) -> None:
        store = InMemoryStore()

        async def work(uow):
            await uow.insert(Holding, _holding(), key="org-1::p-1")
            return "done"

        assert run(store.run_in_transaction(work)) == "done"
        stored = run(store.get(Holding, "org-1::p-1"))
        assert stored.data.credit_balance == Decimal("10.00")
        assert stored.data.created_at is not None

    def test_error_discards_every_staged_write(self) -> None:
        store = InMemoryStore()

        async def work(uow):
            await uow.insert(Holding, _holding("org-1"), key="org-1::p-1")
            await uow.insert(Holding, _holding("org-2"), key="org-2::p-1")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run(store.run_in_transaction(work))
        assert store.count(Holding) == 0

    def test_timeout_rolls_back(self) -> None:
        store = InMemoryStore()

        async def work(uow):
            await uow.insert(Holding, _holding(), key="org-1::p-1")
            await asyncio.sleep(1)

        with pytest.raises(TransactionTimeoutError):
            run(store.run_in_transaction(work, timeout=0.05))
        assert run(store.get(Holding, "org-1::p-1")) is None

    def test_insert_existing_key_raises(self) -> None:
        store = InMemoryStore()
        run(store.upsert(Holding, "org-1::p-1", _holding()))

        async def work(uow):
            await uow.insert(Holding, _holding(), key="org-1::p-1")

        with pytest.raises(DocumentExistsError):
            run(store.run_in_transaction(work))

    def test_insert_twice_in_one_unit_raises(self) -> None:
        store = InMemoryStore()

        async def work(uow):
            await uow.insert(Holding, _holding(), key="k")
            await uow.insert(Holding, _holding(), key="k")

        with pytest.raises(DocumentExistsError):
            run(store.run_in_transaction(work))
        assert store.count(Holding) == 0

    def test_replace_of_missing_document_raises(self) -> None:
        store = InMemoryStore()

        async def work(uow):
            await uow.replace(Holding(id="nope", data=_holding()))

        with pytest.raises(DocumentMissingError):
            run(store.run_in_transaction(work))

    def test_unit_reads_its_own_staged_writes(self) -> None:
        store = InMemoryStore()

        async def work(uow):
            holding = await uow.insert(Holding, _holding(), key="org-1::p-1")
            holding.data.credit_balance = Decimal("25.00")
            await uow.replace(holding)
            reread = await uow.get(Holding, "org-1::p-1")
            found = await uow.find_one(Holding, org_id="org-1", credit_balance=Decimal("25.00"))
            return reread.data.credit_balance, found.id

        assert run(store.run_in_transaction(work)) == (Decimal("25.00"), "org-1::p-1")

    def test_entities_read_in_a_unit_are_copies(self) -> None:
        store = InMemoryStore()
        run(store.upsert(Holding, "k", _holding()))

        async def work(uow):
            holding = await uow.get(Holding, "k")
            holding.data.credit_balance = Decimal("0.00")
            raise ValueError("abort")

        with pytest.raises(ValueError):
            run(store.run_in_transaction(work))
        assert run(store.get(Holding, "k")).data.credit_balance == Decimal("10.00")

    def test_concurrent_units_are_serialized(self) -> None:
        store = InMemoryStore()
        run(store.upsert(Holding, "k", _holding(balance="0.00")))

        async def increment(uow):
            holding = await uow.get(Holding, "k")
            current = holding.data.credit_balance
            await asyncio.sleep(0)
            holding.data.credit_balance = current + 1
            await uow.replace(holding)

        async def scenario():
            await asyncio.gather(*(store.run_in_transaction(increment) for _ in range(20)))

        run(scenario())
        assert run(store.get(Holding, "k")).data.credit_balance == Decimal("20")


class TestFind:
    def _listing(self, seller, status="open", price="5.00") -> ListingData:
        return ListingData(
            project_id="p-1",
            seller_id=seller,
            credits_available=Decimal("1.00"),
            price_per_credit=Decimal(price),
            status=status,
        )

    def test_filters_match_json_form(self) -> None:
        store = InMemoryStore()
        run(store.upsert(Listing, "l1", self._listing("s1", price="5.00")))
        run(store.upsert(Listing, "l2", self._listing("s1", price="6.00")))
        run(store.upsert(Listing, "l3", self._listing(None)))

        by_price = run(store.find(Listing, {"price_per_credit": Decimal("5.00")}))
        assert [listing.id for listing in by_price] == ["l1"]
        registry = run(store.find(Listing, {"seller_id": None}))
        assert [listing.id for listing in registry] == ["l3"]

    def test_order_and_limit(self) -> None:
        store = InMemoryStore()
        for key, price in (("a", "3.00"), ("b", "1.00"), ("c", "2.00")):
            run(store.upsert(Listing, key, self._listing("s1", price=price)))

        ordered = run(store.find(Listing, order_by="price_per_credit"))
        assert [listing.id for listing in ordered] == ["b", "c", "a"]
        top = run(store.find(Listing, order_by="price_per_credit", descending=True, limit=2))
        assert [listing.id for listing in top] == ["a", "c"]

    def test_timestamps_order_within_the_same_second(self) -> None:
        store = InMemoryStore()
        stamps = {
            "whole-second": datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            "half-past": datetime(2026, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc),
            "just-before": datetime(2026, 1, 1, 11, 59, 59, 900000, tzinfo=timezone.utc),
        }
        for key, created_at in stamps.items():
            data = ListingEventData(listing_id="l-1", event_type="UPDATED", created_at=created_at)
            run(store.upsert(ListingEvent, key, data))

        events = run(store.find(ListingEvent, {"listing_id": "l-1"}, order_by="created_at"))
        assert [e.id for e in events] == ["just-before", "whole-second", "half-past"]
        assert store._collections["listing_events"]["whole-second"]["created_at"] == "2026-01-01T12:00:00.000000+00:00"

"""Property tests: random operation sequences never break the ledger's books.

After every step, whether it succeeded or was rejected:
- 0 <= locked_for_sale <= credit_balance for every holding
- credits are conserved: total balances + total retired == total issued
- a seller's lock equals the inventory of their open listings
"""

from decimal import Decimal
from typing import List

from hypothesis import given
from hypothesis import strategies as st

from clients.store import InMemoryStore
from models.entities.couchbase.holdings import Holding
from models.entities.couchbase.listings import Listing
from models.entities.couchbase.retirement_certificates import RetirementCertificate
from models.errors import MarketplaceError
from models.operations.trading import (
    trading_buy_via_webhook,
    trading_cancel_listing,
    trading_edit_listing,
    trading_retire_credits,
    trading_sell_credits,
    trading_transfer_credits,
)

from conftest import ACTOR_A, ACTOR_B, ACTOR_C, CODE_A, CODE_B, CODE_C, PROJECT, receipt, run, seed_ledger

ACTORS = [ACTOR_A, ACTOR_B, ACTOR_C]
CODES = [CODE_A, CODE_B, CODE_C]
ISSUED = Decimal("100.00")

amounts = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("70"), places=2)
prices = st.sampled_from([Decimal("5.00"), Decimal("7.50")])
party = st.integers(min_value=0, max_value=2)
pick = st.integers(min_value=0, max_value=20)

steps = st.one_of(
    st.tuples(st.just("sell"), party, amounts, prices),
    st.tuples(st.just("buy"), pick, party, amounts),
    st.tuples(st.just("transfer"), party, party, amounts),
    st.tuples(st.just("retire"), party, amounts),
    st.tuples(st.just("cancel"), pick, party),
    st.tuples(st.just("edit"), pick, party, amounts),
)


def _listing_ids(store: InMemoryStore) -> List[str]:
    return sorted(store._collections.get(Listing.collection_name(), {}))


def _pick(store: InMemoryStore, index: int):
    ids = _listing_ids(store)
    return ids[index % len(ids)] if ids else "missing"


async def _apply(store: InMemoryStore, step, n: int) -> None:
    kind = step[0]
    if kind == "sell":
        _, who, amount, price = step
        await trading_sell_credits(store, ACTORS[who], PROJECT, amount, price)
    elif kind == "buy":
        _, index, who, amount = step
        await trading_buy_via_webhook(store, _pick(store, index), ACTORS[who].org_id, amount, receipt(f"pi_{n}", f"evt_{n}"))
    elif kind == "transfer":
        _, who, to, amount = step
        await trading_transfer_credits(store, ACTORS[who], PROJECT, CODES[to], amount)
    elif kind == "retire":
        _, who, amount = step
        await trading_retire_credits(store, ACTORS[who], PROJECT, amount)
    elif kind == "cancel":
        _, index, who = step
        await trading_cancel_listing(store, ACTORS[who], _pick(store, index))
    else:
        _, index, who, amount = step
        await trading_edit_listing(store, ACTORS[who], _pick(store, index), new_quantity=amount)


def _check_books(store: InMemoryStore) -> None:
    holdings = run(store.find(Holding))
    listings = run(store.find(Listing, {"status": "open"}))
    retired = run(store.find(RetirementCertificate))

    for holding in holdings:
        assert Decimal("0") <= holding.data.locked_for_sale <= holding.data.credit_balance

    total = sum((h.data.credit_balance for h in holdings), Decimal("0"))
    total_retired = sum((c.data.amount for c in retired), Decimal("0"))
    assert total + total_retired == ISSUED

    for holding in holdings:
        listed = sum(
            (
                listing.data.credits_available
                for listing in listings
                if listing.data.seller_id == holding.data.org_id and listing.data.project_id == holding.data.project_id
            ),
            Decimal("0"),
        )
        assert listed == holding.data.locked_for_sale


class TestLedgerInvariants:
    @given(st.lists(steps, max_size=25))
    def test_random_operations_keep_books_balanced(self, sequence) -> None:
        store = run(seed_ledger(InMemoryStore()))
        for n, step in enumerate(sequence):
            try:
                run(_apply(store, step, n))
            except MarketplaceError:
                pass
            _check_books(store)

    @given(amounts)
    def test_retire_reduces_supply_by_exact_amount(self, amount) -> None:
        store = run(seed_ledger(InMemoryStore()))
        run(trading_retire_credits(store, ACTOR_A, PROJECT, amount))
        holdings = run(store.find(Holding))
        assert sum((h.data.credit_balance for h in holdings), Decimal("0")) == ISSUED - amount

    @given(st.lists(amounts, min_size=1, max_size=8))
    def test_partial_fills_drain_listing_exactly(self, fills) -> None:
        store = run(seed_ledger(InMemoryStore()))
        listing_id = run(trading_sell_credits(store, ACTOR_A, PROJECT, Decimal("100"), Decimal("5"))).listing_id
        bought = Decimal("0.00")
        for n, amount in enumerate(fills):
            try:
                run(trading_buy_via_webhook(store, listing_id, ACTOR_B.org_id, amount, receipt(f"pi_{n}", f"evt_{n}")))
                bought += amount
            except MarketplaceError:
                pass
        listing = run(store.get(Listing, listing_id))
        assert listing.data.credits_available == Decimal("100.00") - bought
        assert (listing.data.status == "closed") == (bought == Decimal("100.00"))

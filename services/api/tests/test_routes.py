"""HTTP surface: trading routes, read routes, the Stripe webhook and error mapping."""

import hashlib
import hmac
import json
import time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from clients.store import InMemoryStore, TransactionTimeoutError
from main import create_app
from models.entities.couchbase.holdings import Holding
from models.entities.couchbase.payments import Payment
from models.operations.listings import listing_create
from routes.dependencies import current_actor_get

from conftest import ACTOR_A, ACTOR_B, CODE_A, CODE_B, ORG_A, ORG_B, PROJECT, balance, run, seed_ledger

SECRET = "whsec_route_secret"


@pytest.fixture
def ledger() -> InMemoryStore:
    return run(seed_ledger(InMemoryStore()))


@pytest.fixture
def make_client(ledger, monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("AUTH_OIDC_JWK_URL", raising=False)
    clients = []

    def _make(actor=ACTOR_A) -> TestClient:
        app = create_app(store=ledger)
        app.dependency_overrides[current_actor_get] = lambda: actor
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


def _webhook(client: TestClient, event: dict, secret: str = SECRET, signed: bool = True):
    payload = json.dumps(event)
    headers = {"content-type": "application/json"}
    if signed:
        timestamp = int(time.time())
        digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
        headers["stripe-signature"] = f"t={timestamp},v1={digest}"
    return client.post("/api/v1/stripe/webhook", content=payload, headers=headers)


def _paid(listing_id: str, amount: str, intent_id: str = "pi_route_1", buyer: str = ORG_B) -> dict:
    return {
        "id": f"evt_{intent_id}",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "amount_received": 0,
                "currency": "usd",
                "status": "succeeded",
                "metadata": {"listing_id": listing_id, "buyer_org_id": buyer, "credits_amount": amount},
            }
        },
    }


def _listing_without_seller(store: InMemoryStore, project_id: str):
    async def create(uow):
        return await listing_create(uow, None, project_id, Decimal("100"), Decimal("9.00"), metadata={"registry": "Verra"})

    return run(store.run_in_transaction(create))


def _sell(client: TestClient, amount: str = "40", price: str = "5.00") -> str:
    response = client.post("/api/v1/trading/sell-credits", json={"project_id": PROJECT, "amount": amount, "price": price})
    assert response.status_code == 200, response.text
    return response.json()["listing_id"]


# ---------------------------------------------------------------------------
# Trading
# ---------------------------------------------------------------------------


class TestTradingRoutes:
    def test_sell_then_read_back(self, make_client, ledger) -> None:
        seller = make_client(ACTOR_A)
        listing_id = _sell(seller)

        assert seller.get(f"/api/v1/listings/{listing_id}").json()["credits_available"] == "40.00"
        assert [listing["listing_id"] for listing in seller.get("/api/v1/listings/open").json()] == [listing_id]
        assert [listing["listing_id"] for listing in seller.get("/api/v1/listings/mine?status=open").json()] == [listing_id]
        holdings = seller.get("/api/v1/holdings").json()
        assert holdings[0]["credit_balance"] == "100.00"
        assert holdings[0]["locked_for_sale"] == "40.00"
        assert holdings[0]["available"] == "60.00"
        events = seller.get(f"/api/v1/listings/{listing_id}/events").json()
        assert [e["event_type"] for e in events] == ["CREATED"]

    @pytest.mark.parametrize("amount", ["0", "-1", "1.234", "abc", "1e30"])
    def test_invalid_amount_is_rejected(self, make_client, amount) -> None:
        client = make_client()
        response = client.post(
            "/api/v1/trading/sell-credits", json={"project_id": PROJECT, "amount": amount, "price": "5"}
        )
        assert response.status_code == 422

    def test_insufficient_credits_maps_to_400(self, make_client, ledger) -> None:
        client = make_client()
        response = client.post(
            "/api/v1/trading/transfer-credits", json={"project_id": PROJECT, "to_org_code": CODE_B, "amount": "1000"}
        )
        assert response.status_code == 400
        assert "Insufficient" in response.json()["detail"]
        assert balance(ledger, ORG_A) == (Decimal("100.00"), Decimal("0.00"))

    def test_transfer_and_transactions(self, make_client, ledger) -> None:
        sender = make_client(ACTOR_A)
        response = sender.post(
            "/api/v1/trading/transfer-credits", json={"project_id": PROJECT, "to_org_code": CODE_B, "amount": "30"}
        )
        assert response.status_code == 200
        assert response.json()["transferred"] == "30.00"

        receiver = make_client(ACTOR_B)
        txs = receiver.get("/api/v1/transactions").json()
        assert [(t["type"], t["amount"]) for t in txs] == [("transfer", "30.00")]

    def test_retire_and_certificate_visibility(self, make_client) -> None:
        owner = make_client(ACTOR_A)
        response = owner.post(
            "/api/v1/trading/retire-credits", json={"project_id": PROJECT, "amount": "10", "purpose": "offset"}
        )
        assert response.status_code == 200
        certificate_id = response.json()["certificate_id"]
        assert owner.get(f"/api/v1/retirements/{certificate_id}").json()["amount"] == "10.00"
        assert len(owner.get("/api/v1/retirements").json()) == 1

        other = make_client(ACTOR_B)
        assert other.get(f"/api/v1/retirements/{certificate_id}").status_code == 404

    def test_other_org_cannot_cancel(self, make_client) -> None:
        listing_id = _sell(make_client(ACTOR_A))
        response = make_client(ACTOR_B).post(f"/api/v1/listings/{listing_id}/cancel")
        assert response.status_code == 403

    def test_edit_without_changes(self, make_client) -> None:
        client = make_client()
        listing_id = _sell(client)
        assert client.patch(f"/api/v1/listings/{listing_id}", json={}).status_code == 409
        assert client.patch(f"/api/v1/listings/{listing_id}", json={"price_per_credit": "5.00"}).status_code == 409
        response = client.patch(f"/api/v1/listings/{listing_id}", json={"credits_available": "50"})
        assert response.status_code == 200
        assert response.json()["credits_available"] == "50.00"

    def test_buy_without_stripe_key(self, make_client) -> None:
        listing_id = _sell(make_client(ACTOR_A))
        response = make_client(ACTOR_B).post(
            "/api/v1/trading/buy-credits", json={"listing_id": listing_id, "amount": "10"}
        )
        assert response.status_code == 503

    def test_buy_more_than_listed(self, make_client) -> None:
        listing_id = _sell(make_client(ACTOR_A))
        response = make_client(ACTOR_B).post(
            "/api/v1/trading/buy-credits", json={"listing_id": listing_id, "amount": "41"}
        )
        assert response.status_code == 400

    def test_actor_without_org(self, make_client) -> None:
        from models.actors import Actor

        client = make_client(Actor(id="user-z"))
        assert client.get("/api/v1/holdings").status_code == 403

    def test_settlement_timeout_maps_to_504(self, make_client, monkeypatch) -> None:
        import routes.trading

        async def too_slow(*args, **kwargs):
            raise TransactionTimeoutError("Unit of work exceeded 0.1s and was rolled back")

        monkeypatch.setattr(routes.trading, "trading_sell_credits", too_slow)
        client = make_client()
        response = client.post("/api/v1/trading/sell-credits", json={"project_id": PROJECT, "amount": "1", "price": "1"})
        assert response.status_code == 504


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


class TestReadRoutes:
    def test_listing_detail_resolves_org_seller_and_project(self, make_client) -> None:
        client = make_client()
        listing_id = _sell(client)
        detail = client.get(f"/api/v1/listings/{listing_id}").json()
        assert detail["listing_id"] == listing_id
        assert detail["credits_available"] == "40.00"
        assert detail["seller"] == {
            "type": "org",
            "org_id": ORG_A,
            "org_name": "Org A",
            "org_code": CODE_A,
            "name": None,
        }
        assert detail["project"]["project_id"] == PROJECT
        assert detail["project"]["name"] == "Mangrove Restoration"

    def test_listing_detail_for_registry_listing(self, make_client, ledger) -> None:
        listing = _listing_without_seller(ledger, PROJECT)
        detail = make_client().get(f"/api/v1/listings/{listing.id}").json()
        assert detail["seller"]["type"] == "registry"
        assert detail["seller"]["name"] == "Verra"
        assert detail["seller"]["org_id"] is None

    def test_listing_detail_missing(self, make_client, ledger) -> None:
        client = make_client()
        assert client.get("/api/v1/listings/missing").status_code == 404
        orphan = _listing_without_seller(ledger, "no-such-project")
        response = client.get(f"/api/v1/listings/{orphan.id}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Project not found for listing"

    def test_projects(self, make_client) -> None:
        client = make_client()
        body = client.get("/api/v1/projects").json()
        assert body["total"] == 2
        assert [p["name"] for p in body["projects"]] == ["Mangrove Restoration", "Solar Park"]
        assert client.get("/api/v1/projects?status=retired").json() == {"projects": [], "total": 0}
        assert client.get(f"/api/v1/projects/{PROJECT}").json()["project_id"] == PROJECT
        assert client.get("/api/v1/projects/missing").status_code == 404

    def test_holding_project_is_owner_only(self, make_client) -> None:
        holding_id = Holding.key_for(ORG_A, PROJECT)
        owner = make_client(ACTOR_A).get(f"/api/v1/holdings/{holding_id}/project")
        assert owner.status_code == 200
        assert owner.json()["holding_id"] == holding_id
        assert owner.json()["project"]["name"] == "Mangrove Restoration"

        assert make_client(ACTOR_B).get(f"/api/v1/holdings/{holding_id}/project").status_code == 403
        missing = Holding.key_for(ORG_B, PROJECT)
        assert make_client(ACTOR_B).get(f"/api/v1/holdings/{missing}/project").status_code == 404


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


class TestStripeWebhookRoute:
    def test_settles_paid_purchase_once(self, make_client, ledger) -> None:
        client = make_client()
        listing_id = _sell(client)

        response = _webhook(client, _paid(listing_id, "15.00"))
        assert response.status_code == 200
        assert response.text == "ok"
        assert balance(ledger, ORG_A) == (Decimal("85.00"), Decimal("25.00"))
        assert balance(ledger, ORG_B) == (Decimal("15.00"), Decimal("0.00"))

        replay = _webhook(client, _paid(listing_id, "15.00"))
        assert replay.status_code == 200
        assert balance(ledger, ORG_B) == (Decimal("15.00"), Decimal("0.00"))
        assert ledger.count(Payment) == 1

    def test_bad_signature_is_400(self, make_client, ledger) -> None:
        client = make_client()
        listing_id = _sell(client)
        response = _webhook(client, _paid(listing_id, "15.00"), secret="whsec_wrong")
        assert response.status_code == 400
        assert balance(ledger, ORG_B) == (Decimal("0.00"), Decimal("0.00"))

    def test_missing_signature_is_400(self, make_client) -> None:
        client = make_client()
        assert _webhook(client, {"id": "evt_1", "type": "ping"}, signed=False).status_code == 400

    def test_empty_body_is_400(self, make_client) -> None:
        client = make_client()
        response = client.post("/api/v1/stripe/webhook", content=b"", headers={"stripe-signature": "t=1,v1=00"})
        assert response.status_code == 400

    def test_unrelated_event_is_acknowledged(self, make_client) -> None:
        client = make_client()
        response = _webhook(client, {"id": "evt_2", "type": "charge.refunded", "data": {"object": {}}})
        assert response.status_code == 200
        assert response.text == "ok"

    def test_malformed_metadata_is_acknowledged(self, make_client, ledger) -> None:
        client = make_client()
        response = _webhook(client, _paid("not-a-uuid", "15.00"))
        assert response.status_code == 200
        assert ledger.count(Payment) == 0

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda e: e["data"]["object"].update(metadata="oops"),
            lambda e: e.update(data=["oops"]),
            lambda e: e["data"]["object"].update(amount_received="abc"),
        ],
    )
    def test_malformed_payload_shapes_are_acknowledged(self, make_client, ledger, mutate) -> None:
        client = make_client()
        listing_id = _sell(client)
        event = _paid(listing_id, "15.00")
        mutate(event)
        response = _webhook(client, event)
        assert response.status_code == 200
        assert response.text == "ok"
        assert ledger.count(Payment) == 0

    def test_oversized_amount_is_acknowledged(self, make_client, ledger) -> None:
        client = make_client()
        listing_id = _sell(client)
        response = _webhook(client, _paid(listing_id, "1e30"))
        assert response.status_code == 200
        assert ledger.count(Payment) == 0
        assert balance(ledger, ORG_A) == (Decimal("100.00"), Decimal("40.00"))

    def test_unexpected_settlement_error_is_acknowledged(self, make_client, ledger, monkeypatch) -> None:
        import routes.webhooks

        async def broken(*args, **kwargs):
            raise RuntimeError("settlement crashed")

        monkeypatch.setattr(routes.webhooks, "trading_buy_via_webhook", broken)
        client = make_client()
        listing_id = _sell(client)
        response = _webhook(client, _paid(listing_id, "15.00"))
        assert response.status_code == 200
        assert response.text == "ok"

    def test_failed_settlement_is_acknowledged(self, make_client, ledger) -> None:
        client = make_client()
        listing_id = _sell(client)
        response = _webhook(client, _paid(listing_id, "999.00"))
        assert response.status_code == 200
        assert ledger.count(Payment) == 0
        assert balance(ledger, ORG_A) == (Decimal("100.00"), Decimal("40.00"))


def test_healthz(make_client) -> None:
    response = make_client().get("/api/v1/healthz")
    assert response.json() == {"status": "ok", "backend": "InMemoryStore"}


def test_seed_is_idempotent(make_client) -> None:
    client = make_client()
    first = client.post("/api/v1/seed").json()
    second = client.post("/api/v1/seed").json()
    assert first == second
    assert len(client.get("/api/v1/listings/open").json()) == first["seeded"]["listings"]

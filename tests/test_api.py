"""
Tests for the HTTP layer (`api/`).

Runs the FastAPI app against the in-memory stores and the mock provider via
dependency overrides, checking routing, header identity and the domain error
to status code mapping.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from conftest import OWNER_ID
from config.settings import load_settings
from api.dependencies import Stores, build_container, get_container
from api.main import app
from services.payment_provider import ProviderStatus

BUYER = {"X-User-Id": "00000000-0000-0000-0000-0000000000b1"}
GUEST = {"X-Session-Token": "guest-session-1"}


@pytest.fixture
def container(catalog, carts, settlements, pending, provider, clock, seed):
    return build_container(
        load_settings({"QR_ENCRYPTION_KEY": "00" * 32}),
        stores=Stores(catalog=catalog, carts=carts, settlements=settlements, pending=pending),
        provider=provider,
        clock=clock,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def client(container):
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add_general(client, seed, headers=BUYER, quantity=1):
    return client.post(
        "/api/v1/cart/ticket/items",
        json={"item_id": str(seed.general.item_id), "quantity": quantity, "target_date": "2025-06-13"},
        headers=headers,
    )


def _staff_headers(seed, role="bouncer"):
    return {
        "X-User-Id": str(uuid4()),
        "X-Staff-Role": role,
        "X-Staff-Venue-Id": str(seed.venue.venue_id),
    }


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# Identity
# ============================================================================

def test_cart_requires_identity(client) -> None:
    assert client.get("/api/v1/cart/ticket").status_code == 401


def test_malformed_user_id(client) -> None:
    assert client.get("/api/v1/cart/ticket", headers={"X-User-Id": "not-a-uuid"}).status_code == 400


def test_unknown_cart_kind(client) -> None:
    assert client.get("/api/v1/cart/drinks", headers=BUYER).status_code == 422


# ============================================================================
# Cart
# ============================================================================

def test_add_and_view_cart(client, seed) -> None:
    added = _add_general(client, seed, quantity=2)

    assert added.status_code == 201
    assert added.json()["quantity"] == 2

    cart = client.get("/api/v1/cart/ticket", headers=BUYER).json()
    assert cart["kind"] == "ticket"
    [line] = cart["lines"]
    assert line["available"] is True
    assert line["pricing_reason"] == "closed_day"
    assert cart["summary"]["total"] == "31993.12"
    assert cart["expires_at"] is not None


def test_exclusivity_violation_is_400_with_blocking_cart(client, seed) -> None:
    _add_general(client, seed)

    response = client.post(
        "/api/v1/cart/menu/items",
        json={"item_id": str(seed.bottle.item_id)},
        headers=BUYER,
    )

    detail = response.json()["detail"]
    assert response.status_code == 400
    assert detail["code"] == "CART_EXCLUSIVITY"
    assert detail["blocking"] == "ticket"


def test_unknown_item_is_404(client) -> None:
    response = client.post("/api/v1/cart/menu/items", json={"item_id": str(uuid4())}, headers=BUYER)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


def test_quantity_must_be_positive(client, seed) -> None:
    assert _add_general(client, seed, quantity=0).status_code == 422


def test_update_remove_and_clear(client, seed) -> None:
    line_id = _add_general(client, seed).json()["line_id"]

    updated = client.patch(f"/api/v1/cart/lines/{line_id}", json={"quantity": 3}, headers=BUYER)
    assert updated.json()["quantity"] == 3

    assert client.delete(f"/api/v1/cart/lines/{line_id}", headers=BUYER).status_code == 204
    assert client.get("/api/v1/cart/ticket", headers=BUYER).json()["lines"] == []

    _add_general(client, seed)
    assert client.delete("/api/v1/cart/ticket", headers=BUYER).json() == {"removed": 1}


def test_other_identitys_line_is_403(client, seed) -> None:
    line_id = _add_general(client, seed).json()["line_id"]

    response = client.patch(f"/api/v1/cart/lines/{line_id}", json={"quantity": 2}, headers=GUEST)

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "NOT_OWNER"


def test_unexpected_failure_is_generic_500(client, container, monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise RuntimeError("connection string with password=secret")

    monkeypatch.setattr(container.cart_service, "list", boom)

    response = client.get("/api/v1/cart/ticket", headers=BUYER)

    assert response.status_code == 500
    assert response.json()["detail"] == {"code": "INTERNAL", "message": "Internal error"}


# ============================================================================
# Checkout and redemption
# ============================================================================

def test_checkout_and_redeem(client, seed) -> None:
    _add_general(client, seed)

    initiated = client.post(
        "/api/v1/checkout/ticket/initiate", json={"buyer_email": "buyer@example.com"}, headers=BUYER
    ).json()
    assert initiated["total"] == "15996.56"
    assert initiated["operational_costs"] == "1996.56"
    assert initiated["is_free"] is False

    confirmed = client.post(
        "/api/v1/checkout/confirm", json={"reference": initiated["reference"]}, headers=BUYER
    )
    assert confirmed.status_code == 200
    body = confirmed.json()
    assert body["already_processed"] is False
    [record] = body["settlement"]["records"]
    assert body["settlement"]["total_paid"] == "15996.56"

    again = client.post("/api/v1/checkout/confirm", json={"reference": initiated["reference"]}, headers=BUYER)
    assert again.json()["already_processed"] is True

    staff = _staff_headers(seed)
    preview = client.post("/api/v1/redemptions/preview", json={"token": record["qr_token"]}, headers=staff)
    assert preview.json()["is_used"] is False

    consumed = client.post(
        "/api/v1/redemptions/consume",
        json={"token": record["qr_token"], "expected_type": "ticket"},
        headers=staff,
    )
    assert consumed.status_code == 200
    assert consumed.json()["is_used"] is True

    repeat = client.post("/api/v1/redemptions/consume", json={"token": record["qr_token"]}, headers=staff)
    assert repeat.status_code == 409
    assert repeat.json()["detail"]["code"] == "ALREADY_USED"
    assert repeat.json()["detail"]["used_at"] == consumed.json()["used_at"].replace("Z", "+00:00")


def test_checkout_email_falls_back_to_header(client, seed) -> None:
    _add_general(client, seed)

    response = client.post(
        "/api/v1/checkout/ticket/initiate",
        json={},
        headers={**BUYER, "X-User-Email": "buyer@example.com"},
    )

    assert response.status_code == 200


def test_missing_email_is_400(client, seed) -> None:
    _add_general(client, seed)

    assert client.post("/api/v1/checkout/ticket/initiate", json={}, headers=BUYER).status_code == 400


def test_expired_cart_is_410(client, clock, seed) -> None:
    _add_general(client, seed)
    clock.advance(minutes=31)

    response = client.post(
        "/api/v1/checkout/ticket/initiate", json={"buyer_email": "buyer@example.com"}, headers=BUYER
    )

    assert response.status_code == 410
    assert response.json()["detail"]["code"] == "CART_EXPIRED"


def test_declined_payment_is_402(client, provider, seed) -> None:
    provider.default_status = ProviderStatus.DECLINED
    _add_general(client, seed)
    reference = client.post(
        "/api/v1/checkout/ticket/initiate", json={"buyer_email": "buyer@example.com"}, headers=BUYER
    ).json()["reference"]

    response = client.post("/api/v1/checkout/confirm", json={"reference": reference}, headers=BUYER)

    assert response.status_code == 402
    assert response.json()["detail"]["code"] == "PAYMENT_DECLINED"
    assert len(client.get("/api/v1/cart/ticket", headers=BUYER).json()["lines"]) == 1


def test_unknown_reference_is_404(client) -> None:
    response = client.post("/api/v1/checkout/confirm", json={"reference": "mock_txn_nope"}, headers=BUYER)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "CHECKOUT_NOT_FOUND"


def test_redemption_requires_staff_headers(client) -> None:
    response = client.post("/api/v1/redemptions/consume", json={"token": "x"}, headers=BUYER)

    assert response.status_code == 401


def test_unknown_staff_role_is_403(client, seed) -> None:
    response = client.post(
        "/api/v1/redemptions/consume", json={"token": "x"}, headers=_staff_headers(seed, role="janitor")
    )

    assert response.status_code == 403


def test_invalid_token_is_400(client, seed) -> None:
    response = client.post(
        "/api/v1/redemptions/consume", json={"token": "garbage"}, headers={"X-User-Id": str(OWNER_ID), "X-Staff-Role": "clubowner"}
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_TOKEN"


# ============================================================================
# Purchase history
# ============================================================================

def _checkout(client, seed, headers=BUYER):
    _add_general(client, seed, headers=headers)
    reference = client.post(
        "/api/v1/checkout/ticket/initiate", json={"buyer_email": "buyer@example.com"}, headers=headers
    ).json()["reference"]
    return client.post("/api/v1/checkout/confirm", json={"reference": reference}, headers=headers).json()


def test_purchases_can_be_fetched_again(client, seed) -> None:
    settlement = _checkout(client, seed)["settlement"]

    listed = client.get("/api/v1/purchases", headers=BUYER).json()
    assert listed["count"] == 1
    [purchase] = listed["purchases"]
    assert purchase["transaction_id"] == settlement["transaction_id"]
    assert purchase["kind"] == "ticket"
    assert "buyer_email" not in purchase

    one = client.get(f"/api/v1/purchases/{settlement['transaction_id']}", headers=BUYER)
    assert one.status_code == 200
    assert one.json()["records"][0]["qr_token"] == settlement["records"][0]["qr_token"]
    assert one.json()["records"][0]["is_used"] is False

    assert client.get("/api/v1/purchases?kind=menu", headers=BUYER).json()["count"] == 0


def test_someone_elses_purchase_is_404(client, seed) -> None:
    transaction_id = _checkout(client, seed)["settlement"]["transaction_id"]

    response = client.get(f"/api/v1/purchases/{transaction_id}", headers=GUEST)

    assert response.status_code == 404
    assert client.get("/api/v1/purchases", headers=GUEST).json() == {"purchases": [], "count": 0}


def test_purchases_require_identity(client) -> None:
    assert client.get("/api/v1/purchases").status_code == 401


def test_owner_sees_venue_sales(client, seed) -> None:
    transaction_id = _checkout(client, seed)["settlement"]["transaction_id"]
    owner = {"X-User-Id": str(OWNER_ID), "X-Staff-Role": "clubowner"}

    listed = client.get(f"/api/v1/venues/{seed.venue.venue_id}/purchases", headers=owner).json()
    [sale] = listed["purchases"]
    assert sale["buyer_email"] == "buyer@example.com"
    assert sale["venue_receives"] == "14000.00"

    one = client.get(f"/api/v1/venues/{seed.venue.venue_id}/purchases/{transaction_id}", headers=owner)
    assert one.status_code == 200


def test_bouncer_cannot_see_venue_sales(client, seed) -> None:
    response = client.get(f"/api/v1/venues/{seed.venue.venue_id}/purchases", headers=_staff_headers(seed))

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ACCESS_DENIED"

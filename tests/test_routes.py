import pytest

from helpers import PASSWORD, shipping_address, variant_id, variant_input

API = "/api/v1"


def login(client, email, role="CUSTOMER"):
    response = client.post(f"{API}/auth/login", json={"email": email, "password": PASSWORD, "role": role})
    assert response.status_code == 200, response.get_json()
    return {"Authorization": f"Bearer {response.get_json()['data']['token']}"}


@pytest.fixture
def customer_headers(client, customer_id):
    return login(client, "hla@example.com")


@pytest.fixture
def admin_headers(client, admin_id):
    return login(client, "admin@example.com", role="ADMIN")


def order_body(lines):
    return {
        "items": [{"product_variant_id": vid, "quantity": qty} for vid, qty in lines],
        "shipping_address": shipping_address(),
        "payment_method": "MANUAL_UPLOAD",
        "payment_screenshot_url": "https://cdn.example.com/receipts/1.png",
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["database"] == "reachable"


def test_registration_over_http(client, notifier):
    response = client.post(f"{API}/auth/register/otp", json={
        "email": "new@example.com", "full_name": "New Person", "password": "abc12345",
    })
    assert response.status_code == 202

    response = client.post(f"{API}/auth/register/verify", json={
        "email": "new@example.com", "otp": notifier.otps["new@example.com"],
    })
    body = response.get_json()
    assert response.status_code == 201
    assert body["data"]["user"]["role"] == "CUSTOMER"
    assert body["data"]["token"]


def test_place_order_envelope(client, customer_headers, hoodie, notifier):
    vid = variant_id(hoodie, "L", "Black")
    response = client.post(f"{API}/orders", json=order_body([(vid, 2)]), headers=customer_headers)

    body = response.get_json()
    assert response.status_code == 201
    assert body["success"] is True
    assert body["data"]["order_total"] == 11998
    assert body["data"]["order_status"] == "PENDING_PAYMENT"
    assert body["data"]["items"][0]["price_at_purchase"] == 5999
    assert body["data"]["payment"]["payment_status"] == "VERIFICATION_PENDING"
    assert notifier.order_notifications[0]["order_id"] == body["data"]["id"]


def test_orders_require_a_token(client, hoodie):
    response = client.post(f"{API}/orders", json=order_body([(variant_id(hoodie, "L", "Black"), 1)]))
    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "UNAUTHORIZED"

    response = client.get(f"{API}/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_insufficient_stock_is_409(client, customer_headers, hoodie):
    vid = variant_id(hoodie, "M", "Black")
    response = client.post(f"{API}/orders", json=order_body([(vid, 3)]), headers=customer_headers)

    error = response.get_json()["error"]
    assert response.status_code == 409
    assert error["code"] == "INSUFFICIENT_STOCK"
    assert error["details"] == {"variant_id": vid, "available": 2, "requested": 3}


def test_body_validation_lists_fields(client, customer_headers):
    response = client.post(f"{API}/orders", json={"items": [{"product_variant_id": 1, "quantity": 0}]},
                           headers=customer_headers)

    error = response.get_json()["error"]
    assert response.status_code == 400
    assert error["code"] == "VALIDATION_ERROR"
    fields = {e["field"] for e in error["details"]["field_errors"]}
    assert "items.0.quantity" in fields
    assert "payment_method" in fields


def test_bad_query_parameters(client, admin_headers):
    response = client.get(f"{API}/orders?status=LOST", headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"]["details"]["field_errors"][0]["field"] == "status"


def test_customers_cannot_edit_catalog(client, customer_headers, hoodie, catalog):
    response = client.put(f"{API}/products/{hoodie.id}", headers=customer_headers, json={
        "variants": [variant_input(catalog, "L", "Black")],
    })
    assert response.status_code == 403


def test_admin_reconciles_and_storefront_hides_archived(client, admin_headers, hoodie, catalog):
    response = client.put(f"{API}/products/{hoodie.id}", headers=admin_headers, json={
        "variants": [variant_input(catalog, "L", "Black", price=5999, stock=10)],
    })
    assert response.status_code == 200
    variants = response.get_json()["data"]["variants"]
    assert [(v["size"]["value"], v["color"]["name"]) for v in variants] == [("L", "Black")]
    assert not any(v["is_archived"] for v in variants)

    public = client.get(f"{API}/products/{hoodie.id}").get_json()["data"]
    assert [v["size"]["value"] for v in public["variants"]] == ["L"]

    assert client.get(f"{API}/products/{hoodie.id}?include_archived=true").status_code == 401
    full = client.get(f"{API}/products/{hoodie.id}?include_archived=true", headers=admin_headers)
    assert len(full.get_json()["data"]["variants"]) == 2


def test_product_listing(client, hoodie):
    body = client.get(f"{API}/products?take=5").get_json()
    assert body["data"]["total_count"] == 1
    assert body["data"]["products"][0]["name"] == "Essential Urban Hoodie"


def test_customers_only_see_their_own_orders(client, customer_headers, other_customer_id, hoodie):
    vid = variant_id(hoodie, "L", "Black")
    order_id = client.post(f"{API}/orders", json=order_body([(vid, 1)]),
                           headers=customer_headers).get_json()["data"]["id"]

    other = login(client, "zaw@example.com")
    assert client.get(f"{API}/orders/{order_id}", headers=other).status_code == 404
    assert client.get(f"{API}/orders", headers=other).get_json()["data"]["total_count"] == 0
    assert client.get(f"{API}/orders", headers=customer_headers).get_json()["data"]["total_count"] == 1


def test_admin_moves_order_through_lifecycle(client, customer_headers, admin_headers, hoodie):
    vid = variant_id(hoodie, "L", "Black")
    order_id = client.post(f"{API}/orders", json=order_body([(vid, 1)]),
                           headers=customer_headers).get_json()["data"]["id"]

    response = client.post(f"{API}/orders/{order_id}/payment/verify", json={"approved": True},
                           headers=admin_headers)
    assert response.get_json()["data"]["order_status"] == "PROCESSING"

    response = client.patch(f"{API}/orders/{order_id}/status", json={"status": "PENDING_PAYMENT"},
                            headers=admin_headers)
    assert response.status_code == 422
    assert response.get_json()["error"]["code"] == "BUSINESS_LOGIC_ERROR"

    assert client.patch(f"{API}/orders/{order_id}/status", json={"status": "SHIPPED"},
                        headers=customer_headers).status_code == 403


def test_cart_endpoints(client, customer_headers, hoodie):
    vid = variant_id(hoodie, "L", "Black")
    response = client.post(f"{API}/cart/items", json={"product_variant_id": vid, "quantity": 2},
                           headers=customer_headers)
    assert response.status_code == 201
    assert response.get_json()["data"]["total"] == 11998

    response = client.patch(f"{API}/cart/items/{vid}", json={"quantity": 0}, headers=customer_headers)
    assert response.get_json()["data"]["items"] == []

    assert client.delete(f"{API}/cart/items/{vid}", headers=customer_headers).status_code == 404

"""Integration tests for the HTTP endpoints via TestClient."""

import pytest
from unittest import mock
from pymongo.errors import PyMongoError

from tests.conftest import make_product


def _signup_and_login(client, email="seller@example.com", password="s3cret"):
    response = client.post(
        "/api/users",
        json={"name": "Ada", "surname": "Lovelace", "email": email, "password": password},
    )
    assert response.status_code == 201
    response = client.post("/api/login", data={"username": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def auth(client):
    return _signup_and_login(client)


@pytest.fixture()
def rival_auth(client):
    return _signup_and_login(client, email="rival@example.com")


def _create_customer(client, headers, email="client@example.com"):
    response = client.post(
        "/api/customers",
        json={"name": "Grace", "surname": "Hopper", "company": "Navy", "email": email, "phone": "555-0100"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


class TestAuthEndpoints:
    def test_signup_hides_password(self, client):
        response = client.post(
            "/api/users",
            json={"name": "Ada", "surname": "Lovelace", "email": "ada@example.com", "password": "pw"},
        )
        body = response.json()
        assert response.status_code == 201
        assert "password" not in body
        assert "password_hash" not in body

    def test_duplicate_signup(self, client, auth):
        response = client.post(
            "/api/users",
            json={"name": "Ada", "surname": "Lovelace", "email": "seller@example.com", "password": "x"},
        )
        assert response.status_code == 409

    def test_wrong_password(self, client, auth):
        response = client.post("/api/login", data={"username": "seller@example.com", "password": "bad"})
        assert response.status_code == 401

    def test_unknown_user(self, client):
        response = client.post("/api/login", data={"username": "ghost@example.com", "password": "x"})
        assert response.status_code == 404

    def test_me(self, client, auth):
        response = client.get("/api/me", headers=auth)
        assert response.status_code == 200
        assert response.json()["email"] == "seller@example.com"

    def test_bad_token(self, client):
        response = client.get("/api/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_mutations_need_a_token(self, client):
        response = client.post("/api/products", json={"name": "Widget", "quantity": 1, "price": 1.0})
        assert response.status_code == 401


class TestProductEndpoints:
    def test_crud(self, client, auth):
        created = client.post("/api/products", json={"name": "Widget", "quantity": 5, "price": 9.99}, headers=auth)
        assert created.status_code == 201
        product_id = created.json()["id"]

        assert client.get(f"/api/products/{product_id}").json()["quantity"] == 5
        updated = client.put(f"/api/products/{product_id}", json={"quantity": 8}, headers=auth)
        assert updated.json()["quantity"] == 8
        assert len(client.get("/api/products").json()) == 1

        deleted = client.delete(f"/api/products/{product_id}", headers=auth)
        assert deleted.json() == {"message": "Product deleted successfully"}
        assert client.get(f"/api/products/{product_id}").status_code == 404

    def test_negative_quantity_is_rejected(self, client, auth):
        response = client.post("/api/products", json={"name": "Widget", "quantity": -1, "price": 1.0}, headers=auth)
        assert response.status_code == 422

    def test_malformed_id(self, client):
        assert client.get("/api/products/not-an-id").status_code == 400


class TestCustomerEndpoints:
    def test_owner_and_rival(self, client, auth, rival_auth):
        customer = _create_customer(client, auth)

        fetched = client.get(f"/api/customers/{customer['id']}", headers=auth)
        assert fetched.status_code == 200
        assert fetched.json()["seller"]["email"] == "seller@example.com"

        assert client.get(f"/api/customers/{customer['id']}", headers=rival_auth).status_code == 403
        assert client.put(f"/api/customers/{customer['id']}", json={"company": "x"}, headers=rival_auth).status_code == 403
        assert client.delete(f"/api/customers/{customer['id']}", headers=rival_auth).status_code == 403

        assert len(client.get("/api/customers/mine", headers=auth).json()) == 1
        assert client.get("/api/customers/mine", headers=rival_auth).json() == []


class TestOrderEndpoints:
    def test_order_lifecycle(self, client, context, auth, rival_auth):
        customer = _create_customer(client, auth)
        product = make_product(context, quantity=5)

        created = client.post(
            "/api/orders",
            json={"customer": customer["id"], "total": 29.97, "products": [{"product": product["id"], "quantity": 3}]},
            headers=auth,
        )
        assert created.status_code == 201
        order = created.json()
        assert order["state"] == "PENDING"
        assert order["products"][0]["product"]["quantity"] == 2
        assert order["customer"]["id"] == customer["id"]

        overdraw = client.post(
            "/api/orders",
            json={"customer": customer["id"], "total": 1.0, "products": [{"product": product["id"], "quantity": 3}]},
            headers=auth,
        )
        assert overdraw.status_code == 409
        assert "Widget" in overdraw.json()["detail"]

        updated = client.put(
            f"/api/orders/{order['id']}",
            json={"products": [{"product": product["id"], "quantity": 1}], "state": "COMPLETED"},
            headers=auth,
        )
        assert updated.status_code == 200
        assert updated.json()["state"] == "COMPLETED"
        assert client.get(f"/api/products/{product['id']}").json()["quantity"] == 4

        completed = client.get("/api/orders/mine", params={"state": "COMPLETED"}, headers=auth).json()
        assert [o["id"] for o in completed] == [order["id"]]
        assert client.get(f"/api/orders/{order['id']}", headers=rival_auth).status_code == 403

        best = client.get("/api/reports/best-customers").json()
        assert best[0]["total"] == 29.97
        assert best[0]["customer"]["email"] == "client@example.com"
        assert client.get("/api/reports/best-sellers").json()[0]["seller"]["email"] == "seller@example.com"

        assert client.delete(f"/api/orders/{order['id']}", headers=rival_auth).status_code == 403
        assert client.delete(f"/api/orders/{order['id']}", headers=auth).status_code == 200
        assert client.get(f"/api/products/{product['id']}").json()["quantity"] == 5

    def test_rival_cannot_order_for_my_customer(self, client, context, auth, rival_auth):
        customer = _create_customer(client, auth)
        product = make_product(context)
        response = client.post(
            "/api/orders",
            json={"customer": customer["id"], "total": 1.0, "products": [{"product": product["id"], "quantity": 1}]},
            headers=rival_auth,
        )
        assert response.status_code == 403

    def test_update_without_products(self, client, context, auth):
        customer = _create_customer(client, auth)
        product = make_product(context)
        order = client.post(
            "/api/orders",
            json={"customer": customer["id"], "total": 1.0, "products": [{"product": product["id"], "quantity": 1}]},
            headers=auth,
        ).json()
        response = client.put(f"/api/orders/{order['id']}", json={"total": 2.0}, headers=auth)
        assert response.status_code == 400


def test_database_errors_are_not_leaked(client, context):
    with mock.patch.object(context.catalog, "list", side_effect=PyMongoError("secret driver detail")):
        response = client.get("/api/products")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_health(client):
    assert client.get("/").status_code == 200
    assert client.get("/test").json()["backend"] == "✅ Running"


def test_health_masks_database_settings(client, monkeypatch):
    monkeypatch.setenv("DATABASE_NAME", "order_management_test")
    body = client.get("/test").json()
    assert body["database_name"] == "✅ Set"
    assert "order_management_test" not in str(body)

    monkeypatch.delenv("DATABASE_NAME")
    assert client.get("/test").json()["database_name"] == "❌ Not Set"

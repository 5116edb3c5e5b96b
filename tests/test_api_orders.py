"""HTTP tests for the /api/orders endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from orderhub.api import create_app
from orderhub.store import EntityStore


@pytest.fixture()
def store() -> EntityStore:
    return EntityStore()


@pytest.fixture()
def client(store: EntityStore):
    with TestClient(create_app(store=store)) as test_client:
        yield test_client


def _create_user(client: TestClient, email: str = "order_user@test.com") -> dict:
    response = client.post("/api/users", json={"name": "Order User", "email": email})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_list_orders_starts_empty(client: TestClient) -> None:
    response = client.get("/api/orders")

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": []}


def test_create_order_defaults_to_pending(client: TestClient) -> None:
    user = _create_user(client)

    response = client.post("/api/orders", json={"userId": user["id"]})

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["id"] == 1
    assert data["userId"] == user["id"]
    assert data["status"] == "PENDING"


def test_create_order_with_explicit_status(client: TestClient) -> None:
    user = _create_user(client)

    response = client.post("/api/orders", json={"userId": user["id"], "status": "CONFIRMED"})

    assert response.status_code == 201
    assert response.json()["data"]["status"] == "CONFIRMED"


@pytest.mark.parametrize("user_id", [0, -1, "1", 1.5, None])
def test_create_order_rejects_invalid_user_id(client: TestClient, user_id) -> None:
    response = client.post("/api/orders", json={"userId": user_id})

    assert response.status_code == 400
    assert "userId" in response.json()["error"]["details"]


def test_create_order_for_unknown_user(client: TestClient, store: EntityStore) -> None:
    response = client.post("/api/orders", json={"userId": 42})

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "User with id 42 not found."

    user = _create_user(client)
    created = client.post("/api/orders", json={"userId": user["id"]})
    assert created.json()["data"]["id"] == 1


def test_create_order_with_invalid_status(client: TestClient) -> None:
    user = _create_user(client)

    response = client.post("/api/orders", json={"userId": user["id"], "status": "LOST"})

    assert response.status_code == 400
    assert response.json()["error"]["message"].startswith("Invalid status. Allowed: PENDING")


def test_get_order(client: TestClient) -> None:
    user = _create_user(client)
    created = client.post("/api/orders", json={"userId": user["id"]}).json()["data"]

    response = client.get(f"/api/orders/{created['id']}")

    assert response.status_code == 200
    assert response.json()["data"] == created
    assert client.get("/api/orders/77").status_code == 404


def test_update_order_status(client: TestClient) -> None:
    user = _create_user(client)
    order = client.post("/api/orders", json={"userId": user["id"]}).json()["data"]

    response = client.put(f"/api/orders/{order['id']}/status", json={"status": "SHIPPED"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "SHIPPED"
    assert data["createdAt"] == order["createdAt"]


@pytest.mark.parametrize("body", [{"status": "BOGUS"}, {}, {"status": "shipped"}])
def test_update_order_status_rejects_bad_status(client: TestClient, body) -> None:
    user = _create_user(client)
    order = client.post("/api/orders", json={"userId": user["id"], "status": "SHIPPED"}).json()["data"]

    response = client.put(f"/api/orders/{order['id']}/status", json=body)

    assert response.status_code == 400
    assert client.get(f"/api/orders/{order['id']}").json()["data"]["status"] == "SHIPPED"


def test_update_status_of_missing_order(client: TestClient) -> None:
    response = client.put("/api/orders/9/status", json={"status": "SHIPPED"})

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Order with id 9 not found."


def test_update_status_with_invalid_order_id(client: TestClient) -> None:
    response = client.put("/api/orders/abc/status", json={"status": "SHIPPED"})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid order id. Must be a positive integer."


def test_orders_survive_user_deletion(client: TestClient) -> None:
    user = _create_user(client)
    order = client.post("/api/orders", json={"userId": user["id"]}).json()["data"]

    assert client.delete(f"/api/users/{user['id']}").status_code == 200

    response = client.get(f"/api/orders/{order['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["userId"] == user["id"]


def test_create_order_ignores_extra_keys(client: TestClient) -> None:
    user = _create_user(client)

    response = client.post("/api/orders", json={"userId": user["id"], "note": "x"})

    assert response.status_code == 201
    assert response.json()["data"]["status"] == "PENDING"
    assert "note" not in response.json()["data"]


def test_create_order_accepts_integral_float_user_id(client: TestClient) -> None:
    user = _create_user(client)

    response = client.post("/api/orders", json={"userId": float(user["id"])})

    assert response.status_code == 201
    assert response.json()["data"]["userId"] == user["id"]


def test_update_order_status_ignores_extra_keys(client: TestClient) -> None:
    user = _create_user(client)
    order = client.post("/api/orders", json={"userId": user["id"]}).json()["data"]

    response = client.put(f"/api/orders/{order['id']}/status", json={"status": "SHIPPED", "by": "ops"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "SHIPPED"


def test_order_id_with_non_ascii_digits_is_rejected(client: TestClient) -> None:
    response = client.get("/api/orders/²")

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid order id. Must be a positive integer."

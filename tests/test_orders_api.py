from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.db.models import Order, OrderStatus
from app.services.broadcast import manager


async def create(api_client, **overrides):
    payload = {
        "customerName": "Sarah Johnson",
        "tableNumber": "4",
        "items": [
            {"name": "Margherita Pizza", "quantity": 2, "price": "14.50"},
            {"name": "Caesar Salad", "price": "9.75"},
        ],
    }
    payload.update(overrides)
    return await api_client.post("/api/orders", json=payload)


@pytest.mark.asyncio
async def test_create_order_computes_total(api_client):
    response = await create(api_client)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["customerName"] == "Sarah Johnson"
    assert body["restaurantId"] == "res-1"
    assert Decimal(body["totalPrice"]) == Decimal("38.75")
    assert body["items"][1]["quantity"] == 1
    assert body["createdAt"]


@pytest.mark.asyncio
async def test_create_order_with_text_items_and_total(api_client):
    response = await create(api_client, items=["1x Spicy Ramen", "2x Gyoza"], totalPrice=28.75, tableNumber=7)

    assert response.status_code == 201
    body = response.json()
    assert body["items"] == ["1x Spicy Ramen", "2x Gyoza"]
    assert body["tableNumber"] == "7"
    assert Decimal(body["totalPrice"]) == Decimal("28.75")


@pytest.mark.asyncio
async def test_create_order_rejects_empty_items(api_client):
    response = await create(api_client, items=[])

    assert response.status_code == 422
    assert response.json()["error"] == "Invalid order data"


@pytest.mark.asyncio
async def test_create_order_broadcasts_new_order(api_client, push_socket):
    response = await create(api_client)

    assert response.status_code == 201
    assert len(push_socket.sent) == 1
    message = push_socket.sent[0]
    assert message["type"] == "NEW_ORDER"
    assert message["order"]["id"] == response.json()["id"]
    assert message["order"]["customerName"] == "Sarah Johnson"


@pytest.mark.asyncio
async def test_list_orders_filters_by_restaurant(api_client):
    await create(api_client, restaurantId="res-1")
    await create(api_client, restaurantId="res-2", customerName="Elsewhere")

    response = await api_client.get("/api/orders", params={"restaurant_id": "res-2"})

    assert response.status_code == 200
    orders = response.json()
    assert [o["customerName"] for o in orders] == ["Elsewhere"]


@pytest.mark.asyncio
async def test_list_orders_since(api_client, db_session):
    now = datetime.now(timezone.utc)
    db_session.add_all([
        Order(restaurant_id="res-1", items=[], total_price=Decimal("5.00"), created_at=now - timedelta(hours=2)),
        Order(restaurant_id="res-1", items=[], total_price=Decimal("7.00"), created_at=now),
    ])
    await db_session.commit()

    response = await api_client.get(
        "/api/orders",
        params={"restaurant_id": "res-1", "since": (now - timedelta(hours=1)).isoformat()},
    )

    assert response.status_code == 200
    assert [Decimal(o["totalPrice"]) for o in response.json()] == [Decimal("7.00")]


@pytest.mark.asyncio
async def test_complete_order(api_client, push_socket):
    order_id = (await create(api_client)).json()["id"]

    response = await api_client.patch(f"/api/orders/{order_id}", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert push_socket.sent[-1]["type"] == "ORDER_UPDATED"
    assert push_socket.sent[-1]["order"]["status"] == "completed"


@pytest.mark.asyncio
async def test_status_route_alias(api_client):
    order_id = (await create(api_client)).json()["id"]

    response = await api_client.patch(f"/api/orders/{order_id}/status", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_repeat_completion_does_not_rebroadcast(api_client, push_socket):
    order_id = (await create(api_client)).json()["id"]
    await api_client.patch(f"/api/orders/{order_id}", json={"status": "completed"})

    response = await api_client.patch(f"/api/orders/{order_id}", json={"status": "completed"})

    assert response.status_code == 200
    assert [m["type"] for m in push_socket.sent] == ["NEW_ORDER", "ORDER_UPDATED"]


@pytest.mark.asyncio
async def test_update_missing_order(api_client):
    response = await api_client.patch("/api/orders/999", json={"status": "completed"})

    assert response.status_code == 404
    assert response.json()["detail"] == "Order not found"


@pytest.mark.asyncio
async def test_update_invalid_status(api_client):
    order_id = (await create(api_client)).json()["id"]

    response = await api_client.patch(f"/api/orders/{order_id}", json={"status": "shipped"})

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"status": None}, {"status": ""}])
async def test_update_without_status(api_client, body):
    order_id = (await create(api_client)).json()["id"]

    response = await api_client.patch(f"/api/orders/{order_id}", json=body)

    assert response.status_code == 400
    assert "Invalid status" in response.json()["detail"]


@pytest.mark.asyncio
async def test_completed_order_cannot_be_reopened(api_client):
    order_id = (await create(api_client)).json()["id"]
    await api_client.patch(f"/api/orders/{order_id}", json={"status": "completed"})

    response = await api_client.patch(f"/api/orders/{order_id}", json={"status": "pending"})

    assert response.status_code == 400
    assert "cannot be reopened" in response.json()["detail"]


@pytest.mark.asyncio
async def test_dead_push_connections_are_dropped(api_client):
    class BrokenSocket:
        async def send_json(self, message):
            raise RuntimeError("connection closed")

    broken = BrokenSocket()
    manager.connections.append(broken)

    response = await create(api_client)

    assert response.status_code == 201
    assert broken not in manager.connections


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/health")

    assert response.json() == {"status": "ok"}

"""
Project: OrderFlow
Description:
Shared fixtures: a fresh in-memory app per test, a signed-in client with a
shop, and a small default menu with one event.
"""

import pytest

from app import create_app
from models import db


@pytest.fixture
def app():
    app = create_app(testing=True)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def signup(client, username="owner", password="secret", shop_name="Pop-up Coffee"):
    resp = client.post("/signup", json={"username": username, "password": password, "shop_name": shop_name})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture
def auth_client(client):
    signup(client)
    return client


def add_item(client, menu_id, name, code, price, color=None):
    payload = {"name": name, "code": code, "price": price}
    if color:
        payload["color"] = color
    resp = client.post(f"/api/menus/{menu_id}/items", json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture
def shop_data(auth_client):
    """Default menu with two items and one event that has its own menu copy."""
    menu = auth_client.get("/api/menu").get_json()["menu"]
    add_item(auth_client, menu["id"], "Latte", "l", 5.0, "#d97706")
    add_item(auth_client, menu["id"], "Americano", "A", 3.5)

    event = auth_client.post("/api/events", json={"name": "Saturday Market", "date": "2024-01-15"}).get_json()
    boot = auth_client.post(f"/api/events/{event['id']}/menu/bootstrap").get_json()
    items = auth_client.get(f"/api/events/{event['id']}/menu").get_json()["items"]
    return {
        "default_menu_id": menu["id"],
        "event": boot["event"],
        "items": {item["code"]: item for item in items},
    }


def place_order(client, event_id, lines, name="Sam", phone=None):
    resp = client.post(
        f"/api/events/{event_id}/orders",
        json={"customer": {"name": name, "phone": phone}, "items": lines},
    )
    return resp

from conftest import place_order, signup
from realtime import socketio


def _messages(sio_client, name):
    return [m["args"][0] for m in sio_client.get_received() if m["name"] == name]


def test_socket_requires_session(app, client):
    sio = socketio.test_client(app, flask_test_client=client)
    assert not sio.is_connected()


def test_subscribers_get_order_changes(app, auth_client, shop_data):
    event_id = shop_data["event"]["id"]
    latte = shop_data["items"]["L"]

    sio = socketio.test_client(app, flask_test_client=auth_client)
    assert sio.is_connected()
    ack = sio.emit("subscribe", {"event_id": event_id}, callback=True)
    assert ack == {"ok": True, "room": f"orders:{event_id}"}
    sio.get_received()

    order = place_order(auth_client, event_id, [{"item_id": latte["id"]}]).get_json()
    auth_client.post(f"/api/orders/{order['id']}/complete")
    auth_client.post(f"/api/orders/{order['id']}/undo")
    auth_client.delete(f"/api/orders/{order['id']}")

    changes = _messages(sio, "order_change")
    assert [c["type"] for c in changes] == [
        "order.created", "order.completed", "order.reopened", "order.deleted",
    ]
    assert {c["order_id"] for c in changes} == {order["id"]}
    assert {c["event_id"] for c in changes} == {event_id}


def test_unsubscribed_clients_hear_nothing(app, auth_client, shop_data):
    event_id = shop_data["event"]["id"]
    sio = socketio.test_client(app, flask_test_client=auth_client)
    sio.emit("subscribe", {"event_id": event_id}, callback=True)
    sio.emit("unsubscribe", {"event_id": event_id}, callback=True)
    sio.get_received()

    place_order(auth_client, event_id, [{"item_id": shop_data["items"]["L"]["id"]}])
    assert _messages(sio, "order_change") == []


def test_cannot_subscribe_to_other_shops_event(app, shop_data):
    other = app.test_client()
    signup(other, username="rival", shop_name="Rival Roasters")
    sio = socketio.test_client(app, flask_test_client=other)
    ack = sio.emit("subscribe", {"event_id": shop_data["event"]["id"]}, callback=True)
    assert ack == {"ok": False, "error": "not_found"}


def test_shop_room_gets_menu_changes(app, auth_client):
    sio = socketio.test_client(app, flask_test_client=auth_client)
    sio.get_received()
    auth_client.post("/api/events", json={"name": "Fair", "date": "2024-03-02"})
    events = _messages(sio, "event")
    assert [e["type"] for e in events] == ["event.created"]
    assert events[0]["event"]["name"] == "Fair"

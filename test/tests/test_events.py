from conftest import signup


def _create(client, name, date, status=None):
    event = client.post("/api/events", json={"name": name, "date": date}).get_json()
    if status:
        event = client.put(f"/api/events/{event['id']}", json={"status": status}).get_json()
    return event


def test_create_event_uses_default_menu(auth_client):
    default_menu_id = auth_client.get("/api/menu").get_json()["menu"]["id"]
    r = auth_client.post("/api/events", json={"name": " Farmers Market ", "date": "2024-03-02"})
    assert r.status_code == 201
    event = r.get_json()
    assert event["name"] == "Farmers Market"
    assert event["date"] == "2024-03-02"
    assert event["status"] == "future"
    assert event["menu_id"] == default_menu_id


def test_create_event_validation(auth_client):
    assert auth_client.post("/api/events", json={"date": "2024-03-02"}).status_code == 400
    r = auth_client.post("/api/events", json={"name": "Fair", "date": "not-a-date"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_date"


def test_events_sorted_by_status_then_newest_first(auth_client):
    _create(auth_client, "Old done", "2024-01-01", "complete")
    _create(auth_client, "Next week", "2024-02-10")
    _create(auth_client, "Live", "2024-02-01", "in_progress")
    _create(auth_client, "Far future", "2024-05-01")
    _create(auth_client, "Recent done", "2024-01-20", "complete")

    data = auth_client.get("/api/events").get_json()
    assert [e["name"] for e in data["events"]] == [
        "Live", "Far future", "Next week", "Recent done", "Old done",
    ]
    assert [e["name"] for e in data["by_status"]["complete"]] == ["Recent done", "Old done"]
    assert [e["name"] for e in data["by_status"]["in_progress"]] == ["Live"]


def test_update_event(auth_client):
    event = _create(auth_client, "Fair", "2024-03-02")
    r = auth_client.put(f"/api/events/{event['id']}", json={"date": "2024-03-09", "status": "in_progress"})
    assert r.status_code == 200
    assert r.get_json()["date"] == "2024-03-09"
    assert r.get_json()["status"] == "in_progress"

    bad = auth_client.put(f"/api/events/{event['id']}", json={"status": "cancelled"})
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "invalid_status"


def test_delete_event_removes_orders(auth_client, shop_data):
    event_id = shop_data["event"]["id"]
    latte = shop_data["items"]["L"]
    order = auth_client.post(
        f"/api/events/{event_id}/orders",
        json={"customer": {"name": "Ana"}, "items": [{"item_id": latte["id"]}]},
    ).get_json()

    assert auth_client.delete(f"/api/events/{event_id}").status_code == 200
    assert auth_client.get(f"/api/events/{event_id}").status_code == 404
    assert auth_client.get(f"/api/orders/{order['id']}").status_code == 404
    # the default menu survives
    assert auth_client.get("/api/menu").get_json()["menu"]["id"] == shop_data["default_menu_id"]


def test_events_are_scoped_to_shop(app, auth_client, shop_data):
    other = app.test_client()
    signup(other, username="rival", shop_name="Rival Roasters")
    assert other.get("/api/events").get_json()["events"] == []
    assert other.get(f"/api/events/{shop_data['event']['id']}").status_code == 404

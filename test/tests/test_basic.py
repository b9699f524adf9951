def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_root_redirects_to_login(client):
    r = client.get("/")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/login")


def test_unknown_api_route_is_json(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"


def test_protected_pages_redirect_to_login(client):
    for path in ("/events", "/menu", "/analytics"):
        r = client.get(path)
        assert r.status_code == 302
        assert r.headers["Location"].endswith("/login")

def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_route_is_json_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert "message" in r.json


def test_error_body_has_stack_outside_production(client):
    r = client.get("/projects")
    assert r.status_code == 401
    assert r.json["message"] == "Not authenticated"
    assert "stack" in r.json

import pytest

from app.designreview.db import session_scope
from app.designreview.modules.feedback.models import Feedback

from conftest import create_project, upload_file


@pytest.fixture()
def file_id(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    return upload_file(client, admin_h, pid).json["file"]["id"]


def _post(client, headers, file_id, **payload):
    return client.post(f"/feedback/file/{file_id}", json=payload, headers=headers)


def test_create_defaults(client, file_id, alice_h):
    r = _post(client, alice_h, file_id, content="Logo too small")
    assert r.status_code == 201
    fb = r.json["feedback"]
    assert fb["status"] == "open"
    assert fb["coordinates"] == {"x": 0.0, "y": 0.0, "width": 0.0, "height": 0.0}
    assert fb["createdBy"]["name"] == "Alice"
    assert fb["fileId"] == file_id


def test_create_with_coordinates(client, file_id, alice_h):
    r = _post(client, alice_h, file_id, content="Here", x=10, y="20.5", width=30, height=40)
    assert r.json["feedback"]["coordinates"] == {"x": 10.0, "y": 20.5, "width": 30.0, "height": 40.0}

    r = _post(client, alice_h, file_id, content="Nested", coordinates={"x": 1, "y": 2})
    assert r.json["feedback"]["coordinates"]["x"] == 1.0
    assert r.json["feedback"]["coordinates"]["width"] == 0.0


def test_create_validation(client, file_id, alice_h):
    assert _post(client, alice_h, file_id, content="   ").status_code == 400
    assert _post(client, alice_h, file_id, content="x", x="left").status_code == 400
    assert _post(client, alice_h, 9999, content="x").status_code == 404


def test_non_finite_coordinates_rejected(client, file_id, alice_h):
    r = _post(client, alice_h, file_id, content="x", x="nan")
    assert r.status_code == 400
    assert r.json["message"] == "x must be a number"

    r = _post(client, alice_h, file_id, content="x", y="1e999")
    assert r.status_code == 400
    assert r.json["message"] == "y must be a number"


def test_other_client_is_forbidden(client, file_id, alice_h, bob_h):
    _post(client, alice_h, file_id, content="Mine")
    assert client.get(f"/feedback/file/{file_id}", headers=bob_h).status_code == 403
    assert _post(client, bob_h, file_id, content="Intruder").status_code == 403


def test_list_newest_first(client, file_id, alice_h, admin_h):
    assert client.get(f"/feedback/file/{file_id}", headers=alice_h).json == []
    _post(client, alice_h, file_id, content="first")
    _post(client, admin_h, file_id, content="second")
    r = client.get(f"/feedback/file/{file_id}", headers=alice_h)
    assert [f["content"] for f in r.json] == ["second", "first"]
    assert r.json[0]["createdBy"]["role"] == "admin"


def test_update_by_author_and_admin(client, file_id, alice_h, admin_h):
    fid = _post(client, alice_h, file_id, content="draft").json["feedback"]["id"]

    r = client.put(f"/feedback/{fid}", json={"content": "final", "x": 5}, headers=alice_h)
    assert r.status_code == 200
    assert r.json["feedback"]["content"] == "final"
    assert r.json["feedback"]["coordinates"]["x"] == 5.0

    r = client.put(f"/feedback/{fid}", json={"status": "rejected"}, headers=admin_h)
    assert r.status_code == 200
    assert r.json["feedback"]["status"] == "rejected"
    assert r.json["feedback"]["content"] == "final"


def test_update_status_aliases(client, file_id, alice_h):
    fid = _post(client, alice_h, file_id, content="x").json["feedback"]["id"]
    r = client.put(f"/feedback/{fid}", json={"status": "implemented"}, headers=alice_h)
    assert r.json["feedback"]["status"] == "resolved"
    r = client.put(f"/feedback/{fid}", json={"status": "pending"}, headers=alice_h)
    assert r.json["feedback"]["status"] == "open"
    assert client.put(f"/feedback/{fid}", json={"status": "done"}, headers=alice_h).status_code == 400


def test_client_cannot_edit_admin_feedback(client, file_id, alice_h, admin_h, bob_h):
    fid = _post(client, admin_h, file_id, content="from the studio").json["feedback"]["id"]
    r = client.put(f"/feedback/{fid}", json={"content": "hijack"}, headers=alice_h)
    assert r.status_code == 403
    assert r.json["message"] == "Not authorized to update this feedback"
    assert client.delete(f"/feedback/{fid}", headers=alice_h).status_code == 403
    assert client.put(f"/feedback/{fid}", json={"content": "hijack"}, headers=bob_h).status_code == 403


def test_delete_by_author(client, app, file_id, alice_h, admin_h):
    fid = _post(client, alice_h, file_id, content="oops").json["feedback"]["id"]
    assert client.delete(f"/feedback/{fid}", headers=alice_h).status_code == 200
    assert client.get(f"/feedback/file/{file_id}", headers=alice_h).json == []
    assert client.delete(f"/feedback/{fid}", headers=alice_h).status_code == 404

    pid = client.get(f"/files/{file_id}", headers=admin_h).json["projectId"]
    actions = [a["action"] for a in client.get(f"/projects/{pid}", headers=admin_h).json["activity"]]
    assert actions[:2] == ["Feedback deleted by Alice", "New feedback added by Alice"]


def test_resolve_toggle_round_trip(client, file_id, alice_h, admin_h):
    fid = _post(client, alice_h, file_id, content="x").json["feedback"]["id"]

    r = client.patch(f"/feedback/{fid}/resolve", headers=admin_h)
    assert r.status_code == 200
    assert r.json["feedback"]["status"] == "resolved"

    r = client.patch(f"/feedback/{fid}/resolve", headers=admin_h)
    assert r.json["feedback"]["status"] == "open"

    r = client.patch(f"/feedback/{fid}/resolve", headers=alice_h)
    assert r.status_code == 403


def test_resolve_from_rejected(client, file_id, alice_h, admin_h):
    fid = _post(client, alice_h, file_id, content="x").json["feedback"]["id"]
    client.put(f"/feedback/{fid}", json={"status": "rejected"}, headers=admin_h)
    r = client.patch(f"/feedback/{fid}/resolve", headers=admin_h)
    assert r.json["feedback"]["status"] == "resolved"

    # The rejected status is not restored on the way back.
    r = client.patch(f"/feedback/{fid}/resolve", headers=admin_h)
    assert r.json["feedback"]["status"] == "open"


def test_file_delete_removes_its_feedback(client, app, file_id, alice_h, admin_h):
    _post(client, alice_h, file_id, content="a")
    _post(client, alice_h, file_id, content="b")
    client.delete(f"/files/{file_id}", headers=admin_h)
    with session_scope(app) as s:
        assert s.query(Feedback).count() == 0

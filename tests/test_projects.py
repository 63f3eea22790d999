from pathlib import Path

from app.designreview.db import session_scope
from app.designreview.models import User
from app.designreview.modules.feedback.models import Feedback
from app.designreview.modules.messages.models import Message
from app.designreview.modules.projects.models import ProjectActivity

from conftest import auth, create_project, png_upload, upload_file, user_id


def test_create_project_for_existing_client(client, app, admin_h):
    project = create_project(client, admin_h, app)
    assert project["status"] == "awaiting_feedback"
    assert project["clientName"] == "Alice"
    assert project["clientEmail"] == "alice@example.com"
    assert project["files"] == []
    assert [a["action"] for a in project["activity"]] == ["Project created"]
    assert project["activity"][0]["userName"] == "Admin"


def test_create_project_requires_client(client, admin_h):
    r = client.post("/projects", json={"name": "No client"}, headers=admin_h)
    assert r.status_code == 400
    assert r.json["message"] == "Either clientId or clientName and clientEmail must be provided"


def test_create_project_requires_name(client, app, admin_h):
    r = client.post("/projects", json={"clientId": user_id(app, "alice@example.com")}, headers=admin_h)
    assert r.status_code == 400


def test_create_project_rejects_overlong_name(client, app, admin_h):
    r = client.post("/projects", json={"name": "p" * 256, "clientId": user_id(app, "alice@example.com")}, headers=admin_h)
    assert r.status_code == 400
    assert r.json["message"] == "Project name must be at most 255 characters"

    r = client.post("/projects", json={"name": "X", "clientName": "n" * 256, "clientEmail": "new@example.com"}, headers=admin_h)
    assert r.status_code == 400
    assert r.json["message"] == "Client name must be at most 255 characters"


def test_create_project_with_admin_as_client(client, app, admin_h):
    r = client.post("/projects", json={"name": "X", "clientId": user_id(app, "admin@example.com")}, headers=admin_h)
    assert r.status_code == 400


def test_create_project_with_unknown_client(client, admin_h):
    r = client.post("/projects", json={"name": "X", "clientId": 9999}, headers=admin_h)
    assert r.status_code == 404
    assert r.json["message"] == "Client not found"


def test_create_project_inline_client_and_redeem_invitation(client, app, admin_h):
    r = client.post(
        "/projects",
        json={"name": "Brand", "clientName": "Dana", "clientEmail": "Dana@Example.com"},
        headers=admin_h,
    )
    assert r.status_code == 201
    assert r.json["project"]["clientName"] == "Dana"
    invitation = r.json["invitation"]
    assert invitation["token"] and invitation["expiresAt"]

    with session_scope(app) as s:
        dana = s.query(User).filter(User.email == "dana@example.com").one()
        assert dana.role == "client"
        assert dana.invitation_token_hash != invitation["token"]

    # No usable password until the invitation is redeemed.
    r = client.post("/auth/login", json={"email": "dana@example.com", "password": invitation["token"]})
    assert r.status_code == 401

    r = client.post("/auth/invitations/redeem", json={"token": invitation["token"], "password": "danas-password"})
    assert r.status_code == 200
    assert r.json["user"]["hasPendingInvitation"] is False

    r = client.get("/projects", headers=auth(r.json["token"]))
    assert [p["name"] for p in r.json] == ["Brand"]

    # One-time use.
    r = client.post("/auth/invitations/redeem", json={"token": invitation["token"], "password": "another-pass"})
    assert r.status_code == 400


def test_create_project_inline_client_duplicate_email(client, admin_h):
    r = client.post(
        "/projects",
        json={"name": "Brand", "clientName": "Alice again", "clientEmail": "alice@example.com"},
        headers=admin_h,
    )
    assert r.status_code == 400
    assert r.json["message"] == "User already exists with this email"


def test_list_projects_scoped_by_role(client, app, admin_h, alice_h, bob_h):
    create_project(client, admin_h, app, "alice@example.com", "Alice one")
    create_project(client, admin_h, app, "bob@example.com", "Bob one")

    assert {p["name"] for p in client.get("/projects", headers=admin_h).json} == {"Alice one", "Bob one"}
    assert [p["name"] for p in client.get("/projects", headers=alice_h).json] == ["Alice one"]
    assert [p["name"] for p in client.get("/projects", headers=bob_h).json] == ["Bob one"]

    # A client cannot widen the scope with clientId.
    bob_id = user_id(app, "bob@example.com")
    assert [p["name"] for p in client.get(f"/projects?clientId={bob_id}", headers=alice_h).json] == ["Alice one"]


def test_list_projects_filters_and_sort(client, app, admin_h):
    first = create_project(client, admin_h, app, "alice@example.com", "Summer Campaign")
    create_project(client, admin_h, app, "bob@example.com", "Winter catalogue")
    client.put(f"/projects/{first['id']}", json={"status": "in_progress"}, headers=admin_h)

    names = [p["name"] for p in client.get("/projects", headers=admin_h).json]
    assert names == ["Summer Campaign", "Winter catalogue"]

    r = client.get("/projects?search=campaign", headers=admin_h)
    assert [p["name"] for p in r.json] == ["Summer Campaign"]

    r = client.get("/projects?status=in_progress", headers=admin_h)
    assert [p["name"] for p in r.json] == ["Summer Campaign"]

    r = client.get(f"/projects?clientId={user_id(app, 'bob@example.com')}", headers=admin_h)
    assert [p["name"] for p in r.json] == ["Winter catalogue"]

    assert client.get("/projects?status=archived", headers=admin_h).status_code == 400


def test_get_project_access(client, app, admin_h, alice_h, bob_h):
    project = create_project(client, admin_h, app)
    assert client.get(f"/projects/{project['id']}", headers=alice_h).status_code == 200
    assert client.get(f"/projects/{project['id']}", headers=admin_h).status_code == 200
    r = client.get(f"/projects/{project['id']}", headers=bob_h)
    assert r.status_code == 403
    assert client.get("/projects/9999", headers=admin_h).status_code == 404


def test_update_project_activity_messages(client, app, admin_h, alice_h):
    project = create_project(client, admin_h, app)
    pid = project["id"]

    r = client.put(f"/projects/{pid}", json={"description": "New brief"}, headers=admin_h)
    assert r.status_code == 200
    assert r.json["project"]["description"] == "New brief"
    assert r.json["project"]["activity"][0]["action"] == "Project details updated"

    r = client.put(f"/projects/{pid}", json={"name": "Renamed", "status": "completed"}, headers=admin_h)
    assert r.json["project"]["status"] == "completed"
    assert r.json["project"]["name"] == "Renamed"
    assert r.json["project"]["activity"][0]["action"] == "Project status updated to completed"

    # Any status may follow any other.
    r = client.put(f"/projects/{pid}", json={"status": "awaiting_feedback"}, headers=admin_h)
    assert r.json["project"]["status"] == "awaiting_feedback"

    assert client.put(f"/projects/{pid}", json={"status": "bogus"}, headers=admin_h).status_code == 400
    assert client.put(f"/projects/{pid}", json={"name": "Mine"}, headers=alice_h).status_code == 403


def test_denormalized_client_name_not_synced(client, app, admin_h, alice_h):
    project = create_project(client, admin_h, app)
    client.put("/users/profile", json={"name": "Alice Cooper"}, headers=alice_h)
    r = client.get(f"/projects/{project['id']}", headers=admin_h)
    assert r.json["clientName"] == "Alice"


def test_delete_project_cascades(client, app, admin_h, alice_h):
    project = create_project(client, admin_h, app)
    pid = project["id"]
    f = upload_file(client, admin_h, pid).json["file"]
    client.post(f"/feedback/file/{f['id']}", json={"content": "Bigger logo"}, headers=alice_h)
    client.post(
        "/messages",
        data={"projectId": str(pid), "text": "see attached", "attachments": [png_upload("ref.png")]},
        headers=alice_h,
        content_type="multipart/form-data",
    )
    storage_root = Path(app.config["STORAGE_ROOT"])
    assert len([p for p in storage_root.rglob("*") if p.is_file()]) == 2

    assert client.delete(f"/projects/{pid}", headers=alice_h).status_code == 403
    r = client.delete(f"/projects/{pid}", headers=admin_h)
    assert r.status_code == 200

    assert client.get(f"/projects/{pid}", headers=admin_h).status_code == 404
    assert client.get(f"/files/{f['id']}", headers=admin_h).status_code == 404
    assert [p for p in storage_root.rglob("*") if p.is_file()] == []
    with session_scope(app) as s:
        assert s.query(Feedback).count() == 0
        assert s.query(Message).count() == 0
        assert s.query(ProjectActivity).count() == 0

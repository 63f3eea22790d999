import io
from pathlib import Path

from conftest import create_project, png_upload, upload_file


def _blobs(app):
    root = Path(app.config["STORAGE_ROOT"])
    return [p for p in root.rglob("*") if p.is_file()] if root.exists() else []


def test_upload_and_list(client, app, admin_h, alice_h):
    pid = create_project(client, admin_h, app)["id"]
    r = upload_file(client, admin_h, pid, name="Homepage v1")
    assert r.status_code == 201
    f = r.json["file"]
    assert f["name"] == "Homepage v1"
    assert f["originalName"] == "design.png"
    assert f["type"] == "image/png"
    assert f["size"] == 2048
    assert f["projectId"] == pid
    assert f["url"].startswith("/uploads/files/")

    r = client.get(f"/files/project/{pid}", headers=alice_h)
    assert [x["id"] for x in r.json] == [f["id"]]

    project = client.get(f"/projects/{pid}", headers=alice_h).json
    assert [x["id"] for x in project["files"]] == [f["id"]]
    assert project["activity"][0]["action"] == "New file uploaded: Homepage v1"


def test_uploaded_blob_is_retrievable(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    f = upload_file(client, admin_h, pid).json["file"]
    r = client.get(f["url"])
    assert r.status_code == 200
    assert r.mimetype == "image/png"
    assert r.data.startswith(b"\x89PNG")
    assert len(r.data) == 2048
    assert client.get("/uploads/files/missing.png").status_code == 404


def test_upload_rejects_unsupported_type(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    r = upload_file(client, admin_h, pid, upload=(io.BytesIO(b"PK\x03\x04"), "bundle.zip", "application/zip"))
    assert r.status_code == 400
    assert r.json["message"] == "File type not supported: application/zip"
    assert client.get(f"/files/project/{pid}", headers=admin_h).json == []
    assert _blobs(app) == []


def test_upload_rejects_oversize_file(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    big = (io.BytesIO(b"\0" * (15 * 1024 * 1024)), "huge.png", "image/png")
    r = upload_file(client, admin_h, pid, upload=big)
    assert r.status_code == 400
    assert r.json["message"] == "File too large. Maximum size is 10MB."
    assert client.get(f"/files/project/{pid}", headers=admin_h).json == []
    assert _blobs(app) == []


def test_upload_requires_file(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    r = client.post(f"/files/project/{pid}", data={}, headers=admin_h, content_type="multipart/form-data")
    assert r.status_code == 400
    assert r.json["message"] == "No file uploaded"


def test_upload_to_missing_project_stores_nothing(client, app, admin_h):
    r = upload_file(client, admin_h, 9999)
    assert r.status_code == 404
    assert r.json["message"] == "Project not found"
    assert _blobs(app) == []


def test_client_cannot_upload_or_delete(client, app, admin_h, alice_h):
    pid = create_project(client, admin_h, app)["id"]
    assert upload_file(client, alice_h, pid).status_code == 403
    fid = upload_file(client, admin_h, pid).json["file"]["id"]
    assert client.delete(f"/files/{fid}", headers=alice_h).status_code == 403


def test_file_access_is_project_scoped(client, app, admin_h, alice_h, bob_h):
    pid = create_project(client, admin_h, app)["id"]
    fid = upload_file(client, admin_h, pid).json["file"]["id"]
    assert client.get(f"/files/{fid}", headers=alice_h).status_code == 200
    assert client.get(f"/files/{fid}", headers=bob_h).status_code == 403
    assert client.get(f"/files/project/{pid}", headers=bob_h).status_code == 403
    assert client.get("/files/9999", headers=admin_h).status_code == 404


def test_delete_file_removes_blob_and_list_entry(client, app, admin_h, alice_h):
    pid = create_project(client, admin_h, app)["id"]
    f = upload_file(client, admin_h, pid).json["file"]
    client.post(f"/feedback/file/{f['id']}", json={"content": "Crop it"}, headers=alice_h)
    assert len(_blobs(app)) == 1

    r = client.delete(f"/files/{f['id']}", headers=admin_h)
    assert r.status_code == 200
    assert _blobs(app) == []

    project = client.get(f"/projects/{pid}", headers=admin_h).json
    assert project["files"] == []
    assert project["activity"][0]["action"] == "File deleted: design.png"

    r = client.delete(f"/files/{f['id']}", headers=admin_h)
    assert r.status_code == 404


def test_delete_file_tolerates_missing_blob(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    f = upload_file(client, admin_h, pid).json["file"]
    for blob in _blobs(app):
        blob.unlink()
    assert client.delete(f"/files/{f['id']}", headers=admin_h).status_code == 200


def test_newest_upload_listed_first(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    first = upload_file(client, admin_h, pid, upload=png_upload("a.png")).json["file"]
    second = upload_file(client, admin_h, pid, upload=png_upload("b.png")).json["file"]
    r = client.get(f"/files/project/{pid}", headers=admin_h)
    assert [x["id"] for x in r.json] == [second["id"], first["id"]]

    detail = client.get(f"/projects/{pid}", headers=admin_h).json
    assert [x["id"] for x in detail["files"]] == [second["id"], first["id"]]


def test_overlong_file_name_rejected(client, app, admin_h):
    pid = create_project(client, admin_h, app)["id"]
    r = upload_file(client, admin_h, pid, name="n" * 256)
    assert r.status_code == 400
    assert r.json["message"] == "File name must be at most 255 characters"
    assert client.get(f"/files/project/{pid}", headers=admin_h).json == []
    assert _blobs(app) == []

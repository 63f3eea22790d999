import io

import pytest
from werkzeug.security import generate_password_hash

from app.designreview import create_app
from app.designreview.db import session_scope
from app.designreview.models import ROLE_ADMIN, ROLE_CLIENT, Base, User

PASSWORD = "password123"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "uploads"))
    for k in (
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "JWT_SECRET",
        "UPLOAD_MAX_BYTES",
        "MESSAGE_MAX_ATTACHMENTS",
        "ALLOW_ADMIN_REGISTRATION",
    ):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add_all(
            [
                User(email="admin@example.com", name="Admin", role=ROLE_ADMIN, password_hash=generate_password_hash(PASSWORD)),
                User(email="alice@example.com", name="Alice", role=ROLE_CLIENT, password_hash=generate_password_hash(PASSWORD)),
                User(email="bob@example.com", name="Bob", role=ROLE_CLIENT, password_hash=generate_password_hash(PASSWORD)),
            ]
        )

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, email, password=PASSWORD):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json
    return r.json["token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def user_id(app, email):
    with session_scope(app) as s:
        return s.query(User).filter(User.email == email).one().id


@pytest.fixture()
def admin_h(client):
    return auth(login(client, "admin@example.com"))


@pytest.fixture()
def alice_h(client):
    return auth(login(client, "alice@example.com"))


@pytest.fixture()
def bob_h(client):
    return auth(login(client, "bob@example.com"))


def png_upload(name="design.png", size=2048, content_type="image/png"):
    return (io.BytesIO(b"\x89PNG" + b"\0" * (size - 4)), name, content_type)


def create_project(client, headers, app, client_email="alice@example.com", name="Website refresh"):
    r = client.post(
        "/projects",
        json={"name": name, "description": "Homepage", "clientId": user_id(app, client_email)},
        headers=headers,
    )
    assert r.status_code == 201, r.json
    return r.json["project"]


def upload_file(client, headers, project_id, upload=None, name=None):
    data = {"file": upload or png_upload()}
    if name:
        data["name"] = name
    return client.post(f"/files/project/{project_id}", data=data, headers=headers, content_type="multipart/form-data")

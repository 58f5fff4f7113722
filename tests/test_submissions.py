import io
import json

import pytest
from werkzeug.security import generate_password_hash

from app.journalhub import create_app
from app.journalhub.db import create_schema, session_scope
from app.journalhub.models import AuditEvent, Role, User
from app.journalhub.modules.submissions.service import parse_page_args
from app.journalhub.errors import InvalidRequest
from scripts.init_db import seed


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("DOCUMENT_STORAGE_PATH", str(tmp_path / "storage"))

    app = create_app()
    create_schema(app)
    with session_scope(app) as s:
        seed(s, admin_email="admin@example.com", admin_password="pw")
        viewer = Role(key="viewer", name="Viewer")
        s.add(viewer)
        u = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(viewer)
        s.add(u)
    return app


def _client(app, email=None):
    c = app.test_client()
    if email:
        r = c.post("/auth/login", json={"email": email, "password": "pw"})
        assert r.status_code == 200
    return c


def _submit(
    client,
    *,
    title="On Pollination",
    email="ada@example.com",
    docx=b"PK manuscript",
    filename="My Paper.docx",
    **extra,
):
    data = {
        "title": title,
        "author_name": "Ada Author",
        "author_email": email,
        "abstract": "Bees.",
        **extra,
    }
    if docx is not None:
        data["docx"] = (io.BytesIO(docx), filename)
    return client.post("/api/submissions", data=data, content_type="multipart/form-data")


def test_public_submission_stores_manuscript(app, tmp_path):
    r = _submit(_client(app))
    assert r.status_code == 201
    body = r.json
    assert body["status"] == "pending"
    assert body["authorEmail"] == "ada@example.com"
    assert body["docxLocalPath"].endswith("-My_Paper.docx")
    assert (tmp_path / "storage" / body["docxLocalPath"]).read_bytes() == b"PK manuscript"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "submission.create").one()
    assert ev.actor_user_id is None
    assert json.loads(ev.metadata_json)["filename"] == "My_Paper.docx"


def test_submission_validation(app):
    c = _client(app)

    r = _submit(c, docx=None)
    assert r.status_code == 400
    assert r.json["message"] == "No file uploaded"

    r = _submit(c, filename="paper.pdf")
    assert r.status_code == 400
    assert r.json["message"] == "Invalid file type. Only .docx files are allowed"

    r = _submit(c, email="not-an-email")
    assert r.status_code == 400
    assert r.json["details"] == {"field": "author_email"}

    r = _submit(c, title="")
    assert r.status_code == 400


def test_listing_requires_view_permission(app):
    _submit(_client(app))
    assert _client(app).get("/api/submissions").status_code == 401
    r = _client(app, "viewer@example.com").get("/api/submissions")
    assert r.status_code == 403
    assert r.json["details"] == {"permission": "submissions.view"}


def test_listing_filters_and_pages(app):
    anon = _client(app)
    ids = [_submit(anon, title=f"Paper {i}").json["id"] for i in range(5)]
    admin = _client(app, "admin@example.com")

    r = admin.get("/api/submissions?per_page=2&page=1")
    assert r.json["total"] == 5
    assert r.json["pages"] == 3
    assert [i["id"] for i in r.json["items"]] == [ids[4], ids[3]]

    r = admin.get("/api/submissions?per_page=2&page=3")
    assert [i["id"] for i in r.json["items"]] == [ids[0]]

    admin.patch(f"/api/submissions/{ids[1]}/status", json={"status": "accepted"})
    r = admin.get("/api/submissions?status=accepted")
    assert [i["id"] for i in r.json["items"]] == [ids[1]]

    assert admin.get("/api/submissions?status=bogus").status_code == 400
    assert admin.get("/api/submissions?page=x").status_code == 400


def test_status_update_records_notes_and_audit(app):
    sid = _submit(_client(app)).json["id"]
    admin = _client(app, "admin@example.com")

    r = admin.patch(f"/api/submissions/{sid}/status", json={"status": "under_review", "notes": "Assigned to R2"})
    assert r.status_code == 200
    assert r.json["status"] == "under_review"
    assert r.json["reviewNotes"] == "Assigned to R2"

    assert admin.get(f"/api/submissions/{sid}").json["status"] == "under_review"
    assert admin.get("/api/submissions/999").status_code == 404

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "submission.status").one()
    assert json.loads(ev.metadata_json) == {"from": "pending", "to": "under_review"}


def test_parse_page_args():
    assert parse_page_args(None, None) == (1, 20)
    assert parse_page_args("0", "1000") == (1, 100)
    with pytest.raises(InvalidRequest):
        parse_page_args("one", None)


def test_search_requires_view_permission(app):
    assert _client(app).get("/api/submissions/search?query=bees").status_code == 401
    assert _client(app, "viewer@example.com").get("/api/submissions/search?query=bees").status_code == 403


def test_search_matches_by_field_and_across_fields(app):
    anon = _client(app)
    wasps = _submit(anon, title="Wasp Nesting", abstract="Paper wasps.", keywords="hymenoptera, nests").json["id"]
    grace = _submit(anon, title="Soil Microbes", author_name="Grace Hopper", abstract="Fungi.").json["id"]
    admin = _client(app, "admin@example.com")

    r = admin.get("/api/submissions/search?query=WASP")
    assert r.status_code == 200
    assert [i["id"] for i in r.json["items"]] == [wasps]
    assert r.json["total"] == 1

    r = admin.get("/api/submissions/search?query=nests&field=keywords")
    assert [i["id"] for i in r.json["items"]] == [wasps]
    assert admin.get("/api/submissions/search?query=nests&field=title").json["items"] == []

    r = admin.get("/api/submissions/search?query=hopper&field=authors")
    assert [i["id"] for i in r.json["items"]] == [grace]


def test_search_pages_results(app):
    anon = _client(app)
    ids = [_submit(anon, title=f"Bee Study {i}").json["id"] for i in range(3)]
    admin = _client(app, "admin@example.com")

    r = admin.get("/api/submissions/search?query=bee&per_page=2&page=2")
    assert r.json["total"] == 3
    assert r.json["pages"] == 2
    assert [i["id"] for i in r.json["items"]] == [ids[0]]


def test_search_rejects_bad_queries(app):
    admin = _client(app, "admin@example.com")

    r = admin.get("/api/submissions/search?query=%20%20")
    assert r.status_code == 400
    assert r.json["message"] == "Search query must be between 1 and 100 characters"

    r = admin.get("/api/submissions/search?query=" + "a" * 101)
    assert r.status_code == 400

    r = admin.get("/api/submissions/search?query=bees%3B%20drop")
    assert r.status_code == 400
    assert r.json["message"] == "Search query contains invalid characters"

    r = admin.get("/api/submissions/search?query=bees&field=status")
    assert r.status_code == 400
    assert r.json["details"]["allowed"] == ["title", "abstract", "keywords", "authors"]

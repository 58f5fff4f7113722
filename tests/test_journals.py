import io
import json

import pytest

from app.journalhub import create_app
from app.journalhub.db import create_schema, session_scope
from app.journalhub.models import AuditEvent
from app.journalhub.modules.journals import admin as journals_admin
from app.journalhub.modules.journals.models import Journal
from app.journalhub.storage import Storage, StorageError
from scripts.init_db import seed


class FakeBucket(Storage):
    def __init__(self, *, fail: bool = False):
        self.objects: dict[str, bytes] = {}
        self.fail = fail

    def put_bytes(self, key, data, *, content_type=None):
        if self.fail:
            raise StorageError("bucket unreachable")
        self.objects[key] = data

    def public_url(self, key):
        return f"https://journals.bucket.example/{key}"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("DOCUMENT_STORAGE_PATH", str(tmp_path / "storage"))
    monkeypatch.setenv("S3_UPLOAD_PREFIX", "journals")

    app = create_app()
    create_schema(app)
    with session_scope(app) as s:
        seed(s, admin_email="admin@example.com", admin_password="pw")
    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    r = c.post("/auth/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 200
    return c


def _upload(client, *, title="Volume One", pdf=b"%PDF-1.7 one", docx=None, pdf_name="paper.pdf", **extra):
    data = {"title": title, "volume": "1", "issue": "2", **extra}
    if pdf is not None:
        data["pdf"] = (io.BytesIO(pdf), pdf_name)
    if docx is not None:
        data["docx"] = (io.BytesIO(docx), "paper.docx")
    return client.post("/api/journals", data=data, content_type="multipart/form-data")


def test_upload_keeps_local_copy(app, client, tmp_path):
    r = _upload(client, docx=b"PK docx")
    assert r.status_code == 201
    body = r.json
    assert body["status"] == "draft"
    assert body["pdfUrl"] is None
    assert body["pdfLocalPath"].endswith("-paper.pdf")
    assert (tmp_path / "storage" / body["pdfLocalPath"]).read_bytes() == b"%PDF-1.7 one"
    assert (tmp_path / "storage" / body["docxLocalPath"]).read_bytes() == b"PK docx"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "journal.create").one()
        meta = json.loads(ev.metadata_json)
    assert set(meta["files"]) == {"pdf", "docx"}
    assert ev.actor_user_email == "admin@example.com"


def test_upload_pushes_to_object_storage_when_configured(client, monkeypatch):
    bucket = FakeBucket()
    monkeypatch.setattr(journals_admin, "remote_storage_from_config", lambda _cfg: bucket)

    r = _upload(client)
    assert r.status_code == 201
    assert r.json["pdfUrl"].startswith("https://journals.bucket.example/journals/")
    assert r.json["pdfLocalPath"]
    assert list(bucket.objects.values()) == [b"%PDF-1.7 one"]


def test_upload_survives_object_storage_failure(client, monkeypatch):
    monkeypatch.setattr(journals_admin, "remote_storage_from_config", lambda _cfg: FakeBucket(fail=True))

    r = _upload(client)
    assert r.status_code == 201
    assert r.json["pdfUrl"] is None
    assert r.json["pdfLocalPath"]


def test_upload_validation(client):
    r = _upload(client, pdf_name="paper.docx")
    assert r.status_code == 400
    assert r.json["message"] == "Invalid file type. Only .pdf files are allowed"

    r = _upload(client, pdf=None)
    assert r.status_code == 400

    r = _upload(client, title="  ")
    assert r.status_code == 400
    assert r.json["details"] == {"field": "title"}

    r = _upload(client, pdf=b"")
    assert r.status_code == 400
    assert r.json["message"] == "Uploaded file is empty"


def test_upload_requires_login(app):
    r = app.test_client().post("/api/journals", data={"title": "x"})
    assert r.status_code == 401


def test_status_transitions_and_public_listing(app, client):
    jid = _upload(client).json["id"]
    anon = app.test_client()
    assert anon.get("/api/journals").json == []

    r = client.patch(f"/api/journals/{jid}/status", json={"status": "published", "reason": "issue ready"})
    assert r.status_code == 200
    assert r.json["status"] == "published"
    published_at = r.json["publishedAt"]
    assert published_at

    listing = anon.get("/api/journals").json
    assert [j["id"] for j in listing] == [jid]
    assert anon.get(f"/api/journals/{jid}").json["title"] == "Volume One"

    # Re-publishing keeps the first publication date.
    client.patch(f"/api/journals/{jid}/status", json={"status": "archived"})
    r = client.patch(f"/api/journals/{jid}/status", json={"status": "published"})
    assert r.json["publishedAt"] == published_at

    r = client.patch(f"/api/journals/{jid}/status", json={"status": "retracted"})
    assert r.status_code == 400
    assert r.json["details"]["allowed"] == ["draft", "published", "archived"]

    r = client.patch("/api/journals/999/status", json={"status": "draft"})
    assert r.status_code == 404
    assert r.json["message"] == "Journal not found"

    with session_scope(app) as s:
        first = s.query(AuditEvent).filter(AuditEvent.action == "journal.status").order_by(AuditEvent.id).first()
    assert first.reason == "issue ready"
    assert json.loads(first.metadata_json) == {"from": "draft", "to": "published"}


def test_file_info_reports_which_copies_exist(app, client, tmp_path):
    jid = _upload(client).json["id"]
    with session_scope(app) as s:
        s.add(Journal(title="Ghost", docx_local_path="uploads/journals/ghost.docx", docx_web_view_link="https://r/x.docx"))

    rows = {row["title"]: row for row in client.get("/api/journals/file-info").json}
    assert rows["Volume One"]["id"] == jid
    assert rows["Volume One"]["pdf"]["localExists"] is True
    assert rows["Volume One"]["docx"] == {"remoteUrl": None, "localPath": None, "localExists": False}
    assert rows["Ghost"]["docx"] == {
        "remoteUrl": "https://r/x.docx",
        "localPath": "uploads/journals/ghost.docx",
        "localExists": False,
    }


def test_reupload_remote_fills_missing_urls(app, client, monkeypatch):
    jid = _upload(client).json["id"]
    bucket = FakeBucket()
    monkeypatch.setattr(journals_admin, "remote_storage_from_config", lambda _cfg: bucket)

    r = client.post(f"/api/journals/{jid}/reupload-remote")
    assert r.status_code == 200
    assert r.json["uploaded"] == ["pdf"]
    assert r.json["skipped"] == {"docx": "no local path stored"}
    assert r.json["journal"]["pdfUrl"].startswith("https://journals.bucket.example/journals/")

    with session_scope(app) as s:
        j = s.get(Journal, jid)
        assert j.pdf_url == j.pdf_web_view_link
        assert j.pdf_file_id in bucket.objects
        assert s.query(AuditEvent).filter(AuditEvent.action == "journal.reupload_remote").count() == 1

    r = client.post(f"/api/journals/{jid}/reupload-remote")
    assert r.json["uploaded"] == []
    assert r.json["skipped"]["pdf"] == "remote copy already present"


def test_reupload_remote_without_object_storage_is_503(client):
    jid = _upload(client).json["id"]
    r = client.post(f"/api/journals/{jid}/reupload-remote")
    assert r.status_code == 503
    assert r.json["message"] == "Object storage unavailable"


def test_file_info_requires_login(app):
    r = app.test_client().get("/api/journals/file-info")
    assert r.status_code == 401


def _publish(client, jid):
    r = client.patch(f"/api/journals/{jid}/status", json={"status": "published"})
    assert r.status_code == 200


def test_search_only_returns_published_journals(app, client):
    shown = _upload(client, title="Pollinator Decline", keywords="bees, climate").json["id"]
    _upload(client, title="Pollinator Draft").json["id"]
    _publish(client, shown)

    r = app.test_client().get("/api/journals/search?query=pollinator")
    assert r.status_code == 200
    assert [j["id"] for j in r.json] == [shown]
    assert r.json[0]["keywords"] == "bees, climate"


def test_search_by_field(app, client):
    a = _upload(client, title="Hive Health", authors="Grace Hopper", abstract="Varroa mites.").json["id"]
    b = _upload(client, title="Hopper Ecology", authors="Ada Author").json["id"]
    _publish(client, a)
    _publish(client, b)
    anon = app.test_client()

    assert {j["id"] for j in anon.get("/api/journals/search?query=hopper").json} == {a, b}
    assert [j["id"] for j in anon.get("/api/journals/search?query=hopper&field=authors").json] == [a]
    assert [j["id"] for j in anon.get("/api/journals/search?query=hopper&field=title").json] == [b]
    assert [j["id"] for j in anon.get("/api/journals/search?query=varroa&field=abstract").json] == [a]


def test_search_treats_underscore_literally(app, client):
    jid = _upload(client, title="abc").json["id"]
    _publish(client, jid)
    assert app.test_client().get("/api/journals/search?query=a_c").json == []


def test_search_validation(app):
    anon = app.test_client()

    r = anon.get("/api/journals/search")
    assert r.status_code == 400
    assert r.json["details"] == {"field": "query"}

    assert anon.get("/api/journals/search?query=" + "x" * 101).status_code == 400
    assert anon.get("/api/journals/search?query=" + "x" * 100).status_code == 200

    r = anon.get("/api/journals/search?query=bees%25")
    assert r.status_code == 400
    assert r.json["message"] == "Search query contains invalid characters"

    r = anon.get("/api/journals/search?query=bees&field=volume")
    assert r.status_code == 400
    assert r.json["message"] == "Invalid search field"

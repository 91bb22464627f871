from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import jwt
from fastapi.testclient import TestClient

from backend.app.config import settings
from backend.app.deps import require_admin, require_seller
from backend.app.errors import QueryFailed
from backend.app.main import app
from backend.app.media import CACHE_CONTROL, MediaStore
from backend.app.security import issue_token

# Not used as a context manager: startup would try to reach the database.
client = TestClient(app)


def test_me_without_session_is_401():
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"error": "authentication token required"}
    assert resp.headers["x-request-id"]


def test_me_with_garbage_cookie_is_401():
    resp = client.get("/api/auth/me", headers={"Cookie": "auth_token=garbage"})
    assert resp.status_code == 401


def test_expired_bearer_token_is_401():
    tok = issue_token("u-1", "x@example.com", "vendedor", now=datetime.now(timezone.utc) - timedelta(days=5))
    resp = client.get("/api/vendor-sales", headers={"Authorization": f"Bearer {tok}"})
    assert resp.status_code == 401


def test_logout_clears_cookie_without_session():
    resp = client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert "Max-Age=0" in resp.headers["set-cookie"]


def test_request_id_is_echoed():
    resp = client.post("/api/auth/logout", headers={"X-Request-Id": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"


def test_serve_image_requires_file_param():
    resp = client.get("/api/serve-image")
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_serve_image_rejects_traversal():
    resp = client.get("/api/serve-image", params={"file": "../../etc/passwd"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "invalid path"}


def test_media_routes_serve_from_uploads_root(tmp_path, monkeypatch):
    (tmp_path / "products").mkdir()
    (tmp_path / "products" / "arroz.png").write_bytes(b"\x89PNG....")
    monkeypatch.setattr(app.state, "media", MediaStore(tmp_path))

    for prefix in ("/uploads", "/api/media", "/api/cdn"):
        resp = client.get(f"{prefix}/products/arroz.png")
        assert resp.status_code == 200
        assert resp.content == b"\x89PNG...."
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["cache-control"] == CACHE_CONTROL

    missing = client.get("/uploads/products/nope.png")
    assert missing.status_code == 404
    assert missing.json() == {"error": "file not found"}


def test_login_validation_error_is_400():
    resp = client.post("/api/auth/login", json={"email": "a@example.com"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation failed"


class _DownDb:
    """Stands in for a database that cannot be reached."""

    @contextmanager
    def connection(self, timeout=None):
        raise QueryFailed(detail="connection refused")
        yield

    def ping(self):
        raise QueryFailed(detail="connection refused")


SELLER = {"id": "6f1d2c1e-0000-4000-8000-000000000001", "email": "s@example.com", "role": "vendedor"}


def test_non_uuid_subject_is_401_not_500(monkeypatch):
    monkeypatch.setattr(app.state, "db", _DownDb())
    tok = jwt.encode(
        {"userId": 42, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.jwt_secret,
        algorithm="HS256",
    )
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tok}"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "invalid token"}


def test_database_failure_during_auth_is_generic_500(monkeypatch):
    monkeypatch.setattr(app.state, "db", _DownDb())
    tok = issue_token(SELLER["id"], SELLER["email"], "vendedor")
    resp = client.get("/api/vendor-sales", headers={"Authorization": f"Bearer {tok}", "X-Request-Id": "req-db"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "internal server error", "request_id": "req-db"}


def test_database_failure_in_report_is_generic_500(monkeypatch):
    monkeypatch.setattr(app.state, "db", _DownDb())
    monkeypatch.setitem(app.dependency_overrides, require_seller, lambda: SELLER)
    resp = client.get("/api/vendor-sales")
    body = resp.json()
    assert resp.status_code == 500
    assert body["error"] == "internal server error"
    assert body["request_id"] == resp.headers["x-request-id"]
    assert "connection refused" not in resp.text


def test_health_is_503_when_database_is_down(monkeypatch):
    monkeypatch.setattr(app.state, "db", _DownDb())
    resp = client.get("/health")
    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "degraded"
    assert body["db"] == "down"


def test_unknown_period_names_allowed_values(monkeypatch):
    monkeypatch.setitem(app.dependency_overrides, require_admin, lambda: {"id": "a", "role": "administrator"})
    resp = client.get("/api/admin/wholesale-comparison", params={"period": "year"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "unknown period 'year': use one of day, week, month (default month)"}

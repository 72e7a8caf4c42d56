import pytest
from bson import ObjectId
from fastapi.security import HTTPAuthorizationCredentials

import auth
from errors import UnauthorizedError
from main import app


def _creds(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_missing_header_is_unauthorized(client):
    resp = client.get("/my-interests")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Unauthorized: No token found"}


def test_invalid_token_is_unauthorized(client):
    resp = client.get("/my-interests", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    body = resp.json()
    assert body["message"] == "Unauthorized access"
    assert body["error"] == "Invalid ID token"


def test_non_bearer_scheme_is_unauthorized(client):
    resp = client.get("/my-interests", headers={"Authorization": "Basic abc"})
    assert resp.status_code == 401


def test_require_user_returns_claims():
    claims = auth.require_user(_creds("tok"), verify=lambda t: {"email": "a@farm.io", "uid": t})
    assert claims == {"email": "a@farm.io", "uid": "tok"}


def test_require_user_needs_email_claim():
    with pytest.raises(UnauthorizedError):
        auth.require_user(_creds("tok"), verify=lambda t: {"uid": t})


def test_verify_firebase_token_delegates_to_sdk(monkeypatch):
    calls = []

    def fake_verify_id_token(token, app=None):
        calls.append((token, app))
        return {"email": "a@farm.io"}

    monkeypatch.setattr(auth, "get_firebase_app", lambda: "firebase-app")
    monkeypatch.setattr(auth.firebase_auth, "verify_id_token", fake_verify_id_token)

    assert auth.verify_firebase_token("id-token") == {"email": "a@farm.io"}
    assert calls == [("id-token", "firebase-app")]


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "KrishiLink API Running"}
    report = client.get("/test").json()
    assert report["backend"] == "✅ Running"


def test_database_unavailable_without_override(monkeypatch):
    from fastapi.testclient import TestClient

    monkeypatch.setattr(app.state, "db", None, raising=False)
    resp = TestClient(app).get("/products")
    assert resp.status_code == 500
    assert resp.json()["message"] == "Database not available"


def test_request_id_header(client):
    assert client.get("/").headers.get("x-request-id")


def test_require_user_normalizes_email_domain():
    claims = auth.require_user(_creds("tok"), verify=lambda t: {"email": "farmer@Farm.IO"})
    assert claims["email"] == "farmer@farm.io"


def test_reserved_domain_claim_is_unauthorized(client):
    resp = client.post(f"/products/{ObjectId()}/interests", json={"quantity": 1},
                       headers={"Authorization": "Bearer token:buyer@farm.local"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Unauthorized: Invalid email claim"


def test_health_without_database_reports_not_available(monkeypatch):
    from fastapi.testclient import TestClient

    monkeypatch.setattr(app.state, "db", None, raising=False)
    report = TestClient(app).get("/test").json()
    assert report["database"] == "❌ Not Available"
    assert report["connection_status"] == "Not Connected"

import hashlib
import logging
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.requests import Request

from crm_admin.core.database import Base, get_db
from crm_admin.core.errors import PermissionDenied, register_exception_handlers
from crm_admin.core.metrics import request_metrics
from crm_admin.deps import require_role
from crm_admin.models.user import User
from crm_admin.routers.auth import router as auth_router
from crm_admin.routers.internal_metrics import router as internal_metrics_router
from crm_admin.services.auth import create_access_token, decode_access_token
from crm_admin.services.passwords import hash_password, password_looks_hashed, verify_password


def _build_request(path: str = "/internal/metrics") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def _build_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    db.add(User(id="admin-1", email="admin@example.com", name="Admin", role="ADMIN", password_hash=hash_password("s3cret!")))
    db.add(User(id="sales-1", email="sales@example.com", name="Sales", role="SALES", password_hash=hash_password("s3cret!")))
    db.commit()

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(auth_router)
    app.include_router(internal_metrics_router)
    app.dependency_overrides[get_db] = lambda: db

    return TestClient(app), db


def test_hash_password_produces_bcrypt_hash_that_verifies():
    password_hash = hash_password("p@ss")

    assert password_hash.startswith("$2b$12$")
    assert password_looks_hashed(password_hash)
    assert verify_password("p@ss", password_hash)
    assert not verify_password("wrong", password_hash)


def test_verify_password_accepts_legacy_pbkdf2_hashes():
    salt = b"pepper"
    digest = hashlib.pbkdf2_hmac("sha256", b"legacy", salt, 1000)
    legacy_hash = f"pbkdf2$1000${salt.hex()}${digest.hex()}"

    assert verify_password("legacy", legacy_hash)
    assert not verify_password("other", legacy_hash)
    assert not verify_password("legacy", "pbkdf2$broken")
    assert not verify_password("legacy", None)


def test_access_token_round_trip_and_tampering():
    token = create_access_token("user-9", extra={"role": "SALES"})

    payload = decode_access_token(token)
    assert payload["sub"] == "user-9"
    assert payload["role"] == "SALES"

    with pytest.raises(ValueError):
        decode_access_token(token + "x")


def test_login_returns_bearer_token_with_role():
    client, _db = _build_client()

    response = client.post("/api/auth/login", json={"email": "Admin@Example.com", "password": "s3cret!"})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert decode_access_token(body["access_token"])["role"] == "ADMIN"


def test_login_with_wrong_password_returns_401():
    client, _db = _build_client()

    response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_token_endpoint_accepts_oauth2_form():
    client, _db = _build_client()

    response = client.post("/api/auth/token", data={"username": "sales@example.com", "password": "s3cret!"})

    assert response.status_code == 200
    assert decode_access_token(response.json()["access_token"])["sub"] == "sales-1"


def test_me_requires_bearer_token():
    client, _db = _build_client()

    anonymous = client.get("/api/auth/me")
    token = client.post("/api/auth/login", json={"email": "sales@example.com", "password": "s3cret!"}).json()
    authenticated = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    forged = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert anonymous.status_code == 401
    assert authenticated.status_code == 200
    assert authenticated.json()["email"] == "sales@example.com"
    assert forged.status_code == 401


def test_internal_metrics_are_admin_only():
    client, _db = _build_client()
    request_metrics.reset()
    request_metrics.observe("/api/staff", "GET", 200, 12.5, client_id="C1")

    def _token(email):
        return client.post("/api/auth/login", json={"email": email, "password": "s3cret!"}).json()["access_token"]

    denied = client.get("/internal/metrics", headers={"Authorization": f"Bearer {_token('sales@example.com')}"})
    allowed = client.get(
        "/internal/metrics/clients",
        headers={"Authorization": f"Bearer {_token('admin@example.com')}"},
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["clients"]["C1"]["total_requests"] == 1


def test_require_role_logs_and_denies(caplog):
    dependency = require_role(["ADMIN"])
    user = SimpleNamespace(id="u1", role="STAFF")

    with caplog.at_level(logging.WARNING):
        with pytest.raises(PermissionDenied):
            dependency(request=_build_request(), user=user)

    assert "role_denied" in caplog.text

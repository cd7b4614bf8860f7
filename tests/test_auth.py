import time
from datetime import timedelta

import jwt
import pytest

from counsel_intake.auth.security import create_token, decode_token, hash_password, token_for, verify_password
from counsel_intake.core.config import settings
from counsel_intake.core.errors import ValidationError


def test_login_success_admin(client, firm):
    r = client.post("/api/auth/login", json={"email": "Admin@Smith.law ", "password": "admin123"})
    assert r.status_code == 200
    data = r.json()
    assert "token" in data
    assert data["user"]["role"] == "admin"
    assert data["user"]["organizationSlug"] == "smith-law"


def test_login_fail(client, firm):
    r = client.post("/api/auth/login", json={"email": "admin@smith.law", "password": "wrong"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid credentials"}


def test_login_inactive_user(client, db, firm):
    firm["lawyer"].is_active = False
    db.commit()
    r = client.post("/api/auth/login", json={"email": "lawyer@smith.law", "password": "lawyer123"})
    assert r.status_code == 401


def test_me_requires_token(client):
    r = client.get("/api/auth/me")
    assert r.status_code == 401


def test_me_with_token(client, firm):
    token = client.post(
        "/api/auth/login", json={"email": "lawyer@smith.law", "password": "lawyer123"}
    ).json()["token"]
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "lawyer@smith.law"
    assert r.json()["user"]["role"] == "lawyer"


def test_garbage_token_rejected(client, firm):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_token_with_unknown_role_rejected(client, firm):
    lawyer = firm["lawyer"]
    token = create_token(
        {"sub": lawyer.email, "user_id": lawyer.id, "role": "superuser", "organization_id": lawyer.organization_id}
    )
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_expired_token_rejected(client, firm):
    lawyer = firm["lawyer"]
    token = create_token(
        {"sub": lawyer.email, "user_id": lawyer.id, "role": lawyer.role, "organization_id": lawyer.organization_id},
        expires_in=timedelta(seconds=-30),
    )
    assert decode_token(token) is None
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_token_without_expiry_rejected(firm):
    lawyer = firm["lawyer"]
    token = jwt.encode(
        {"sub": lawyer.email, "user_id": lawyer.id, "iat": int(time.time())},
        settings.secret_key,
        algorithm="HS256",
    )
    assert decode_token(token) is None


def test_token_for_carries_staff_claims(firm):
    admin = firm["admin"]
    claims = decode_token(token_for(admin))
    assert claims["sub"] == "admin@smith.law"
    assert claims["user_id"] == admin.id
    assert claims["role"] == "admin"
    assert claims["organization_id"] == firm["org"].id
    assert claims["exp"] - claims["iat"] == settings.jwt_expire_min * 60


def test_password_longer_than_bcrypt_limit():
    with pytest.raises(ValidationError):
        hash_password("x" * 73)
    stored = hash_password("x" * 72)
    assert verify_password("x" * 72, stored)
    assert not verify_password("x" * 73, stored)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_login_with_over_long_password(client, firm):
    r = client.post("/api/auth/login", json={"email": "admin@smith.law", "password": "p" * 200})
    assert r.status_code == 401

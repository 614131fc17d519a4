"""API tests for registration, login, health and notifications."""

import pytest
from jose import jwt

from clinic.core.config import settings
from clinic.core.security import ALGORITHM, InvalidTokenError, create_access_token, decode_access_token
from tests.conftest import MONDAY, PASSWORD, auth, book, next_weekday


class TestAuth:
    async def test_register_login_me(self, client):
        resp = await client.post(
            "/api/auth/register",
            json={"email": "Jane@Example.com", "password": "Passw0rdX",
                  "firstName": "Jane", "lastName": "Doe"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["email"] == "jane@example.com"
        assert body["role"] == "patient"

        resp = await client.post(
            "/api/auth/token", data={"username": "jane@example.com", "password": "Passw0rdX"}
        )
        assert resp.status_code == 200
        token = resp.json()["accessToken"]

        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["firstName"] == "Jane"

    async def test_duplicate_email(self, client, patient):
        resp = await client.post(
            "/api/auth/register",
            json={"email": patient.email, "password": "Passw0rdX",
                  "firstName": "Ann", "lastName": "Lee"},
        )
        assert resp.status_code == 409
        assert resp.json()["detail"] == "email_already_exists"

    async def test_admins_cannot_self_register(self, client):
        resp = await client.post(
            "/api/auth/register",
            json={"email": "root@example.com", "password": "Passw0rdX",
                  "firstName": "Root", "lastName": "User", "role": "admin"},
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "forbidden_role"

    async def test_weak_password(self, client):
        resp = await client.post(
            "/api/auth/register",
            json={"email": "weak@example.com", "password": "password",
                  "firstName": "Weak", "lastName": "Pass"},
        )
        assert resp.status_code == 422

    async def test_wrong_password(self, client, patient):
        resp = await client.post(
            "/api/auth/token", data={"username": patient.email, "password": PASSWORD + "x"}
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "invalid_credentials"

    async def test_bad_token(self, client):
        resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "invalid_token"


    async def test_other_token_types_are_refused(self, client, patient):
        token = jwt.encode(
            {"sub": str(patient.id), "type": "refresh"}, settings.JWT_SECRET, algorithm=ALGORITHM
        )
        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "invalid_token_type"


class TestTokens:
    def test_access_token_claims(self):
        claims = decode_access_token(
            create_access_token(subject="abc", role="doctor", email="d@example.com")
        )
        assert claims["sub"] == "abc"
        assert claims["type"] == "access"
        assert claims["role"] == "doctor"
        assert claims["exp"] - claims["iat"] == settings.ACCESS_EXPIRES_MIN * 60

    def test_missing_subject(self):
        token = jwt.encode({"type": "access"}, settings.JWT_SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidTokenError) as exc:
            decode_access_token(token)
        assert exc.value.reason == "invalid_claims"


class TestHealth:
    async def test_health(self, client):
        assert (await client.get("/api/health")).json() == {"status": "ok"}

    async def test_health_db(self, client):
        resp = await client.get("/api/health/db")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "database": "sqlite"}


class TestNotifications:
    async def test_list_and_mark_read(self, client, doctor, patient):
        await book(client, patient, doctor, next_weekday(MONDAY), "10:00")

        resp = await client.get("/api/notifications?unreadOnly=true", headers=auth(doctor))
        body = resp.json()
        assert body["unread"] == 1
        note = body["items"][0]
        assert note["type"] == "APPOINTMENT_REQUESTED"
        assert note["relatedType"] == "appointment"

        resp = await client.post(f"/api/notifications/{note['id']}/read", headers=auth(doctor))
        assert resp.status_code == 200
        assert resp.json()["isRead"] is True

        resp = await client.get("/api/notifications?unreadOnly=true", headers=auth(doctor))
        assert resp.json() == {"items": [], "unread": 0}

    async def test_cannot_read_others_notifications(self, client, doctor, patient):
        await book(client, patient, doctor, next_weekday(MONDAY), "10:00")
        note = (await client.get("/api/notifications", headers=auth(doctor))).json()["items"][0]

        resp = await client.post(f"/api/notifications/{note['id']}/read", headers=auth(patient))
        assert resp.status_code == 404

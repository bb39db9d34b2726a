# tests/test_auth.py - Sign-up, sign-in and token lifecycle
import pytest
from httpx import AsyncClient

from auth import ACCESS_TOKEN_EXPIRE_MINUTES
from tests.conftest import get_auth_headers, TEST_PASSWORD


@pytest.mark.asyncio
class TestRegistration:
    async def test_register_success(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "newuser@metrology.dev",
            "password": "SecurePass123!",
            "full_name": "New User",
        })
        assert res.status_code == 200
        data = res.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["user"]["email"] == "newuser@metrology.dev"
        assert data["user"]["full_name"] == "New User"
        # No role row until one is assigned out-of-band
        assert data["user"]["role"] == "regular_user"

    async def test_register_weak_password(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "weak@metrology.dev",
            "password": "short",
        })
        assert res.status_code == 422
        assert "password" in res.json()["fields"]

    async def test_register_duplicate_email(self, client: AsyncClient):
        payload = {"email": "dupe@metrology.dev", "password": "SecurePass123!"}
        await client.post("/api/v1/auth/register", json=payload)
        res = await client.post("/api/v1/auth/register", json=payload)
        assert res.status_code == 409

    async def test_register_invalid_email(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "not-an-email",
            "password": "SecurePass123!",
        })
        assert res.status_code == 422


@pytest.mark.asyncio
class TestLogin:
    async def test_login_success(self, client: AsyncClient, technician):
        res = await client.post("/api/v1/auth/login", json={
            "email": "technician@metrology.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 200
        data = res.json()
        assert "access_token" in data
        assert data["user"]["role"] == "technician"

    async def test_login_wrong_password(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": "regular@metrology.dev",
            "password": "WrongPassword123!",
        })
        assert res.status_code == 401

    async def test_login_nonexistent_user(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/login", json={
            "email": "nobody@metrology.dev",
            "password": "SomePassword123!",
        })
        assert res.status_code == 401


@pytest.mark.asyncio
class TestTokens:
    async def test_me(self, client: AsyncClient, admin_user):
        res = await client.get("/api/v1/auth/me", headers=get_auth_headers(admin_user))
        assert res.status_code == 200
        assert res.json()["email"] == "admin@metrology.dev"
        assert res.json()["role"] == "admin"

    async def test_access_without_token(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me")
        assert res.status_code == 401
        assert res.json()["redirect_to"] == "/auth"

    async def test_access_with_invalid_token(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me", headers={
            "Authorization": "Bearer invalid.token.here"
        })
        assert res.status_code == 401
        assert res.json()["redirect_to"] == "/auth"

    async def test_refresh_token(self, client: AsyncClient):
        reg_res = await client.post("/api/v1/auth/register", json={
            "email": "refresh@metrology.dev",
            "password": "SecurePass123!",
        })
        refresh_token = reg_res.json()["refresh_token"]

        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 200
        assert "access_token" in res.json()

    async def test_access_token_rejected_for_refresh(self, client: AsyncClient):
        reg_res = await client.post("/api/v1/auth/register", json={
            "email": "wrongtype@metrology.dev",
            "password": "SecurePass123!",
        })
        access_token = reg_res.json()["access_token"]
        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})
        assert res.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        res = await client.post("/api/v1/auth/logout", headers=headers)
        assert res.status_code == 200

        res = await client.get("/api/v1/auth/me", headers=headers)
        assert res.status_code == 401

        # The session endpoint treats the revoked token as signed out
        res = await client.get("/api/v1/session", headers=headers)
        assert res.json()["authenticated"] is False

    async def test_expires_in_follows_configuration(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": "regular@metrology.dev",
            "password": TEST_PASSWORD,
        })
        assert res.json()["expires_in"] == ACCESS_TOKEN_EXPIRE_MINUTES * 60


@pytest.mark.asyncio
class TestSignOut:
    async def _login(self, client: AsyncClient, email: str) -> dict:
        res = await client.post("/api/v1/auth/login", json={"email": email, "password": TEST_PASSWORD})
        assert res.status_code == 200
        return res.json()

    async def test_refresh_after_logout_is_refused(self, client: AsyncClient, test_user):
        tokens = await self._login(client, "regular@metrology.dev")
        res = await client.post(
            "/api/v1/auth/logout",
            json={"refresh_token": tokens["refresh_token"]},
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        assert res.status_code == 200

        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 401
        assert res.json()["redirect_to"] == "/auth"

    async def test_refresh_token_is_single_use(self, client: AsyncClient, test_user):
        tokens = await self._login(client, "regular@metrology.dev")
        first = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert first.status_code == 200

        reused = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert reused.status_code == 401

        rotated = await client.post("/api/v1/auth/refresh", json={"refresh_token": first.json()["refresh_token"]})
        assert rotated.status_code == 200

    async def test_cannot_revoke_another_users_refresh_token(self, client: AsyncClient, test_user, technician):
        other = await self._login(client, "technician@metrology.dev")
        res = await client.post(
            "/api/v1/auth/logout",
            json={"refresh_token": other["refresh_token"]},
            headers=get_auth_headers(test_user),
        )
        assert res.status_code == 401

        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": other["refresh_token"]})
        assert res.status_code == 200

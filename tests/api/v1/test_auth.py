"""
Tests for authentication API endpoints.

These tests cover the /api/v1/auth endpoints including:
- Login (status codes, cookies, lockout)
- Registration
- Token refresh and logout
- Current identity resolution from Bearer header and session cookie
- Password change and reset
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.models.session import UserSessions
from safra_auth.services.auth_service import AuthService
from safra_auth.utils import utcnow

TEST_PASSWORD = "Password123"


async def _login(client: AsyncClient, password: str = TEST_PASSWORD, **extra):
    return await client.post(
        "/api/v1/auth/login",
        json={"email": "user@x.do", "password": password, **extra},
    )


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.api
class TestLogin:
    """Tests for POST /api/v1/auth/login endpoint."""

    async def test_login_success(self, client: AsyncClient, registered_user):
        response = await _login(client)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "user@x.do"
        assert "password_hash" not in data["user"]
        assert "session_id" not in data

        assert "safra_session" in response.cookies
        assert "access_token" in response.cookies
        assert "refresh_token" in response.cookies

    async def test_cookie_attributes(self, client: AsyncClient, registered_user):
        response = await _login(client)

        set_cookies = response.headers.get_list("set-cookie")
        assert len(set_cookies) == 3
        for cookie in set_cookies:
            assert "HttpOnly" in cookie
            assert "SameSite=strict" in cookie
            assert "Max-Age=" in cookie
            # Not production, so not Secure
            assert "Secure" not in cookie

    async def test_login_wrong_password(self, client: AsyncClient, registered_user):
        response = await _login(client, password="Password124")

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "invalid_credentials"
        assert data["message"] == "Credenciales inválidas"
        assert "set-cookie" not in response.headers

    async def test_login_unknown_email(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login", json={"email": "nobody@x.do", "password": TEST_PASSWORD}
        )

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credentials"

    async def test_lockout_returns_429_with_retry_after(self, client: AsyncClient, registered_user):
        for _ in range(5):
            assert (await _login(client, password="wrong-password")).status_code == 401

        response = await _login(client)

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        data = response.json()
        assert data["code"] == "rate_limited"
        assert data["is_locked"] is True

    async def test_disabled_account_forbidden(
        self, client: AsyncClient, registered_user, user_service: AuthService
    ):
        await user_service.deactivate(registered_user.id)

        response = await _login(client)

        assert response.status_code == 403
        assert response.json()["code"] == "account_disabled"

    async def test_invalid_email_format(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login", json={"email": "not-an-email", "password": TEST_PASSWORD}
        )

        assert response.status_code == 422


@pytest.mark.api
class TestRegister:
    """Tests for POST /api/v1/auth/register endpoint."""

    async def test_register_success(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "New@X.do", "password": TEST_PASSWORD, "first_name": "Ana"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new@x.do"
        assert data["user"]["first_name"] == "Ana"
        assert "verification_token" not in data

    async def test_register_duplicate(self, client: AsyncClient, registered_user):
        response = await client.post(
            "/api/v1/auth/register", json={"email": "user@x.do", "password": TEST_PASSWORD}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "email_exists"

    async def test_register_weak_password(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register", json={"email": "weak@x.do", "password": "short"}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "weak_password"


@pytest.mark.api
class TestCurrentIdentity:
    """Tests for GET /api/v1/auth/me and credential resolution."""

    async def test_me_with_bearer(self, client: AsyncClient, registered_user):
        token = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.get("/api/v1/auth/me", headers=_bearer(token))

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "user@x.do"

    async def test_me_with_session_cookie(self, client: AsyncClient, registered_user):
        session_id = (await _login(client)).cookies["safra_session"]
        client.cookies.clear()

        response = await client.get(
            "/api/v1/auth/me", headers={"Cookie": f"safra_session={session_id}"}
        )

        assert response.status_code == 200
        assert response.json()["user"]["id"] == registered_user.id

    async def test_me_without_credentials(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401

    async def test_me_with_refresh_token_rejected(self, client: AsyncClient, registered_user):
        refresh_token = (await _login(client)).json()["refresh_token"]
        client.cookies.clear()

        response = await client.get("/api/v1/auth/me", headers=_bearer(refresh_token))

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "invalid_token"

    async def test_me_with_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers=_bearer("garbage"))

        assert response.status_code == 401

    async def test_expired_session_cookie_is_flagged_inactive(
        self, client: AsyncClient, db_session: AsyncSession, registered_user
    ):
        session_id = (await _login(client)).cookies["safra_session"]
        client.cookies.clear()
        await db_session.execute(
            update(UserSessions)
            .where(UserSessions.id == session_id)
            .values(expires_at=utcnow() - timedelta(minutes=1))
        )
        await db_session.commit()

        response = await client.get(
            "/api/v1/auth/me", headers={"Cookie": f"safra_session={session_id}"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "session_expired"
        result = await db_session.execute(
            select(UserSessions)
            .where(UserSessions.id == session_id)
            .execution_options(populate_existing=True)
        )
        assert result.scalar_one().is_active is False

    async def test_list_sessions(self, client: AsyncClient, registered_user):
        await _login(client)
        token = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.get("/api/v1/auth/sessions", headers=_bearer(token))

        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert len(sessions) == 2
        assert [s["current"] for s in sessions].count(True) == 1
        assert all("id" not in s for s in sessions)


@pytest.mark.api
class TestRefreshAndLogout:
    async def test_refresh_with_body(self, client: AsyncClient, registered_user):
        refresh_token = (await _login(client)).json()["refresh_token"]
        client.cookies.clear()

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        new_access = response.json()["access_token"]
        me = await client.get("/api/v1/auth/me", headers=_bearer(new_access))
        assert me.status_code == 200

    async def test_refresh_renews_only_access_cookie(self, client: AsyncClient, registered_user):
        refresh_token = (await _login(client)).json()["refresh_token"]
        client.cookies.clear()

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        assert "access_token" in response.cookies
        assert "refresh_token" not in response.cookies
        assert "safra_session" not in response.cookies

    async def test_refresh_with_access_token_rejected(self, client: AsyncClient, registered_user):
        access_token = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_token"

    async def test_refresh_without_token(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/refresh")

        assert response.status_code == 401

    async def test_logout_ends_session(self, client: AsyncClient, registered_user):
        token = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.post("/api/v1/auth/logout", headers=_bearer(token))

        assert response.status_code == 200
        after = await client.get("/api/v1/auth/me", headers=_bearer(token))
        assert after.status_code == 401
        assert after.json()["detail"]["code"] == "session_expired"

    async def test_logout_all(self, client: AsyncClient, registered_user):
        first = (await _login(client)).json()["access_token"]
        second = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.post("/api/v1/auth/logout-all", headers=_bearer(first))

        assert response.status_code == 200
        assert (await client.get("/api/v1/auth/me", headers=_bearer(second))).status_code == 401


@pytest.mark.api
class TestPasswords:
    async def test_change_password(self, client: AsyncClient, registered_user):
        token = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "NewPassword456"},
            headers=_bearer(token),
        )

        assert response.status_code == 200
        # The session that changed the password stays signed in
        assert (await client.get("/api/v1/auth/me", headers=_bearer(token))).status_code == 200
        assert (await _login(client, password="NewPassword456")).status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, registered_user):
        token = (await _login(client)).json()["access_token"]
        client.cookies.clear()

        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "wrong", "new_password": "NewPassword456"},
            headers=_bearer(token),
        )

        assert response.status_code == 401

    async def test_forgot_password_is_generic(self, client: AsyncClient, registered_user):
        known = await client.post("/api/v1/auth/forgot-password", json={"email": "user@x.do"})
        unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@x.do"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    async def test_reset_password(
        self, client: AsyncClient, registered_user, user_service: AuthService
    ):
        token = (await user_service.request_password_reset("user@x.do")).reset_token

        response = await client.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "BrandNew789"}
        )

        assert response.status_code == 200
        assert (await _login(client, password="BrandNew789")).status_code == 200

    async def test_reset_password_bad_token(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/reset-password", json={"token": "nope", "new_password": "BrandNew789"}
        )

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_token"

    async def test_verify_email(self, client: AsyncClient, user_service: AuthService):
        registered = await user_service.register("verify@x.do", TEST_PASSWORD)

        response = await client.post(
            "/api/v1/auth/verify-email", json={"token": registered.verification_token}
        )

        assert response.status_code == 200

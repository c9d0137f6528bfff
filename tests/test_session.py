"""
Customer Dashboard Tests - Auth Session Tests.

Tests login, registration, logout, restore from the persisted token and
the OAuth callback flow.
"""

import httpx
import pytest

from customer_dashboard.api_client import BackendClient
from customer_dashboard.exceptions import (AuthenticationMissingException, ProfileInvalidException,
                                           RequestFailedException)
from customer_dashboard.session import AuthSession, MemoryTokenStorage
from tests.conftest import REGULAR_USER, FakeBackend


@pytest.mark.asyncio
async def test_login_establishes_session(client: BackendClient) -> None:
    storage = MemoryTokenStorage()
    session = AuthSession(client, storage)

    user = await session.login("ana@example.com", "secret")

    assert user.name == "Ana Admin"
    assert session.is_authenticated is True
    assert session.token == "good-token"
    assert session.role == "admin"
    assert session.permissions.can_create is True
    assert storage.load() == "good-token"


@pytest.mark.asyncio
async def test_failed_login_leaves_session_anonymous(client: BackendClient) -> None:
    session = AuthSession(client)

    with pytest.raises(RequestFailedException):
        await session.login("ana@example.com", "wrong")

    assert session.is_authenticated is False
    assert session.storage.load() is None


@pytest.mark.asyncio
async def test_register_signs_in(client: BackendClient, backend: FakeBackend) -> None:
    backend.on(
        "POST",
        "/auth/register",
        httpx.Response(201, json={"access_token": "user-token", "user": REGULAR_USER}),
    )
    session = AuthSession(client)

    await session.register("Rui User", "rui@example.com", "pw")

    assert session.is_authenticated is True
    assert session.role == "user"
    assert session.permissions.can_delete is False


@pytest.mark.asyncio
async def test_logout_clears_everything(admin_session: AuthSession) -> None:
    admin_session.logout()

    assert admin_session.user is None
    assert admin_session.token is None
    assert admin_session.is_authenticated is False
    assert admin_session.storage.load() is None
    assert admin_session.permissions.is_admin is False


@pytest.mark.asyncio
async def test_restore_from_persisted_token(client: BackendClient, backend: FakeBackend) -> None:
    """
    Test session restore.

    A persisted token is validated through the profile endpoint.
    """
    session = AuthSession(client, MemoryTokenStorage(initial="good-token"))

    user = await session.restore()

    assert user.email == "ana@example.com"
    assert session.is_authenticated is True
    assert backend.calls("GET", "/auth/profile")[0].headers["Authorization"] == "Bearer good-token"


@pytest.mark.asyncio
async def test_restore_without_token_is_a_noop(client: BackendClient, backend: FakeBackend) -> None:
    session = AuthSession(client)

    assert await session.restore() is None
    assert backend.requests == []


@pytest.mark.asyncio
async def test_restore_with_rejected_token_logs_out(client: BackendClient) -> None:
    storage = MemoryTokenStorage(initial="stale-token")
    session = AuthSession(client, storage)

    with pytest.raises(ProfileInvalidException):
        await session.restore()

    assert session.is_authenticated is False
    assert session.token is None
    assert storage.load() is None


@pytest.mark.asyncio
async def test_fetch_profile_without_token(client: BackendClient) -> None:
    session = AuthSession(client)

    with pytest.raises(ProfileInvalidException):
        await session.fetch_profile()


@pytest.mark.asyncio
async def test_complete_oauth(client: BackendClient) -> None:
    session = AuthSession(client)

    await session.complete_oauth("good-token")

    assert session.is_authenticated is True
    assert session.storage.load() == "good-token"


@pytest.mark.asyncio
async def test_complete_oauth_with_bad_token(client: BackendClient) -> None:
    session = AuthSession(client)

    with pytest.raises(ProfileInvalidException):
        await session.complete_oauth("forged")

    assert session.storage.load() is None


def test_require_token(client: BackendClient) -> None:
    session = AuthSession(client)

    with pytest.raises(AuthenticationMissingException):
        session.require_token("list_customers")


def test_google_login_url(client: BackendClient) -> None:
    assert AuthSession(client).google_login_url() == "http://backend.test/auth/google"


def test_memory_storage_uses_configured_key() -> None:
    storage = MemoryTokenStorage(initial="abc", key="custom")

    assert storage.key == "custom"
    assert storage.load() == "abc"
    storage.clear()
    assert storage.load() is None

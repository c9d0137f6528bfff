"""
Customer Dashboard Tests - Main Application Tests.

Tests the auth pages, the route guard, role-gated actions, cookie
handling and the customer panel endpoints against a fake backend.
"""

from typing import AsyncGenerator, List
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from customer_dashboard.app import app
from customer_dashboard.config import settings
from customer_dashboard.dependencies import get_backend_client
from customer_dashboard.registry import SessionRegistry
from tests.conftest import REGULAR_USER, FakeBackend, customer_payload, list_payload, request_json


@pytest.fixture
async def web(client, backend: FakeBackend) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app, with the backend replaced by the fake."""
    app.dependency_overrides[get_backend_client] = lambda: client
    app.state.registry = SessionRegistry(idle_timeout=3600)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


async def sign_in(web: AsyncClient) -> httpx.Response:
    return await web.post(
        "/auth/login",
        data={"email": "ana@example.com", "password": "secret", "next": "/dashboard"},
    )


def set_cookie_headers(response: httpx.Response, name: str) -> List[str]:
    return [
        header
        for header in response.headers.get_list("set-cookie")
        if header.startswith(f"{name}=")
    ]


def browser(**cookies: str) -> AsyncClient:
    """Another browser talking to the same app, starting with ``cookies``."""
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", cookies=cookies)


@pytest.mark.asyncio
async def test_root_redirects_to_dashboard(web: AsyncClient) -> None:
    response = await web.get("/")

    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"


@pytest.mark.asyncio
async def test_dashboard_requires_login(web: AsyncClient, backend: FakeBackend) -> None:
    """
    Test the route guard.

    Anonymous browsers are sent to the login page and no customer request
    is made.
    """
    response = await web.get("/dashboard")

    assert response.status_code == 303
    assert response.headers["location"] == "/auth?next=%2Fdashboard"
    assert backend.calls("GET", "/customers") == []


@pytest.mark.asyncio
async def test_htmx_request_gets_hx_redirect(web: AsyncClient) -> None:
    response = await web.get("/customers/table", headers={"HX-Request": "true"})

    assert response.status_code == 200
    assert response.headers["HX-Redirect"] == "/auth?next=%2Fcustomers%2Ftable"


@pytest.mark.asyncio
async def test_auth_page_renders(web: AsyncClient) -> None:
    response = await web.get("/auth?mode=register")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert 'action="/auth/register"' in response.text
    assert "/auth/google" in response.text


@pytest.mark.asyncio
async def test_login_sets_cookies_and_opens_dashboard(web: AsyncClient, backend: FakeBackend) -> None:
    response = await sign_in(web)

    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"
    token_cookie = set_cookie_headers(response, settings.ACCESS_TOKEN_KEY)
    assert token_cookie and "good-token" in token_cookie[0]
    assert "httponly" in token_cookie[0].lower()
    assert set_cookie_headers(response, settings.SESSION_COOKIE_NAME)

    page = await web.get("/dashboard")

    assert page.status_code == 200
    assert "Empresa 1 LTDA" in page.text
    assert "11.222.333/0001-81" in page.text
    assert "15/03/2024" in page.text
    assert "New customer" in page.text
    assert backend.calls("GET", "/customers")[-1].headers["Authorization"] == "Bearer good-token"


@pytest.mark.asyncio
async def test_login_failure_shows_message(web: AsyncClient) -> None:
    response = await web.post(
        "/auth/login",
        data={"email": "ana@example.com", "password": "wrong"},
    )

    assert response.status_code == 400
    assert "Invalid credentials" in response.text
    assert not set_cookie_headers(response, settings.ACCESS_TOKEN_KEY)


@pytest.mark.asyncio
async def test_authenticated_user_skips_auth_page(web: AsyncClient) -> None:
    await sign_in(web)

    response = await web.get("/auth")

    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"


@pytest.mark.asyncio
async def test_login_rejects_external_next(web: AsyncClient) -> None:
    response = await web.post(
        "/auth/login",
        data={"email": "ana@example.com", "password": "secret", "next": "https://evil.example"},
    )

    assert response.headers["location"] == "/dashboard"


@pytest.mark.asyncio
async def test_login_does_not_adopt_planted_session_id(web: AsyncClient) -> None:
    """
    Test session fixation.

    A browser arriving with an id the server never issued signs in; the id
    it was handed must not grant access to anyone else afterwards.
    """
    sid = settings.SESSION_COOKIE_NAME
    async with browser(**{sid: "attacker-chosen"}) as victim:
        response = await sign_in(victim)

    assert response.status_code == 303
    issued = set_cookie_headers(response, sid)
    assert issued and not issued[0].startswith(f"{sid}=attacker-chosen;")
    assert app.state.registry.get("attacker-chosen") is None

    async with browser(**{sid: "attacker-chosen"}) as attacker:
        page = await attacker.get("/dashboard")

    assert page.status_code == 303
    assert page.headers["location"].startswith("/auth")


@pytest.mark.asyncio
async def test_login_rotates_issued_session_id(web: AsyncClient) -> None:
    sid = settings.SESSION_COOKIE_NAME
    before = await web.get("/auth")
    old_id = before.cookies[sid]

    response = await sign_in(web)

    new_id = response.cookies[sid]
    assert new_id != old_id
    assert app.state.registry.get(old_id) is None
    assert app.state.registry.get(new_id).session.is_authenticated is True

    async with browser(**{sid: old_id}) as attacker:
        page = await attacker.get("/dashboard")

    assert page.status_code == 303


@pytest.mark.asyncio
async def test_oauth_callback_rotates_session_id(web: AsyncClient) -> None:
    sid = settings.SESSION_COOKIE_NAME
    old_id = (await web.get("/auth")).cookies[sid]

    response = await web.get("/auth/callback?token=good-token")

    assert response.cookies[sid] != old_id
    assert app.state.registry.get(old_id) is None


@pytest.mark.asyncio
async def test_non_admin_cannot_create_or_delete(web: AsyncClient, backend: FakeBackend) -> None:
    """
    Test role gating.

    A regular user sees the table without write controls, and the write
    endpoints answer 403 without calling the backend.
    """
    backend.on(
        "POST",
        "/auth/login",
        httpx.Response(201, json={"access_token": "user-token", "user": REGULAR_USER}),
    )
    await sign_in(web)

    page = await web.get("/dashboard")
    assert page.status_code == 200
    assert "New customer" not in page.text
    assert "/customers/1/delete" not in page.text

    assert (await web.get("/customers/new")).status_code == 403
    assert (await web.post("/customers/1/delete")).status_code == 403
    assert backend.calls("DELETE", "/customers/1") == []


@pytest.mark.asyncio
async def test_stale_token_clears_cookie_and_redirects(client, backend: FakeBackend) -> None:
    app.dependency_overrides[get_backend_client] = lambda: client
    app.state.registry = SessionRegistry(idle_timeout=3600)
    transport = ASGITransport(app=app)

    try:
        async with AsyncClient(
            transport=transport,
            base_url="http://test",
            cookies={settings.ACCESS_TOKEN_KEY: "stale-token"},
        ) as web:
            response = await web.get("/dashboard")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 303
    assert response.headers["location"] == "/auth?next=%2Fdashboard&expired=1"
    cleared = set_cookie_headers(response, settings.ACCESS_TOKEN_KEY)
    assert cleared and "max-age=0" in cleared[0].lower()
    assert len(backend.calls("GET", "/auth/profile")) == 1
    assert backend.calls("GET", "/customers") == []


@pytest.mark.asyncio
async def test_expired_notice_on_auth_page(web: AsyncClient) -> None:
    response = await web.get("/auth?expired=1")

    assert "sign in again" in response.text


@pytest.mark.asyncio
async def test_google_login_redirects_to_backend(web: AsyncClient) -> None:
    response = await web.get("/auth/google")

    assert response.status_code == 307
    assert response.headers["location"] == "http://backend.test/auth/google"


@pytest.mark.asyncio
async def test_oauth_callback_adopts_token(web: AsyncClient) -> None:
    response = await web.get("/auth/callback?token=good-token")

    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"
    assert set_cookie_headers(response, settings.ACCESS_TOKEN_KEY)

    assert (await web.get("/dashboard")).status_code == 200


@pytest.mark.asyncio
async def test_oauth_callback_with_bad_token(web: AsyncClient) -> None:
    response = await web.get("/auth/callback?token=forged")

    assert response.status_code == 401
    assert "sign in again" in response.text


@pytest.mark.asyncio
async def test_logout(web: AsyncClient) -> None:
    await sign_in(web)

    response = await web.post("/auth/logout")

    assert response.status_code == 303
    assert response.headers["location"] == "/auth"
    assert len(app.state.registry) == 0
    assert (await web.get("/dashboard")).status_code == 303


@pytest.mark.asyncio
async def test_search_sends_filters(web: AsyncClient, backend: FakeBackend) -> None:
    await sign_in(web)

    response = await web.post(
        "/customers/search",
        data={"legal_name": "Empresa", "tax_id": "11.222", "status": "inativo", "premium": "true"},
    )

    assert response.status_code == 200
    assert 'id="customers-panel"' in response.text
    assert dict(backend.calls("GET", "/customers")[-1].url.params) == {
        "page": "1",
        "limit": "10",
        "razaoSocial": "Empresa",
        "cnpj": "11222",
        "status": "inativo",
        "conectaPlus": "true",
    }


@pytest.mark.asyncio
async def test_dashboard_shows_result_range(web: AsyncClient, backend: FakeBackend) -> None:
    backend.on(
        "GET",
        "/customers",
        httpx.Response(
            200,
            json=list_payload([customer_payload(i) for i in range(11, 21)], total=95, page=2),
        ),
    )
    await sign_in(web)

    page = await web.get("/dashboard")

    assert "Showing 11 to 20 of 95 customers" in page.text


@pytest.mark.asyncio
async def test_empty_list_shows_no_result_range(web: AsyncClient, backend: FakeBackend) -> None:
    backend.on("GET", "/customers", httpx.Response(200, json=list_payload([])))
    await sign_in(web)

    page = await web.get("/dashboard")

    assert "Showing" not in page.text


@pytest.mark.asyncio
async def test_reset_rerenders_blank_filter_form(web: AsyncClient, backend: FakeBackend) -> None:
    """
    Test the Clear button.

    The reset response carries a blank filter form swapped out of band, so
    values typed before the search do not come back.
    """
    await sign_in(web)
    searched = await web.post(
        "/customers/search",
        data={"legal_name": "Empresa", "status": "inativo"},
    )
    assert 'hx-swap-oob="true"' not in searched.text

    response = await web.post("/customers/reset")

    assert response.status_code == 200
    assert 'id="customers-panel"' in response.text
    assert 'id="customer-filters"' in response.text
    assert 'hx-swap-oob="true"' in response.text
    assert 'value="Empresa"' not in response.text
    assert dict(backend.calls("GET", "/customers")[-1].url.params) == {"page": "1", "limit": "10"}


@pytest.mark.asyncio
async def test_search_rejects_unknown_status(web: AsyncClient) -> None:
    await sign_in(web)

    response = await web.post("/customers/search", data={"status": "deleted"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_error_shows_retry(web: AsyncClient, backend: FakeBackend) -> None:
    await sign_in(web)
    backend.on("GET", "/customers", httpx.Response(500))

    response = await web.post("/customers/refresh")

    assert response.status_code == 200
    assert "Could not load customers (status 500)" in response.text
    assert "Try again" in response.text


@pytest.mark.asyncio
async def test_tax_id_input_is_masked(web: AsyncClient) -> None:
    await sign_in(web)

    response = await web.post("/customers/new/tax-id", data={"tax_id": "112223330"})

    assert 'value="11.222.333/0"' in response.text


@pytest.mark.asyncio
async def test_create_with_short_tax_id_makes_no_request(
    web: AsyncClient, backend: FakeBackend
) -> None:
    await sign_in(web)
    await web.get("/customers/new")

    response = await web.post(
        "/customers",
        data={"legal_name": "Nova", "tax_id": "1122233300018", "display_name": "Nova"},
    )

    assert response.status_code == 200
    assert "Tax ID must have 14 digits" in response.text
    assert backend.calls("POST", "/customers") == []


@pytest.mark.asyncio
async def test_create_customer_refreshes_list(web: AsyncClient, backend: FakeBackend) -> None:
    await sign_in(web)
    await web.get("/dashboard")
    backend.on("POST", "/customers", httpx.Response(201, json={"id": 2}))
    fetches_before = len(backend.calls("GET", "/customers"))

    response = await web.post(
        "/customers",
        data={
            "legal_name": "Nova LTDA",
            "tax_id": "11.222.333/0001-81",
            "display_name": "Nova",
            "status": "ativo",
            "premium": "false",
        },
    )

    assert response.status_code == 200
    assert request_json(backend.calls("POST", "/customers")[0])["cnpj"] == "11222333000181"
    assert len(backend.calls("GET", "/customers")) == fetches_before + 1
    assert 'role="dialog"' not in response.text


@pytest.mark.asyncio
async def test_delete_customer(web: AsyncClient, backend: FakeBackend) -> None:
    await sign_in(web)
    await web.get("/dashboard")
    backend.on("DELETE", "/customers/1", httpx.Response(204))

    dialog = await web.get("/customers/1/delete")
    assert "Delete customer" in dialog.text

    response = await web.post("/customers/1/delete")

    assert response.status_code == 200
    assert len(backend.calls("DELETE", "/customers/1")) == 1


@pytest.mark.asyncio
async def test_delete_unknown_customer(web: AsyncClient) -> None:
    await sign_in(web)
    await web.get("/dashboard")

    assert (await web.get("/customers/999/delete")).status_code == 404


@pytest.mark.asyncio
async def test_request_id_header(web: AsyncClient) -> None:
    response = await web.get("/auth", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_health_check_healthy(web: AsyncClient) -> None:
    with patch(
        "customer_dashboard.api_client.backend_client.health_check",
        new_callable=AsyncMock,
    ) as mock_health:
        mock_health.return_value = True

        response = await web.get("/health")

    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "customer-dashboard"
    assert data["dependencies"]["customer_backend"] == "healthy"


@pytest.mark.asyncio
async def test_health_check_degraded(web: AsyncClient) -> None:
    with patch(
        "customer_dashboard.api_client.backend_client.health_check",
        new_callable=AsyncMock,
    ) as mock_health:
        mock_health.return_value = False

        response = await web.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


@pytest.mark.asyncio
async def test_metrics_endpoint(web: AsyncClient) -> None:
    await web.get("/auth")

    response = await web.get("/metrics")

    assert response.status_code == 200
    assert "dashboard_http_requests_total" in response.text

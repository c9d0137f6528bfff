"""
Customer Dashboard Tests - Test Configuration.

Provides a scriptable fake of the customer backend, served to the real
``BackendClient`` through ``httpx.MockTransport``, plus sample payloads.
"""

import inspect
import json
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

os.environ.setdefault("API_BASE_URL", "http://backend.test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import httpx
import pytest

from customer_dashboard.api_client import BackendClient
from customer_dashboard.session import AuthSession, MemoryTokenStorage

BACKEND_URL = "http://backend.test"

Handler = Callable[[httpx.Request], Any]
Route = Union[httpx.Response, Handler]


class FakeBackend:
    """
    In-process stand-in for the customer backend.

    Routes are keyed by ``(method, path)``; a route is either a fixed
    response or a (possibly async) callable taking the request. Every
    request is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, route: Route) -> None:
        self.routes[(method.upper(), path)] = route

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method.upper() and request.url.path == path
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if isinstance(route, httpx.Response):
            return route
        outcome = route(request)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome


def customer_payload(customer_id: int = 1, **overrides: Any) -> Dict[str, Any]:
    """Customer record as the backend serializes it."""
    payload = {
        "id": customer_id,
        "razaoSocial": f"Empresa {customer_id} LTDA",
        "cnpj": "11222333000181",
        "nomeFachada": f"Empresa {customer_id}",
        "tags": ["varejo"],
        "status": "ativo",
        "conectaPlus": False,
        "createdAt": "2024-03-15T10:30:00.000Z",
        "updatedAt": "2024-03-16T08:00:00.000Z",
    }
    payload.update(overrides)
    return payload


def list_payload(
    customers: Optional[List[Dict[str, Any]]] = None,
    total: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """``GET /customers`` response body."""
    customers = customers if customers is not None else [customer_payload()]
    return {
        "data": customers,
        "total": len(customers) if total is None else total,
        "page": page,
        "limit": limit,
    }


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


ADMIN_USER = {"id": "u-1", "name": "Ana Admin", "email": "ana@example.com", "role": "admin"}
REGULAR_USER = {"id": "u-2", "name": "Rui User", "email": "rui@example.com", "role": "user"}


@pytest.fixture
def backend() -> FakeBackend:
    """
    Fake backend that accepts the ``good-token`` admin token.

    Login for ``ana@example.com``/``secret`` issues that token; anything
    else is rejected with 401.
    """
    fake = FakeBackend()

    def login(request: httpx.Request) -> httpx.Response:
        body = request_json(request)
        if body == {"email": "ana@example.com", "password": "secret"}:
            return httpx.Response(201, json={"access_token": "good-token", "user": ADMIN_USER})
        return httpx.Response(401, json={"message": "Invalid credentials"})

    def profile(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") == "Bearer good-token":
            return httpx.Response(200, json=ADMIN_USER)
        return httpx.Response(401, json={"message": "Unauthorized"})

    fake.on("POST", "/auth/login", login)
    fake.on("GET", "/auth/profile", profile)
    fake.on("GET", "/customers", httpx.Response(200, json=list_payload()))
    return fake


@pytest.fixture
def client(backend: FakeBackend) -> BackendClient:
    """BackendClient wired to the fake backend."""
    return BackendClient(base_url=BACKEND_URL, transport=httpx.MockTransport(backend))


@pytest.fixture
async def admin_session(client: BackendClient) -> AuthSession:
    """Session signed in as the admin user."""
    session = AuthSession(client, MemoryTokenStorage())
    await session.login("ana@example.com", "secret")
    return session

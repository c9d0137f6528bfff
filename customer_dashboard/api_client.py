"""
HTTP client module for the customer backend API.

Provides an async client for the backend's ``/auth/*`` and ``/customers*``
endpoints. Every call is logged with timing, non-2xx responses are turned
into ``RequestFailedException`` carrying the backend's ``message``, and
calls that need a bearer token refuse to run without one.
"""

import time
from typing import Any, Dict, Optional, Tuple

import httpx

from .config import settings
from .exceptions import AuthenticationMissingException, RequestFailedException
from .logging_config import get_logger, get_request_id
from .metrics import track_backend_error, track_backend_request
from .models import Customer, CustomerDraft, ListQuery, ListResult, User

logger = get_logger(__name__)


def extract_error_message(response: httpx.Response, default_message: str) -> str:
    """
    Build the user-visible message for a non-2xx response.

    The backend puts a ``message`` field in error bodies, either a string
    or a list of validation messages. Without one, a generic message with
    the status code is returned.

    Args:
        response: Failed HTTP response
        default_message: Operation-specific fallback message

    Returns:
        Human-readable error message
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, list):
            message = "; ".join(str(item) for item in message if item)
        if isinstance(message, str) and message.strip():
            return message.strip()

    return f"{default_message} (status {response.status_code})"


class BackendClient:
    """
    Client for the customer backend REST API.

    Uses a persistent ``httpx.AsyncClient`` with connection pooling. A
    custom transport can be injected, which the tests use to stand in for
    the backend.

    Attributes:
        base_url: Base URL of the backend
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize backend client.

        Args:
            base_url: Base URL of the backend (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            transport: Optional httpx transport replacing the network
        """
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized BackendClient: base_url={self.base_url}, "
            f"timeout={self.timeout}s"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """
        Get or create the persistent HTTP client with connection pooling.

        Returns:
            Configured httpx.AsyncClient instance
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=100,
                    keepalive_expiry=30.0,
                ),
                http2=self._transport is None,
                transport=self._transport,
            )
            logger.debug("Created new HTTP client with connection pooling")
        return self._client

    async def close(self) -> None:
        """
        Close the HTTP client and release connections.

        Called during application shutdown.
        """
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed HTTP client")

    def _get_request_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": "CustomerDashboard/1.0",
            "Accept": "application/json",
        }

        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id

        if token:
            headers["Authorization"] = f"Bearer {token}"

        return headers

    @property
    def google_login_url(self) -> str:
        """Backend entry point of the Google OAuth redirect flow."""
        return f"{self.base_url}/auth/google"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        failure_message: str,
        token: Optional[str] = None,
        requires_auth: bool = False,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a request and return the 2xx response.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            operation: Short operation name for logs and metrics
            failure_message: User-visible message prefix on failure
            token: Bearer token
            requires_auth: Refuse to send the request without a token
            params: Query-string parameters
            json: JSON request body

        Returns:
            Successful HTTP response

        Raises:
            AuthenticationMissingException: If auth is required and no token is given
            RequestFailedException: On non-2xx responses and transport errors
        """
        if requires_auth and not token:
            raise AuthenticationMissingException(operation)

        start_time = time.perf_counter()
        logger.debug(
            f"Sending {operation} request to backend",
            extra={
                "extra_fields": {
                    "method": method,
                    "path": path,
                    "params": params,
                }
            },
        )

        try:
            client = await self._get_client()
            response = await client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._get_request_headers(token),
            )
        except (httpx.TimeoutException, TimeoutError) as error:
            duration_ms = (time.perf_counter() - start_time) * 1000
            track_backend_error(operation, "timeout")
            logger.error(
                f"Backend {operation} request timed out",
                extra={
                    "extra_fields": {
                        "path": path,
                        "timeout": self.timeout,
                        "duration_ms": duration_ms,
                        "error_type": type(error).__name__,
                    }
                },
            )
            raise RequestFailedException(
                f"{failure_message}: the server took too long to respond",
                details={"error_type": "timeout"},
            ) from error
        except httpx.RequestError as error:
            duration_ms = (time.perf_counter() - start_time) * 1000
            track_backend_error(operation, "connection_error")
            logger.error(
                f"Backend {operation} request could not be sent",
                extra={
                    "extra_fields": {
                        "path": path,
                        "backend_url": self.base_url,
                        "duration_ms": duration_ms,
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                    }
                },
            )
            raise RequestFailedException(
                f"{failure_message}: the server could not be reached",
                details={"error_type": "connection_error"},
            ) from error

        duration = time.perf_counter() - start_time
        track_backend_request(operation, response.status_code, duration)

        if response.is_success:
            logger.info(
                f"Backend {operation} request succeeded",
                extra={
                    "extra_fields": {
                        "status_code": response.status_code,
                        "duration_ms": duration * 1000,
                    }
                },
            )
            return response

        message = extract_error_message(response, failure_message)
        logger.warning(
            f"Backend {operation} request failed",
            extra={
                "extra_fields": {
                    "status_code": response.status_code,
                    "duration_ms": duration * 1000,
                    "error_message": message,
                    "response_body": response.text[:500],
                }
            },
        )
        raise RequestFailedException(
            message,
            status_code=response.status_code,
            details={"error_type": "http_error"},
        )

    @staticmethod
    def _parse_body(response: httpx.Response, model: Any, failure_message: str) -> Any:
        try:
            return model.model_validate(response.json())
        except ValueError as error:
            logger.error(
                "Backend returned an unexpected body",
                extra={"extra_fields": {"model": model.__name__, "error_message": str(error)}},
            )
            raise RequestFailedException(
                f"{failure_message}: unexpected response from server",
                status_code=response.status_code,
            ) from error

    @staticmethod
    def _parse_auth_response(response: httpx.Response, failure_message: str) -> Tuple[str, User]:
        try:
            body = response.json()
        except ValueError:
            body = None
        token = body.get("access_token") if isinstance(body, dict) else None
        user_data = body.get("user") if isinstance(body, dict) else None
        if not token or not isinstance(user_data, dict):
            raise RequestFailedException(
                f"{failure_message}: unexpected response from server",
                status_code=response.status_code,
            )
        try:
            user = User.model_validate(user_data)
        except ValueError as error:
            logger.error(
                "Backend returned an unexpected user",
                extra={"extra_fields": {"error_message": str(error)}},
            )
            raise RequestFailedException(
                f"{failure_message}: unexpected response from server",
                status_code=response.status_code,
            ) from error
        return token, user

    async def login(self, email: str, password: str) -> Tuple[str, User]:
        """
        Sign in with email and password.

        Returns:
            Tuple of (access token, user)
        """
        response = await self._request(
            "POST",
            "/auth/login",
            operation="login",
            failure_message="Login failed",
            json={"email": email, "password": password},
        )
        return self._parse_auth_response(response, "Login failed")

    async def register(self, name: str, email: str, password: str) -> Tuple[str, User]:
        """
        Create an account.

        Returns:
            Tuple of (access token, user)
        """
        response = await self._request(
            "POST",
            "/auth/register",
            operation="register",
            failure_message="Registration failed",
            json={"name": name, "email": email, "password": password},
        )
        return self._parse_auth_response(response, "Registration failed")

    async def get_profile(self, token: Optional[str]) -> User:
        """Fetch the user owning ``token``."""
        response = await self._request(
            "GET",
            "/auth/profile",
            operation="profile",
            failure_message="Could not load profile",
            token=token,
            requires_auth=True,
        )
        return self._parse_body(response, User, "Could not load profile")

    async def list_customers(self, token: Optional[str], query: ListQuery) -> ListResult:
        """
        Fetch one page of customers.

        Args:
            token: Bearer token
            query: Page and filters; only non-empty filters are sent

        Returns:
            The page of customers
        """
        response = await self._request(
            "GET",
            "/customers",
            operation="list_customers",
            failure_message="Could not load customers",
            token=token,
            requires_auth=True,
            params=query.to_params(),
        )
        return self._parse_body(response, ListResult, "Could not load customers")

    async def create_customer(self, token: Optional[str], draft: CustomerDraft) -> Optional[Customer]:
        """
        Create a customer.

        Returns:
            The created record, or None when the backend body is not a customer
        """
        response = await self._request(
            "POST",
            "/customers",
            operation="create_customer",
            failure_message="Could not create customer",
            token=token,
            requires_auth=True,
            json=draft.to_payload(),
        )
        try:
            return Customer.model_validate(response.json())
        except ValueError:
            logger.debug("Create response did not contain a customer record")
            return None

    async def delete_customer(self, token: Optional[str], customer_id: int) -> None:
        """Delete a customer by id."""
        await self._request(
            "DELETE",
            f"/customers/{customer_id}",
            operation="delete_customer",
            failure_message="Could not delete customer",
            token=token,
            requires_auth=True,
        )

    async def health_check(self) -> bool:
        """
        Check whether the backend answers at all.

        Any response below 500 counts as reachable.

        Returns:
            True if the backend is reachable, False otherwise
        """
        try:
            client = await self._get_client()
            response = await client.get(
                "/",
                headers=self._get_request_headers(),
                timeout=1.0,
            )
            is_healthy = response.status_code < 500

            if not is_healthy:
                logger.warning(
                    "Backend health check failed",
                    extra={
                        "extra_fields": {
                            "backend_url": self.base_url,
                            "status_code": response.status_code,
                        }
                    },
                )

            return is_healthy

        except httpx.HTTPError as error:
            logger.warning(
                "Backend health check failed with exception",
                extra={
                    "extra_fields": {
                        "backend_url": self.base_url,
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                    }
                },
            )
            return False


# Singleton instance for application-wide use
backend_client = BackendClient()

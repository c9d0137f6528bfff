"""
Middleware components for the dashboard.

Provides request tracing and logging, slow-request warnings, Prometheus
request metrics, and the cookie bookkeeping that mirrors each browser's
session id and bearer token back to the browser.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .logging_config import clear_request_context, get_logger, set_request_id

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request and response with timing and a request id.

    The request id is taken from ``X-Request-ID`` when present, echoed in
    the response and forwarded to the backend by the API client.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        start_time = time.perf_counter()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "htmx": request.headers.get("HX-Request") == "true",
                    "client_host": request.client.host if request.client else None,
                }
            },
        )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id

            logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"[{response.status_code}] ({duration_ms:.2f}ms)",
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": duration_ms,
                    }
                },
            )

            return response
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path} ({duration_ms:.2f}ms)",
                extra={"extra_fields": {"error": str(exc)}},
            )
            raise
        finally:
            clear_request_context()


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Warns about requests slower than a threshold.

    Most of a dashboard request is spent waiting on the backend, so slow
    requests usually point at a slow list or auth endpoint.
    """

    def __init__(
        self,
        app: ASGIApp,
        slow_request_threshold_ms: float = 1000.0,
    ) -> None:
        """
        Initialize performance monitoring middleware.

        Args:
            app: ASGI application instance
            slow_request_threshold_ms: Threshold in milliseconds for slow requests
        """
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        if duration_ms > self.slow_request_threshold_ms:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} "
                f"took {duration_ms:.2f}ms (threshold: {self.slow_request_threshold_ms}ms)",
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": duration_ms,
                        "threshold_ms": self.slow_request_threshold_ms,
                    }
                },
            )

        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Tracks request count and duration for every endpoint.

    Endpoints are labelled by route template (``/customers/{customer_id}/delete``)
    rather than the concrete path, keeping label cardinality bounded.
    """

    def __init__(self, app: ASGIApp, track_func: Callable) -> None:
        """
        Initialize the middleware.

        Args:
            app: ASGI application
            track_func: Called with (method, endpoint, status_code, duration)
        """
        super().__init__(app)
        self.track_func = track_func

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        self.track_func(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
            duration=duration,
        )

        return response


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """
    Mirrors the browser's dashboard state into cookies.

    After a request that resolved a ``DashboardState``, the browser id
    cookie is (re)issued and the token cookie is made to match the
    session's persisted token: set after login, deleted after logout or a
    rejected profile.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        state = getattr(request.state, "dashboard", None)
        if state is None:
            return response

        cookie_options = {
            "httponly": True,
            "samesite": "lax",
            "secure": settings.COOKIE_SECURE,
        }

        if request.cookies.get(settings.SESSION_COOKIE_NAME) != state.session_id:
            response.set_cookie(
                settings.SESSION_COOKIE_NAME, state.session_id, **cookie_options
            )

        token = state.persisted_token
        current = request.cookies.get(settings.ACCESS_TOKEN_KEY)
        if token and token != current:
            response.set_cookie(settings.ACCESS_TOKEN_KEY, token, **cookie_options)
        elif not token and current:
            response.delete_cookie(
                settings.ACCESS_TOKEN_KEY,
                httponly=True,
                samesite="lax",
                secure=settings.COOKIE_SECURE,
            )

        return response

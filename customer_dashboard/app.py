"""
Customer Dashboard - Main FastAPI Application.

Server-rendered admin dashboard for customer records, using HTMX for
partial updates. Authentication, the customer list and its mutations are
all delegated to the customer backend REST API.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict
from urllib.parse import urlencode

from fastapi import FastAPI, Request, status
from fastapi.responses import RedirectResponse, Response

from .api_client import backend_client
from .config import settings
from .dependencies import LoginRequired
from .logging_config import get_logger, setup_logging
from .metrics import metrics_endpoint, track_request_metrics
from .middleware import (PerformanceMonitoringMiddleware, PrometheusMiddleware,
                         RequestLoggingMiddleware, SessionCookieMiddleware)
from .registry import SessionRegistry
from .routers import auth, customers
from .tracing import configure_opentelemetry, instrument_fastapi

setup_logging(
    log_level=settings.LOG_LEVEL,
    service_name="customer-dashboard",
    use_json=not settings.DEBUG,
)
logger = get_logger(__name__)

tracing_enabled = configure_opentelemetry(
    service_name="customer-dashboard",
    service_version="1.0.0",
    otlp_endpoint=settings.OTLP_ENDPOINT,
    enable_tracing=settings.ENABLE_TRACING,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Logs the configuration and backend reachability on startup and closes
    the backend HTTP client on shutdown.
    """
    logger.info("=" * 80)
    logger.info("Starting Customer Dashboard")
    logger.info("=" * 80)

    logger.info(
        "Configuration loaded",
        extra={
            "extra_fields": {
                "app_name": settings.APP_NAME,
                "debug_mode": settings.DEBUG,
                "log_level": settings.LOG_LEVEL,
                "api_base_url": settings.API_BASE_URL,
                "request_timeout": settings.REQUEST_TIMEOUT,
                "default_page_size": settings.DEFAULT_PAGE_SIZE,
                "tracing_enabled": tracing_enabled,
            }
        },
    )

    if await backend_client.health_check():
        logger.info(
            "Customer backend reachable",
            extra={"extra_fields": {"api_base_url": settings.API_BASE_URL}},
        )
    else:
        logger.error(
            "Customer backend is not responding",
            extra={
                "extra_fields": {
                    "api_base_url": settings.API_BASE_URL,
                    "impact": "Sign-in and the customer table will be unavailable",
                }
            },
        )

    yield

    logger.info("Shutting down Customer Dashboard")
    await backend_client.close()
    logger.info("HTTP clients closed")


app = FastAPI(
    title="Customer Dashboard",
    description="Admin dashboard for customer records",
    version="1.0.0",
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)
app.state.registry = SessionRegistry()

# Middleware order matters: the last added runs first
app.add_middleware(SessionCookieMiddleware)
app.add_middleware(PerformanceMonitoringMiddleware, slow_request_threshold_ms=1000.0)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware, track_func=track_request_metrics)

if tracing_enabled:
    instrument_fastapi(app, excluded_urls="/health,/metrics")

app.include_router(auth.router)
app.include_router(customers.router)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired) -> Response:
    """
    Send unauthenticated browsers to the login page.

    HTMX requests get an ``HX-Redirect`` header so the whole page navigates
    instead of swapping the login page into a fragment.
    """
    params = {}
    if exc.next_path:
        params["next"] = exc.next_path
    if exc.message:
        params["expired"] = "1"
    location = "/auth" + (f"?{urlencode(params)}" if params else "")

    if request.headers.get("HX-Request") == "true":
        return Response(status_code=status.HTTP_200_OK, headers={"HX-Redirect": location})
    return RedirectResponse(location, status_code=status.HTTP_303_SEE_OTHER)


@app.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@app.get(
    "/health",
    tags=["Health"],
    summary="Health check",
    description="Check dashboard health and backend reachability",
)
async def health_check() -> Dict[str, Any]:
    """
    Report dashboard health.

    Returns:
        ``status`` is ``healthy`` when the customer backend answers,
        ``degraded`` otherwise
    """
    backend_healthy = await backend_client.health_check()

    return {
        "status": "healthy" if backend_healthy else "degraded",
        "service": "customer-dashboard",
        "dependencies": {
            "customer_backend": "healthy" if backend_healthy else "unhealthy",
        },
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return await metrics_endpoint()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )

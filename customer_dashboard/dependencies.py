"""
Dependency functions for the dashboard routes.

Resolves the backend client, the browser's ``DashboardState`` and the
route guard that keeps anonymous browsers out of the dashboard.
"""

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status

from .api_client import BackendClient, backend_client
from .config import settings
from .exceptions import ProfileInvalidException
from .logging_config import bind_session_id, get_logger
from .registry import DashboardState, SessionRegistry

logger = get_logger(__name__)


class LoginRequired(Exception):
    """
    Raised by the route guard when the browser has no valid session.

    The application turns it into a redirect to the login page.

    Attributes:
        next_path: Path to return to after signing in
        message: Optional notice shown on the login page
    """

    def __init__(self, next_path: Optional[str] = None, message: Optional[str] = None) -> None:
        self.next_path = next_path
        self.message = message
        super().__init__(message or "Login required")


def get_backend_client() -> BackendClient:
    """Backend client shared by all browsers."""
    return backend_client


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_dashboard_state(
    request: Request,
    client: BackendClient = Depends(get_backend_client),
    registry: SessionRegistry = Depends(get_registry),
) -> DashboardState:
    """
    Resolve (or create) the state of the requesting browser.

    A new state is seeded with the token cookie and restored once through
    ``GET /auth/profile``; a rejected token leaves an anonymous session.
    Requests that overlap the restore wait for it under the state's lock
    instead of seeing a half-restored session.
    The state is attached to ``request.state`` so the cookie middleware can
    mirror the browser id and token back to the browser.
    """
    state = registry.get_or_create(
        request.cookies.get(settings.SESSION_COOKIE_NAME),
        client,
        token=request.cookies.get(settings.ACCESS_TOKEN_KEY),
    )
    request.state.dashboard = state
    bind_session_id(state.session_id)

    if not state.restored:
        async with state.restore_lock:
            if not state.restored:
                try:
                    await state.session.restore()
                except ProfileInvalidException as error:
                    state.restore_notice = error.message
                finally:
                    state.restored = True
        if state.restore_notice:
            request.state.login_notice = state.restore_notice

    return state


async def require_authenticated_state(
    request: Request,
    state: DashboardState = Depends(get_dashboard_state),
) -> DashboardState:
    """
    Route guard: only signed-in browsers get through.

    Raises:
        LoginRequired: If the session has no user or no token
    """
    if not state.session.is_authenticated:
        logger.info(
            "Redirecting unauthenticated request to login",
            extra={"extra_fields": {"path": request.url.path}},
        )
        raise LoginRequired(
            next_path=request.url.path,
            message=getattr(request.state, "login_notice", None),
        )
    return state


def require_permission(capability: str) -> Callable:
    """
    Build a dependency demanding a capability (``can_create``/``can_delete``).

    Raises:
        HTTPException: 403 if the current user lacks the capability
    """

    async def check_permission(
        state: DashboardState = Depends(require_authenticated_state),
    ) -> DashboardState:
        if not getattr(state.session.permissions, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return state

    return check_permission


def safe_next_path(next_path: Optional[str]) -> str:
    """Only allow local absolute paths as post-login targets."""
    if next_path and next_path.startswith("/") and not next_path.startswith("//"):
        return next_path
    return "/dashboard"

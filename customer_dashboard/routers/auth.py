"""
Authentication pages and actions.

Email/password login and registration post plain HTML forms; Google
sign-in redirects to the backend, which sends the browser back to
``/auth/callback?token=...``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from ..dependencies import get_dashboard_state, get_registry, safe_next_path
from ..exceptions import ProfileInvalidException, RequestFailedException
from ..logging_config import bind_session_id, get_logger
from ..registry import DashboardState, SessionRegistry
from ..templating import templates

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

AUTH_MODES = ("login", "register")


def _start_signed_in_session(registry: SessionRegistry, state: DashboardState) -> None:
    """Give a freshly authenticated browser a new id before answering."""
    bind_session_id(registry.rotate(state))


def _render_auth_page(
    request: Request,
    mode: str = "login",
    error: Optional[str] = None,
    next_path: Optional[str] = None,
    notice: Optional[str] = None,
    form: Optional[dict] = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request=request,
        name="auth.html",
        context={
            "mode": mode if mode in AUTH_MODES else "login",
            "error": error,
            "next": safe_next_path(next_path),
            "notice": notice,
            "form": form or {},
        },
        status_code=status_code,
    )


@router.get("", response_class=HTMLResponse, summary="Login / registration page")
async def auth_page(
    request: Request,
    mode: str = Query(default="login"),
    next_path: Optional[str] = Query(default=None, alias="next"),
    expired: bool = Query(default=False),
    state: DashboardState = Depends(get_dashboard_state),
):
    """Render the auth page, or skip it when the browser is already signed in."""
    if state.session.is_authenticated:
        return RedirectResponse(safe_next_path(next_path), status_code=status.HTTP_303_SEE_OTHER)

    notice = getattr(request.state, "login_notice", None)
    if expired and notice is None:
        notice = ProfileInvalidException().message

    return _render_auth_page(request, mode=mode, next_path=next_path, notice=notice)


@router.post("/login", summary="Sign in with email and password")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next_path: Optional[str] = Form(default=None, alias="next"),
    state: DashboardState = Depends(get_dashboard_state),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Sign in and go to the dashboard.

    On failure the login form is shown again with the backend's message.
    """
    try:
        await state.session.login(email.strip(), password)
    except RequestFailedException as error:
        logger.info(
            "Login rejected",
            extra={"extra_fields": {"status_code": error.status_code}},
        )
        return _render_auth_page(
            request,
            mode="login",
            error=error.message,
            next_path=next_path,
            form={"email": email},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    _start_signed_in_session(registry, state)
    return RedirectResponse(safe_next_path(next_path), status_code=status.HTTP_303_SEE_OTHER)


@router.post("/register", summary="Create an account")
async def register(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    next_path: Optional[str] = Form(default=None, alias="next"),
    state: DashboardState = Depends(get_dashboard_state),
    registry: SessionRegistry = Depends(get_registry),
):
    """Register, sign in with the new account and go to the dashboard."""
    try:
        await state.session.register(name.strip(), email.strip(), password)
    except RequestFailedException as error:
        logger.info(
            "Registration rejected",
            extra={"extra_fields": {"status_code": error.status_code}},
        )
        return _render_auth_page(
            request,
            mode="register",
            error=error.message,
            next_path=next_path,
            form={"name": name, "email": email},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    _start_signed_in_session(registry, state)
    return RedirectResponse(safe_next_path(next_path), status_code=status.HTTP_303_SEE_OTHER)


@router.get("/google", summary="Start Google sign-in")
async def google_login(state: DashboardState = Depends(get_dashboard_state)):
    """Hand the browser over to the backend's Google OAuth entry point."""
    return RedirectResponse(
        state.session.google_login_url(), status_code=status.HTTP_307_TEMPORARY_REDIRECT
    )


@router.get("/callback", summary="Google sign-in callback")
async def oauth_callback(
    request: Request,
    token: Optional[str] = Query(default=None),
    state: DashboardState = Depends(get_dashboard_state),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Adopt the token issued by the OAuth flow.

    Without a token this is just the login page.
    """
    if not token:
        return _render_auth_page(request)

    try:
        await state.session.complete_oauth(token)
    except ProfileInvalidException as error:
        return _render_auth_page(
            request,
            error=error.message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    _start_signed_in_session(registry, state)
    return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/logout", summary="Sign out")
async def logout(
    state: DashboardState = Depends(get_dashboard_state),
    registry: SessionRegistry = Depends(get_registry),
):
    """Clear the session and drop the browser's dashboard state."""
    state.session.logout()
    registry.discard(state.session_id)
    return RedirectResponse("/auth", status_code=status.HTTP_303_SEE_OTHER)

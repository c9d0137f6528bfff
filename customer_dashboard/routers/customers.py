"""
Dashboard page and customer table endpoints.

The dashboard page renders once; filtering, paging and both dialogs then
talk to the HTMX endpoints below, which all answer with the re-rendered
customer panel (table, pagination and dialogs).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Path, Request, status
from fastapi.responses import HTMLResponse

from ..cnpj import strip_non_digits
from ..customers import FetchStatus
from ..dependencies import require_authenticated_state, require_permission
from ..logging_config import get_logger
from ..models import Customer
from ..pagination import result_range
from ..registry import DashboardState
from ..templating import templates

logger = get_logger(__name__)

router = APIRouter(tags=["Customers"])

require_create = require_permission("can_create")
require_delete = require_permission("can_delete")


def _panel_context(state: DashboardState) -> dict:
    controller = state.customers
    return {
        "user": state.session.user,
        "permissions": state.session.permissions,
        "query": controller.query,
        "result": controller.result,
        "status": controller.status.value,
        "is_error": controller.status == FetchStatus.ERROR,
        "last_error": controller.last_error,
        "pagination": controller.pagination,
        "showing": result_range(
            controller.result.page,
            controller.result.page_size,
            controller.result.total_count,
        ),
        "create_dialog": state.create_dialog,
        "delete_dialog": state.delete_dialog,
    }


def _render_panel(request: Request, state: DashboardState, **extra) -> HTMLResponse:
    return templates.TemplateResponse(
        request=request,
        name="components/customers_panel.html",
        context={**_panel_context(state), **extra},
    )


def _parse_premium(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    value = value.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return None


def _find_customer(state: DashboardState, customer_id: int) -> Customer:
    for customer in state.customers.result.items:
        if customer.id == customer_id:
            return customer
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Customer is not on the current page",
    )


@router.get("/dashboard", response_class=HTMLResponse, tags=["Pages"])
async def dashboard_page(
    request: Request,
    state: DashboardState = Depends(require_authenticated_state),
):
    """Render the dashboard, reloading the current page of customers."""
    await state.customers.refetch()
    return templates.TemplateResponse(
        request=request,
        name="dashboard.html",
        context=_panel_context(state),
    )


@router.get("/customers/table", response_class=HTMLResponse)
async def customers_table(
    request: Request,
    state: DashboardState = Depends(require_authenticated_state),
):
    """Current customer panel, fetching the first page if nothing is loaded yet."""
    if not state.customers.has_loaded and not state.customers.is_loading:
        await state.customers.refetch()
    return _render_panel(request, state)


@router.post("/customers/search", response_class=HTMLResponse)
async def search_customers(
    request: Request,
    legal_name: str = Form(default=""),
    tax_id: str = Form(default=""),
    customer_status: str = Form(default="all", alias="status"),
    premium: str = Form(default="all"),
    state: DashboardState = Depends(require_authenticated_state),
):
    """Apply the filter form and go back to the first page."""
    try:
        await state.customers.set_filters(
            legal_name=legal_name,
            tax_id=strip_non_digits(tax_id),
            status=customer_status,
            premium=_parse_premium(premium),
            page=1,
        )
    except ValueError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error
    return _render_panel(request, state)


@router.post("/customers/reset", response_class=HTMLResponse)
async def reset_customer_filters(
    request: Request,
    state: DashboardState = Depends(require_authenticated_state),
):
    """Clear every filter; the filter form is re-rendered blank alongside the panel."""
    await state.customers.reset_filters()
    return _render_panel(request, state, filters_oob=True)


@router.post("/customers/page/{page}", response_class=HTMLResponse)
async def change_customer_page(
    request: Request,
    page: int = Path(..., ge=1),
    state: DashboardState = Depends(require_authenticated_state),
):
    """Show another page, keeping the filters."""
    await state.customers.change_page(page)
    return _render_panel(request, state)


@router.post("/customers/refresh", response_class=HTMLResponse)
async def refresh_customers(
    request: Request,
    state: DashboardState = Depends(require_authenticated_state),
):
    """Fetch the current page again ("Try again" after an error)."""
    await state.customers.refetch()
    return _render_panel(request, state)


# ==================== CREATE DIALOG ====================


@router.get("/customers/new", response_class=HTMLResponse)
async def open_create_dialog(
    request: Request,
    state: DashboardState = Depends(require_create),
):
    state.create_dialog.open()
    return _render_panel(request, state)


@router.post("/customers/new/cancel", response_class=HTMLResponse)
async def cancel_create_dialog(
    request: Request,
    state: DashboardState = Depends(require_authenticated_state),
):
    state.create_dialog.close()
    return _render_panel(request, state)


@router.post("/customers/new/tax-id", response_class=HTMLResponse)
async def mask_tax_id(
    request: Request,
    tax_id: str = Form(default=""),
    state: DashboardState = Depends(require_create),
):
    """Re-render the tax ID input with the value masked as typed."""
    masked = state.create_dialog.set_tax_id(tax_id)
    return templates.TemplateResponse(
        request=request,
        name="components/tax_id_input.html",
        context={"tax_id": masked},
    )


def _update_create_form(
    state: DashboardState,
    legal_name: str,
    tax_id: str,
    display_name: str,
    customer_status: str,
    premium: str,
) -> None:
    try:
        state.create_dialog.update(
            legal_name=legal_name,
            tax_id=tax_id,
            display_name=display_name,
            status=customer_status,
            premium=_parse_premium(premium),
        )
    except ValueError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error


@router.post("/customers/new/tags", response_class=HTMLResponse)
async def add_customer_tag(
    request: Request,
    tag: str = Form(default=""),
    legal_name: str = Form(default=""),
    tax_id: str = Form(default=""),
    display_name: str = Form(default=""),
    customer_status: str = Form(default="ativo", alias="status"),
    premium: str = Form(default="false"),
    state: DashboardState = Depends(require_create),
):
    _update_create_form(state, legal_name, tax_id, display_name, customer_status, premium)
    state.create_dialog.add_tag(tag)
    return _render_panel(request, state)


@router.post("/customers/new/tags/remove", response_class=HTMLResponse)
async def remove_customer_tag(
    request: Request,
    tag: str = Form(...),
    legal_name: str = Form(default=""),
    tax_id: str = Form(default=""),
    display_name: str = Form(default=""),
    customer_status: str = Form(default="ativo", alias="status"),
    premium: str = Form(default="false"),
    state: DashboardState = Depends(require_create),
):
    _update_create_form(state, legal_name, tax_id, display_name, customer_status, premium)
    state.create_dialog.remove_tag(tag)
    return _render_panel(request, state)


@router.post("/customers", response_class=HTMLResponse)
async def create_customer(
    request: Request,
    legal_name: str = Form(default=""),
    tax_id: str = Form(default=""),
    display_name: str = Form(default=""),
    customer_status: str = Form(default="ativo", alias="status"),
    premium: str = Form(default="false"),
    state: DashboardState = Depends(require_create),
):
    """
    Submit the create dialog.

    On success the dialog closes and the list is refetched; otherwise the
    dialog stays open with its error banner.
    """
    _update_create_form(state, legal_name, tax_id, display_name, customer_status, premium)
    await state.create_dialog.submit()
    return _render_panel(request, state)


# ==================== DELETE DIALOG ====================


@router.post("/customers/delete/cancel", response_class=HTMLResponse)
async def cancel_delete_dialog(
    request: Request,
    state: DashboardState = Depends(require_authenticated_state),
):
    state.delete_dialog.close()
    return _render_panel(request, state)


@router.get("/customers/{customer_id}/delete", response_class=HTMLResponse)
async def open_delete_dialog(
    request: Request,
    customer_id: int,
    state: DashboardState = Depends(require_delete),
):
    state.delete_dialog.open(_find_customer(state, customer_id))
    return _render_panel(request, state)


@router.post("/customers/{customer_id}/delete", response_class=HTMLResponse)
async def delete_customer(
    request: Request,
    customer_id: int,
    state: DashboardState = Depends(require_delete),
):
    """Confirm the deletion; the list is refetched when it succeeds."""
    dialog = state.delete_dialog
    if dialog.customer is None or dialog.customer.id != customer_id:
        dialog.open(_find_customer(state, customer_id))
    await dialog.confirm()
    return _render_panel(request, state)

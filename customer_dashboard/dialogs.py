"""
Create and delete customer dialogs.

Each dialog owns its transient form state. Every way of closing a dialog
(cancel, dismissal, successful submit) resets that state. On success the
dialog invokes a caller-supplied refresh callback, which the dashboard
wires to ``CustomerListController.refetch``.
"""

import inspect
from typing import Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from .api_client import BackendClient
from .cnpj import format_cnpj, validate_cnpj
from .exceptions import RequestFailedException, ValidationException
from .logging_config import get_logger
from .metrics import track_customer_mutation
from .models import Customer, CustomerDraft, CustomerStatus
from .session import AuthSession
from .tags import TagEditor

logger = get_logger(__name__)

RefreshCallback = Callable[[], Union[None, Awaitable[None]]]


async def _notify(callback: Optional[RefreshCallback]) -> None:
    if callback is None:
        return
    outcome = callback()
    if inspect.isawaitable(outcome):
        await outcome


class CustomerForm:
    """Field values of the create-customer form, as typed."""

    def __init__(self) -> None:
        self.legal_name = ""
        self.tax_id = ""
        self.display_name = ""
        self.status = CustomerStatus.ACTIVE
        self.premium = False
        self.tags = TagEditor()
        self.pending_tag = ""


class CreateCustomerDialog:
    """
    State and actions of the "new customer" dialog.

    Attributes:
        session: Session providing the bearer token
        client: Backend API client
        on_created: Called after a successful create
        is_open: Whether the dialog is shown
        form: Current field values
        error: Inline error banner text
        submitting: True while the create request is in flight
    """

    def __init__(
        self,
        session: AuthSession,
        client: BackendClient,
        on_created: Optional[RefreshCallback] = None,
    ) -> None:
        self.session = session
        self.client = client
        self.on_created = on_created
        self.is_open = False
        self.form = CustomerForm()
        self.error: Optional[str] = None
        self.submitting = False

    def open(self) -> None:
        self.reset()
        self.is_open = True

    def close(self) -> None:
        """Close the dialog, discarding everything typed so far."""
        self.is_open = False
        self.reset()

    def reset(self) -> None:
        self.form = CustomerForm()
        self.error = None
        self.submitting = False

    def set_tax_id(self, raw: str) -> str:
        """Store the tax ID masked as ``NN.NNN.NNN/NNNN-NN``; return the masked value."""
        self.form.tax_id = format_cnpj(raw)
        return self.form.tax_id

    def update(
        self,
        legal_name: Optional[str] = None,
        tax_id: Optional[str] = None,
        display_name: Optional[str] = None,
        status: Optional[Union[CustomerStatus, str]] = None,
        premium: Optional[bool] = None,
    ) -> None:
        """Copy submitted field values into the form; None leaves a field untouched."""
        if legal_name is not None:
            self.form.legal_name = legal_name
        if tax_id is not None:
            self.set_tax_id(tax_id)
        if display_name is not None:
            self.form.display_name = display_name
        if status is not None:
            self.form.status = CustomerStatus(status)
        if premium is not None:
            self.form.premium = premium

    def add_tag(self, text: Optional[str] = None) -> bool:
        """Add ``text`` (or the pending tag input) and clear the input on success."""
        candidate = self.form.pending_tag if text is None else text
        added = self.form.tags.add_tag(candidate)
        if added:
            self.form.pending_tag = ""
        else:
            self.form.pending_tag = candidate
        return added

    def remove_tag(self, text: str) -> bool:
        return self.form.tags.remove_tag(text)

    def validate(self) -> CustomerDraft:
        """
        Check the form and build the payload.

        Returns:
            Draft with a digits-only tax ID

        Raises:
            ValidationException: On the first missing or malformed field
        """
        form = self.form
        if not form.legal_name.strip():
            raise ValidationException("legal_name", form.legal_name, "Legal name is required")
        if not form.tax_id.strip():
            raise ValidationException("tax_id", form.tax_id, "Tax ID is required")
        if not form.display_name.strip():
            raise ValidationException(
                "display_name", form.display_name, "Display name is required"
            )
        tax_id = validate_cnpj(form.tax_id)

        try:
            return CustomerDraft(
                legal_name=form.legal_name.strip(),
                tax_id=tax_id,
                display_name=form.display_name.strip(),
                tags=form.tags.tags,
                status=form.status,
                premium=form.premium,
            )
        except ValidationError as error:
            raise ValidationException("form", None, "Invalid customer data") from error

    async def submit(self) -> Optional[Customer]:
        """
        Validate and create the customer.

        Validation errors never reach the backend. The dialog closes only
        after a 2xx response; otherwise ``error`` holds the message.

        Returns:
            The created customer on success, else None
        """
        self.error = None
        try:
            draft = self.validate()
        except ValidationException as error:
            self.error = error.message
            logger.debug(
                "Create customer form rejected",
                extra={"extra_fields": {"field": error.field_name, "reason": error.reason}},
            )
            return None

        self.submitting = True
        try:
            created = await self.client.create_customer(
                self.session.require_token("create_customer"), draft
            )
        except RequestFailedException as error:
            self.error = error.message
            track_customer_mutation("create", success=False)
            return None
        finally:
            self.submitting = False

        track_customer_mutation("create", success=True)
        logger.info(
            "Customer created",
            extra={"extra_fields": {"customer_id": created.id if created else None}},
        )
        self.close()
        await _notify(self.on_created)
        return created


class DeleteCustomerDialog:
    """
    State and actions of the delete confirmation dialog.

    Attributes:
        customer: Customer pending deletion while the dialog is open
        error: Inline error banner text
        deleting: True while the delete request is in flight
    """

    def __init__(
        self,
        session: AuthSession,
        client: BackendClient,
        on_deleted: Optional[RefreshCallback] = None,
    ) -> None:
        self.session = session
        self.client = client
        self.on_deleted = on_deleted
        self.customer: Optional[Customer] = None
        self.error: Optional[str] = None
        self.deleting = False

    @property
    def is_open(self) -> bool:
        return self.customer is not None

    def open(self, customer: Customer) -> None:
        self.customer = customer
        self.error = None
        self.deleting = False

    def close(self) -> None:
        self.customer = None
        self.error = None
        self.deleting = False

    async def confirm(self) -> bool:
        """
        Delete the customer shown in the dialog.

        Returns:
            True if it was deleted
        """
        if self.customer is None:
            return False

        self.error = None
        self.deleting = True
        customer_id = self.customer.id
        try:
            await self.client.delete_customer(
                self.session.require_token("delete_customer"), customer_id
            )
        except RequestFailedException as error:
            self.error = error.message
            track_customer_mutation("delete", success=False)
            return False
        finally:
            self.deleting = False

        track_customer_mutation("delete", success=True)
        logger.info("Customer deleted", extra={"extra_fields": {"customer_id": customer_id}})
        self.close()
        await _notify(self.on_deleted)
        return True

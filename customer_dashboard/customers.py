"""
Customer list controller.

Owns the query behind the customer table and the page of results it
produced. Fetches are issued explicitly by the caller (filter changes,
paging, refresh after a mutation); there are no hidden triggers.

Several fetches may be in flight at once when requests overlap on the
event loop. Each fetch is tagged with a sequence number and only the most
recently issued one is allowed to update the displayed state, so a slow
response to an older query never overwrites a newer one.
"""

from enum import Enum
from typing import Any, Optional

from opentelemetry.trace import Span
from pydantic import ValidationError

from .api_client import BackendClient
from .config import settings
from .exceptions import RequestFailedException
from .logging_config import get_logger
from .metrics import track_list_fetch
from .models import ListQuery, ListResult
from .pagination import PaginationControls, build_pagination
from .session import AuthSession
from .tracing import list_fetch_span, record_fetch_outcome

logger = get_logger(__name__)

PAGE_FIELD = "page"


class FetchStatus(str, Enum):
    """Loading state of the customer list."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


class CustomerListController:
    """
    Single source of truth for the displayed page of customers.

    Attributes:
        session: Session providing the bearer token
        client: Backend API client
        default_page_size: Page size of a reset query
        query: Query of the most recently issued fetch
        result: Most recently applied page of customers
        status: Loading state
        last_error: Message of the last failed fetch
    """

    def __init__(
        self,
        session: AuthSession,
        client: BackendClient,
        default_page_size: Optional[int] = None,
    ) -> None:
        self.session = session
        self.client = client
        self.default_page_size = default_page_size or settings.DEFAULT_PAGE_SIZE
        self.query = self.default_query()
        self.result = ListResult.empty(self.default_page_size)
        self.status = FetchStatus.IDLE
        self.last_error: Optional[str] = None
        self._issued = 0
        self._applied = 0

    def default_query(self) -> ListQuery:
        return ListQuery(page=1, page_size=self.default_page_size)

    @property
    def is_loading(self) -> bool:
        return self.status == FetchStatus.LOADING

    @property
    def has_loaded(self) -> bool:
        """True once any fetch has been applied."""
        return self._applied > 0

    @property
    def pagination(self) -> Optional[PaginationControls]:
        return build_pagination(self.result.page, self.result.total_pages or 0)

    def merge_query(self, **changes: Any) -> ListQuery:
        """
        Compute the query resulting from ``changes``.

        An explicit ``page`` is kept as given. Otherwise the page goes back
        to 1 whenever any other field changes value.

        Raises:
            ValueError: On unknown fields or invalid values
        """
        unknown = set(changes) - set(ListQuery.model_fields)
        if unknown:
            raise ValueError(f"Unknown query fields: {', '.join(sorted(unknown))}")

        current = self.query.model_dump()
        try:
            merged = ListQuery.model_validate({**current, **changes})
        except ValidationError as error:
            raise ValueError(str(error)) from error

        if PAGE_FIELD in changes:
            return merged

        merged_values = merged.model_dump()
        changed = any(
            merged_values[field] != current[field]
            for field in changes
            if field != PAGE_FIELD
        )
        if changed and merged.page != 1:
            merged = merged.model_copy(update={"page": 1})
        return merged

    async def set_filters(self, **changes: Any) -> None:
        """
        Merge filter changes into the query and fetch.

        Args:
            **changes: ListQuery fields to change (None clears a filter)
        """
        await self._fetch(self.merge_query(**changes))

    async def reset_filters(self) -> None:
        """Drop every filter, go back to page 1 and fetch."""
        await self._fetch(self.default_query())

    async def refetch(self) -> None:
        """Fetch the current query again, e.g. after a create or delete."""
        await self._fetch(self.query)

    async def change_page(self, page: int) -> None:
        """Go to ``page`` keeping every filter."""
        await self.set_filters(page=page)

    async def _fetch(self, query: ListQuery) -> None:
        token = self.session.require_token("list_customers")

        self._issued += 1
        sequence = self._issued
        self.query = query
        self.status = FetchStatus.LOADING
        params = query.to_params()

        logger.debug(
            "Fetching customers",
            extra={"extra_fields": {"sequence": sequence, "params": params}},
        )

        with list_fetch_span(sequence, params) as span:
            try:
                result = await self.client.list_customers(token, query)
            except RequestFailedException as error:
                if sequence != self._issued:
                    self._discard(sequence, span)
                    return
                self.status = FetchStatus.ERROR
                self.last_error = error.message
                self._record(span, "failed")
                logger.warning(
                    "Customer list fetch failed",
                    extra={
                        "extra_fields": {
                            "sequence": sequence,
                            "status_code": error.status_code,
                            "error_message": error.message,
                        }
                    },
                )
                return

            if sequence != self._issued:
                self._discard(sequence, span)
                return

            self.result = result
            self.status = FetchStatus.IDLE
            self.last_error = None
            self._applied = sequence
            self._record(span, "applied")
            logger.info(
                "Customer list updated",
                extra={
                    "extra_fields": {
                        "sequence": sequence,
                        "page": result.page,
                        "total_count": result.total_count,
                        "items": len(result.items),
                    }
                },
            )

    @staticmethod
    def _record(span: Span, outcome: str) -> None:
        track_list_fetch(outcome)
        record_fetch_outcome(span, outcome)

    def _discard(self, sequence: int, span: Span) -> None:
        self._record(span, "discarded")
        logger.debug(
            "Discarding superseded customer list response",
            extra={"extra_fields": {"sequence": sequence, "latest": self._issued}},
        )

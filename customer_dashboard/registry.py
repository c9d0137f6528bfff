"""
Per-browser dashboard state.

Each browser is identified by an opaque id cookie. Its ``DashboardState``
bundles the auth session, the customer list controller and both dialogs,
wired together so that a successful create/delete refetches the list.
States are dropped on logout or after a period of inactivity.
"""

import asyncio
import time
from typing import Dict, Optional
from uuid import uuid4

from .api_client import BackendClient
from .config import settings
from .customers import CustomerListController
from .dialogs import CreateCustomerDialog, DeleteCustomerDialog
from .logging_config import get_logger
from .metrics import update_active_sessions
from .session import AuthSession, MemoryTokenStorage

logger = get_logger(__name__)


class DashboardState:
    """
    Everything one browser's dashboard needs.

    Attributes:
        session_id: Opaque browser id
        session: Authenticated session store
        customers: Customer list controller
        create_dialog: New-customer dialog
        delete_dialog: Delete confirmation dialog
        restored: Whether the persisted token has been checked yet
        restore_lock: Serializes the one-time restore across overlapping requests
        restore_notice: Login-page notice left by a rejected persisted token
        last_seen: Monotonic time of the last request
    """

    def __init__(
        self,
        session_id: str,
        client: BackendClient,
        token: Optional[str] = None,
    ) -> None:
        self.session_id = session_id
        self.session = AuthSession(client, MemoryTokenStorage(initial=token))
        self.customers = CustomerListController(self.session, client)
        self.create_dialog = CreateCustomerDialog(
            self.session, client, on_created=self.customers.refetch
        )
        self.delete_dialog = DeleteCustomerDialog(
            self.session, client, on_deleted=self.customers.refetch
        )
        self.restored = token is None
        self.restore_lock = asyncio.Lock()
        self.restore_notice: Optional[str] = None
        self.last_seen = time.monotonic()

    @property
    def persisted_token(self) -> Optional[str]:
        return self.session.storage.load()

    def touch(self) -> None:
        self.last_seen = time.monotonic()


class SessionRegistry:
    """
    In-memory map of browser id to ``DashboardState``.

    Attributes:
        idle_timeout: Seconds after which an untouched state is dropped
    """

    def __init__(self, idle_timeout: Optional[int] = None) -> None:
        self.idle_timeout = idle_timeout or settings.SESSION_IDLE_TIMEOUT
        self._states: Dict[str, DashboardState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def get(self, session_id: Optional[str]) -> Optional[DashboardState]:
        if not session_id:
            return None
        return self._states.get(session_id)

    def get_or_create(
        self,
        session_id: Optional[str],
        client: BackendClient,
        token: Optional[str] = None,
    ) -> DashboardState:
        """
        Return the state for ``session_id``, creating it if needed.

        Ids are only ever minted here: an id the registry does not know
        gets a brand new state under a fresh random id, never under the
        id the browser offered.

        Args:
            session_id: Browser id from the cookie, None for a new browser
            client: Backend client for a new state
            token: Persisted token to seed a new state with

        Returns:
            The browser's state, freshly touched
        """
        self.prune()

        state = self.get(session_id)
        if state is None:
            state = DashboardState(uuid4().hex, client, token)
            self._states[state.session_id] = state
            update_active_sessions(len(self._states))
            logger.debug(
                "Created dashboard state",
                extra={
                    "extra_fields": {
                        "restoring_token": token is not None,
                        "offered_unknown_id": bool(session_id),
                    }
                },
            )

        state.touch()
        return state

    def rotate(self, state: DashboardState) -> str:
        """
        Re-key ``state`` under a new random id.

        Called whenever the session changes identity (login, registration,
        OAuth callback) so an id known before sign-in stops working after it.

        Returns:
            The new id
        """
        self._states.pop(state.session_id, None)
        state.session_id = uuid4().hex
        self._states[state.session_id] = state
        logger.info("Rotated dashboard session id")
        return state.session_id

    def discard(self, session_id: str) -> None:
        if self._states.pop(session_id, None) is not None:
            update_active_sessions(len(self._states))

    def prune(self) -> int:
        """Drop idle states; return how many were dropped."""
        cutoff = time.monotonic() - self.idle_timeout
        expired = [sid for sid, state in self._states.items() if state.last_seen < cutoff]
        for sid in expired:
            del self._states[sid]
        if expired:
            update_active_sessions(len(self._states))
            logger.info(
                "Pruned idle dashboard states",
                extra={"extra_fields": {"count": len(expired)}},
            )
        return len(expired)

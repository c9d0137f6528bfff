"""
Authenticated session store.

``AuthSession`` is the only owner of the signed-in user and bearer token.
The token is mirrored into a ``TokenStorage`` under a fixed key so the
session can be restored after a reload; everything else is rebuilt from
``GET /auth/profile``.
"""

from typing import Dict, Optional

from .api_client import BackendClient
from .config import settings
from .exceptions import (AuthenticationMissingException, ProfileInvalidException,
                         RequestFailedException)
from .logging_config import get_logger
from .models import User
from .permissions import Permissions, resolve_permissions

logger = get_logger(__name__)


class TokenStorage:
    """
    Key-value storage for the persisted bearer token.

    Subclasses decide where the value lives; the session only ever uses
    ``key``.
    """

    def __init__(self, key: Optional[str] = None) -> None:
        self.key = key or settings.ACCESS_TOKEN_KEY

    def load(self) -> Optional[str]:
        raise NotImplementedError

    def save(self, token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStorage(TokenStorage):
    """
    Token storage backed by a dict.

    The web layer seeds one per browser from the token cookie and mirrors
    it back into that cookie on every response.
    """

    def __init__(self, initial: Optional[str] = None, key: Optional[str] = None) -> None:
        super().__init__(key)
        self._values: Dict[str, str] = {}
        if initial:
            self._values[self.key] = initial

    def load(self) -> Optional[str]:
        return self._values.get(self.key)

    def save(self, token: str) -> None:
        self._values[self.key] = token

    def clear(self) -> None:
        self._values.pop(self.key, None)


class AuthSession:
    """
    Current user and bearer token.

    Constructed once per browser and passed to every component that needs
    the token; torn down on logout.

    Attributes:
        client: Backend API client
        storage: Persistent token storage
    """

    def __init__(self, client: BackendClient, storage: Optional[TokenStorage] = None) -> None:
        self.client = client
        self.storage = storage or MemoryTokenStorage()
        self._user: Optional[User] = None
        self._token: Optional[str] = None

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def role(self) -> Optional[str]:
        return self._user.role if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None and bool(self._token)

    @property
    def permissions(self) -> Permissions:
        """Capabilities of the current user, derived on every access."""
        return resolve_permissions(self._user)

    def require_token(self, operation: str) -> str:
        """
        Return the bearer token for an authenticated operation.

        Raises:
            AuthenticationMissingException: If no token is held
        """
        if not self._token:
            raise AuthenticationMissingException(operation)
        return self._token

    def _establish(self, token: str, user: User) -> None:
        self._token = token
        self._user = user
        self.storage.save(token)
        logger.info(
            "Session established",
            extra={"extra_fields": {"user_id": user.id, "role": user.role}},
        )

    async def login(self, email: str, password: str) -> User:
        """
        Sign in with email and password.

        Raises:
            RequestFailedException: If the backend rejects the credentials
        """
        token, user = await self.client.login(email, password)
        self._establish(token, user)
        return user

    async def register(self, name: str, email: str, password: str) -> User:
        """
        Create an account and sign in with it.

        Raises:
            RequestFailedException: If the backend refuses the registration
        """
        token, user = await self.client.register(name, email, password)
        self._establish(token, user)
        return user

    def logout(self) -> None:
        """Forget the user and token, including the persisted copy."""
        if self._user is not None:
            logger.info(
                "Session closed",
                extra={"extra_fields": {"user_id": self._user.id}},
            )
        self._user = None
        self._token = None
        self.storage.clear()

    async def fetch_profile(self) -> User:
        """
        Load the user for the held token.

        Any failure means the token is no longer usable: the session is
        logged out.

        Raises:
            ProfileInvalidException: If the profile cannot be fetched
        """
        try:
            user = await self.client.get_profile(self.require_token("profile"))
        except (AuthenticationMissingException, RequestFailedException) as error:
            logger.warning(
                "Profile fetch failed, clearing session",
                extra={"extra_fields": {"error_message": error.message}},
            )
            self.logout()
            raise ProfileInvalidException(details={"cause": error.message}) from error

        self._user = user
        return user

    async def restore(self) -> Optional[User]:
        """
        Restore the session from the persisted token.

        Returns:
            The user, or None if no token was persisted

        Raises:
            ProfileInvalidException: If the persisted token is rejected
        """
        token = self.storage.load()
        if not token:
            return None
        self._token = token
        return await self.fetch_profile()

    async def complete_oauth(self, token: str) -> User:
        """
        Adopt the token delivered by the OAuth callback.

        Raises:
            ProfileInvalidException: If the token does not resolve to a user
        """
        self._token = token
        self.storage.save(token)
        return await self.fetch_profile()

    def google_login_url(self) -> str:
        return self.client.google_login_url

"""
Custom exception classes for the customer dashboard.

Provides specific exceptions for form validation, missing credentials,
failed backend requests and invalid sessions so each can be surfaced
next to the component that triggered it.
"""

from typing import Any, Dict, Optional


class DashboardException(Exception):
    """
    Base exception for all customer dashboard errors.

    All custom exceptions inherit from this class
    for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize dashboard exception.

        Args:
            message: Human-readable error message
            details: Additional context about the error
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(DashboardException):
    """
    Exception raised when form input validation fails.

    Shown inline next to the form; the request is never sent to the backend.
    """

    def __init__(
        self,
        field_name: str,
        value: Any,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize validation exception.

        Args:
            field_name: Name of the field that failed validation
            value: The invalid value
            reason: Human-readable explanation, used as the message
            details: Additional context about the error
        """
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(reason, details)


class AuthenticationMissingException(DashboardException):
    """
    Exception raised when an authenticated call is attempted without a token.

    This is a precondition failure: the route guard keeps anonymous
    sessions away from authenticated operations in normal use.
    """

    def __init__(
        self,
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.operation = operation
        super().__init__(
            f"Authentication token not found for '{operation}'",
            details,
        )


class RequestFailedException(DashboardException):
    """
    Exception raised when a backend request fails.

    Covers non-2xx responses (message taken from the response body when
    present) and transport failures such as timeouts, where
    ``status_code`` is None.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize request failed exception.

        Args:
            message: User-visible error message
            status_code: HTTP status code, None for transport failures
            details: Additional context about the error
        """
        self.status_code = status_code
        super().__init__(message, details)


class ProfileInvalidException(DashboardException):
    """
    Exception raised when the profile cannot be fetched for a stored token.

    Fatal to the session: the token and user are cleared and the browser
    is sent back to the login screen.
    """

    def __init__(
        self,
        message: str = "Your session has expired, please sign in again",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)

"""
Role-based capabilities for the dashboard.

Capabilities are a pure function of the signed-in user's role and are
recomputed from the session on every check.
"""

from dataclasses import dataclass
from typing import Optional

from .models import User

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Permissions:
    """Capabilities granted to the current user."""

    is_admin: bool = False
    can_create: bool = False
    can_delete: bool = False


NO_PERMISSIONS = Permissions()


def resolve_permissions(user: Optional[User]) -> Permissions:
    """
    Derive capabilities from a user's role.

    Only the ``admin`` role may create or delete customers; any other
    role, a missing role, and anonymous sessions get nothing.

    Args:
        user: Signed-in user, or None

    Returns:
        Permissions for the user
    """
    if user is None or user.role != ADMIN_ROLE:
        return NO_PERMISSIONS
    return Permissions(is_admin=True, can_create=True, can_delete=True)

"""
Customer Dashboard Package.

Server-rendered admin dashboard for customer records: sign-in, a filtered
and paginated customer table, and role-gated create/delete dialogs, all
backed by an external REST API.
"""

__version__ = "1.0.0"
__description__ = "Admin dashboard for customer records"

__all__ = [
    "__version__",
]

from . import auth, customers

__all__ = ["auth", "customers"]

"""
Middleware modules
"""
from .logging_middleware import LoggingMiddleware
from .admin_auth import verify_admin_key

__all__ = ["LoggingMiddleware", "verify_admin_key"]

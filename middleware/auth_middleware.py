"""
Authentication middleware to flag requests without credentials on protected routes.
This middleware provides an early check, but actual validation is done by FastAPI dependencies.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import List

from core.logger import logger

# Exact paths that don't require authentication
PUBLIC_ROUTES: List[str] = [
    "/",
    "/health",
    # Resolver answers "sign in" for anonymous callers
    "/api/auth/redirect",
]

# Path prefixes that don't require authentication
PUBLIC_PREFIXES: List[str] = [
    "/docs",
    "/openapi.json",
    "/redoc",
    "/uploads/",
]


class AuthRequiredMiddleware(BaseHTTPMiddleware):
    """
    Middleware to flag unauthenticated requests on protected routes.

    Token validation, revocation and the institute-domain gate are handled by
    FastAPI dependencies; this only logs for monitoring.
    """

    def __init__(self, app, public_routes: List[str] = None, public_prefixes: List[str] = None):
        """
        Initialize authentication middleware.

        Args:
            app: FastAPI application
            public_routes: Exact paths that don't require auth
            public_prefixes: Path prefixes that don't require auth
        """
        super().__init__(app)
        self.public_routes = public_routes or PUBLIC_ROUTES
        self.public_prefixes = public_prefixes or PUBLIC_PREFIXES

    def is_public(self, path: str) -> bool:
        return path in self.public_routes or any(path.startswith(p) for p in self.public_prefixes)

    async def dispatch(self, request: Request, call_next):
        """Process request with authentication check."""
        path = request.url.path

        if self.is_public(path) or request.method == "OPTIONS":
            return await call_next(request)

        if not request.headers.get("authorization"):
            client = request.client.host if request.client else "unknown"
            logger.warning(f"Request without authentication headers: {request.method} {path} from {client}")

        return await call_next(request)

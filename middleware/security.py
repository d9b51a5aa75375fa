"""
HTTP hardening: per-client rate limits, response security headers, CORS and trusted hosts.
"""
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable, Optional, Tuple

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.logger import logger

# Health probes hit the service constantly and are never throttled
RATE_LIMIT_EXEMPT_PATHS = ("/health",)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limit per client address.

    Two windows are tracked (one minute, one hour). A limit of 0 turns that
    window off, so both at 0 disables limiting entirely.
    """

    def __init__(
        self,
        app,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        exempt_paths: Iterable[str] = RATE_LIMIT_EXEMPT_PATHS,
    ):
        super().__init__(app)
        self.windows: Tuple[Tuple[int, int], ...] = tuple(
            (seconds, limit)
            for seconds, limit in ((60, requests_per_minute), (3600, requests_per_hour))
            if limit > 0
        )
        self.exempt_paths = tuple(exempt_paths)
        self.hits: Dict[str, Deque[float]] = defaultdict(deque)
        self.sweep_every = 300
        self.last_sweep = time.monotonic()

    async def dispatch(self, request: Request, call_next):
        if not self.windows or request.url.path in self.exempt_paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()
        if now - self.last_sweep > self.sweep_every:
            self._sweep(now)

        retry_after = self._retry_after(client_ip, now)
        if retry_after is not None:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.method} {request.url.path}")
            # Exceptions raised in middleware bypass FastAPI's handlers
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please try again later."},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)

    def _retry_after(self, client_ip: str, now: float) -> Optional[int]:
        """Seconds to wait if the client is over a limit; otherwise records the hit and returns None."""
        hits = self.hits[client_ip]
        longest = max(seconds for seconds, _ in self.windows)
        while hits and now - hits[0] >= longest:
            hits.popleft()

        for seconds, limit in self.windows:
            in_window = [t for t in hits if now - t < seconds]
            if len(in_window) >= limit:
                return max(1, int(seconds - (now - in_window[0])))

        hits.append(now)
        return None

    def _sweep(self, now: float) -> None:
        longest = max(seconds for seconds, _ in self.windows)
        for ip in list(self.hits):
            if not self.hits[ip] or now - self.hits[ip][-1] >= longest:
                del self.hits[ip]
        self.last_sweep = now


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers on every response; API responses are also marked uncacheable."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        if request.url.path.startswith("/api/"):
            # Role-scoped data must not be served from shared caches
            response.headers["Cache-Control"] = "no-store"
        return response


def setup_cors(app, allowed_origins: list[str], allowed_methods: list[str] = None):
    """
    Allow the dashboard front-end origins to call the API with credentials.

    Args:
        app: FastAPI application
        allowed_origins: Front-end origins
        allowed_methods: HTTP methods; defaults to the ones the API uses
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=allowed_methods or ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )


def setup_trusted_hosts(app, allowed_hosts: list[str]):
    """Reject requests whose Host header is not one of ours (production only)."""
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)

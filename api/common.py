"""
Common HTTP plumbing shared by the public and admin routes.

Request ids, security headers, client IP resolution, the rate limit
response, and the health check all live here.
"""

import asyncio
import logging
import uuid
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from config import STORAGE_CHECK_TIMEOUT, TRUSTED_PROXIES

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Incoming request ids longer than this are replaced, not propagated
MAX_REQUEST_ID_LENGTH = 128


def get_real_ip(request: Request) -> str:
    """
    Get the real client IP address, respecting X-Forwarded-For header only from trusted proxies.

    Security: X-Forwarded-For is only trusted when the direct client IP is in TRUSTED_PROXIES.
    This prevents attackers from spoofing the header to bypass rate limiting.
    Configure VIDHOST_TRUSTED_PROXIES with your proxy IPs (e.g., "127.0.0.1,10.0.0.1").
    """
    client_ip = get_remote_address(request)

    if TRUSTED_PROXIES and client_ip in TRUSTED_PROXIES:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # The first entry is the original client
            return forwarded.split(",")[0].strip()

    return client_ip


def get_request_id(request: Request) -> Optional[str]:
    """Return the id assigned by RequestIDMiddleware, or None outside of it."""
    return getattr(request.state, "request_id", None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an id and echo it in the X-Request-ID response header.

    A well-formed incoming X-Request-ID is propagated so traces can span a
    proxy; otherwise a fresh UUID4 is generated.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH or not request_id.isprintable():
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        # Prevent MIME-type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions policy (disable unnecessary browser features)
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # No Content-Security-Policy: viewer pages load admin-supplied banner
        # scripts and video from the object store's origin
        return response


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors with the upload endpoint's JSON shape."""
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Rate limit exceeded",
            "error": str(exc.detail),
        },
    )


async def check_health(video_store, object_store) -> dict:
    """
    Perform health checks for the metadata store and the object store.

    Returns a dict with:
        - checks: dict of individual check results
        - healthy: bool indicating overall health
        - status_code: HTTP status code (200 if healthy, 503 if not)
    """
    checks = {
        "database": False,
        "storage": False,
    }

    try:
        checks["database"] = await video_store.ping()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")

    # Bounded by a timeout so an unreachable endpoint can't hang the probe
    try:
        checks["storage"] = await asyncio.wait_for(
            object_store.check_available(),
            timeout=STORAGE_CHECK_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.warning("Storage health check timed out")
        checks["storage"] = False
    except Exception as e:
        logger.warning(f"Storage health check failed: {e}")

    healthy = all(checks.values())

    return {
        "checks": checks,
        "healthy": healthy,
        "status_code": 200 if healthy else 503,
    }


def get_video_store(request: Request):
    """Dependency returning the VideoStore owned by the application."""
    return request.app.state.video_store


def get_object_store(request: Request):
    """Dependency returning the ObjectStore owned by the application."""
    return request.app.state.object_store

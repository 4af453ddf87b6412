"""
Admin authentication.

Admin pages are protected with HTTP Basic credentials checked against a
configuration-driven credential store. The check runs in an ASGI middleware
ahead of routing, so an unauthenticated request never reaches a handler or
touches the metadata or object store.
"""

import base64
import binascii
import hmac
import logging
from typing import Dict, Mapping, Optional

from fastapi.responses import HTMLResponse
from starlette.datastructures import Headers

import config
from api.rendering import render_error_page

logger = logging.getLogger(__name__)

# Security event logger for authentication events
security_logger = logging.getLogger("security.admin_auth")

ADMIN_PATH_PREFIX = "/admin"


class AdminCredentialStore:
    """
    Username to password mapping used to authenticate admin requests.

    Rotating a password or adding an admin is a configuration change; an
    empty store rejects every request.
    """

    def __init__(self, users: Optional[Mapping[str, str]] = None):
        self._users: Dict[str, str] = dict(users or {})

    @classmethod
    def from_config(cls) -> "AdminCredentialStore":
        store = cls(config.ADMIN_CREDENTIALS)
        if not store:
            logger.warning(
                "No admin credentials configured; all /admin requests will be rejected. "
                "Set VIDHOST_ADMIN_USERS or VIDHOST_ADMIN_USERNAME/VIDHOST_ADMIN_PASSWORD."
            )
        return store

    def __bool__(self) -> bool:
        return bool(self._users)

    def __len__(self) -> int:
        return len(self._users)

    def verify(self, username: str, password: str) -> bool:
        """Constant-time password check. Unknown users are compared against a dummy."""
        expected = self._users.get(username)
        if expected is None:
            hmac.compare_digest(password.encode("utf-8"), b"\x00" * max(len(password), 1))
            return False
        return hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))


def parse_basic_authorization(header_value: Optional[str]):
    """
    Decode an HTTP Basic Authorization header value.

    Returns (username, password) or None if the header is missing or malformed.
    """
    if not header_value:
        return None
    scheme, _, encoded = header_value.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def authenticate_admin_request(request_headers: Mapping[str, str], store: AdminCredentialStore) -> Optional[str]:
    """
    Authenticate an admin request from its headers.

    Returns the authenticated username, or None when credentials are missing,
    malformed, or wrong.
    """
    if not store:
        return None
    credentials = parse_basic_authorization(request_headers.get("authorization"))
    if credentials is None:
        return None
    username, password = credentials
    if store.verify(username, password):
        return username
    return None


def is_admin_path(path: str) -> bool:
    return path == ADMIN_PATH_PREFIX or path.startswith(ADMIN_PATH_PREFIX + "/")


def unauthorized_response(realm: str = config.ADMIN_REALM) -> HTMLResponse:
    return HTMLResponse(
        content=render_error_page(401, "Authentication required"),
        status_code=401,
        headers={"WWW-Authenticate": f'Basic realm="{realm}"'},
    )


class AdminAuthMiddleware:
    """
    Middleware to protect every /admin path with HTTP Basic authentication.

    Authenticated requests get the username in scope["state"]["admin_user"]
    (readable as request.state.admin_user). Everything else is passed
    through untouched.
    """

    def __init__(self, app, store: AdminCredentialStore, realm: str = config.ADMIN_REALM):
        self.app = app
        self.store = store
        self.realm = realm

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not is_admin_path(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        client = scope.get("client")
        client_ip = client[0] if client else "unknown"
        headers = Headers(scope=scope)

        if not headers.get("authorization"):
            security_logger.info(
                "Admin auth challenge: no credentials",
                extra={"event": "auth_challenge", "path": path, "client_ip": client_ip},
            )
            await unauthorized_response(self.realm)(scope, receive, send)
            return

        username = authenticate_admin_request(headers, self.store)
        if username is None:
            security_logger.warning(
                "Admin auth failed: invalid credentials",
                extra={"event": "auth_failure", "reason": "invalid_credentials", "path": path, "client_ip": client_ip},
            )
            await unauthorized_response(self.realm)(scope, receive, send)
            return

        security_logger.info(
            "Admin auth successful",
            extra={"event": "auth_success", "user": username, "path": path, "client_ip": client_ip},
        )
        scope.setdefault("state", {})["admin_user"] = username
        await self.app(scope, receive, send)

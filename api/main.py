"""
Application factory.

create_app() is the one place where the database engine, the object store
and the admin credentials are created (or injected by tests) and attached
to the FastAPI app. Route handlers reach them through dependencies.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import admin, public
from api.admin_auth import AdminAuthMiddleware, AdminCredentialStore
from api.common import RequestIDMiddleware, SecurityHeadersMiddleware, rate_limit_exceeded_handler
from api.database import create_database, metadata
from api.object_store import ObjectStore
from api.rendering import render_error_page
from api.video_store import VideoStore
from config import ADMIN_REALM, HOST, LOG_LEVEL, PORT, RATE_LIMIT_ENABLED, RATE_LIMIT_STORAGE_URL

logger = logging.getLogger(__name__)

# Paths that answer with JSON bodies instead of HTML error pages
JSON_PATHS = ("/upload", "/health")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Render HTTP errors in the shape the route's clients expect.

    The upload endpoint answers {"success": false, "message": ...}; every
    other route gets a small HTML error page.
    """
    headers = getattr(exc, "headers", None)
    if request.url.path in JSON_PATHS:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=headers,
        )
    return HTMLResponse(
        content=render_error_page(exc.status_code, str(exc.detail)),
        status_code=exc.status_code,
        headers=headers,
    )


def create_app(
    engine: Optional[AsyncEngine] = None,
    object_store: Optional[ObjectStore] = None,
    credentials: Optional[AdminCredentialStore] = None,
) -> FastAPI:
    """
    Build the vidhost application.

    Anything not passed in is created from configuration. The database
    engine connects lazily and is disposed on shutdown.
    """
    engine = engine if engine is not None else create_database()
    object_store = object_store if object_store is not None else ObjectStore.from_config()
    credentials = credentials if credentials is not None else AdminCredentialStore.from_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application startup and shutdown."""
        if RATE_LIMIT_ENABLED and RATE_LIMIT_STORAGE_URL == "memory://":
            logger.warning(
                "Rate limiting is using in-memory storage. "
                "For deployments with multiple instances, configure Redis: "
                "VIDHOST_RATE_LIMIT_STORAGE_URL=redis://localhost:6379"
            )
        # Create tables if absent
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info(f"Database engine ready ({engine.url.get_backend_name()})")
        yield
        await engine.dispose()
        logger.info("Database engine disposed")

    app = FastAPI(title="vidhost", description="Video hosting with redirect and bot controls", lifespan=lifespan)

    app.state.engine = engine
    app.state.video_store = VideoStore(engine)
    app.state.object_store = object_store
    app.state.credentials = credentials

    # Register rate limiter with the app
    app.state.limiter = public.limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Outermost last: request ids wrap everything, including auth challenges
    app.add_middleware(AdminAuthMiddleware, store=credentials, realm=ADMIN_REALM)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(public.router)
    app.include_router(admin.router)

    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run("api.main:create_app", factory=True, host=HOST, port=PORT)

from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

import config

metadata = sa.MetaData()

# Async drivers used by the application, keyed by the plain dialect name
ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgresql+psycopg2": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}
# Sync drivers used for table creation
SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql",
    "sqlite+aiosqlite": "sqlite",
}

# One row per uploaded video.
#
# FIELD SEMANTICS:
# ----------------
# - id: short opaque URL-safe token, generated at upload, never changes
# - filename: object store key (e.g. "videos/k3J9xQ2aBc.mp4")
# - redirect_url: when set, viewing the page redirects here (and counts a click)
# - facebook_redirect_url: redirect target for the Facebook crawler only
# - banner_script_1..5, visit_counter_script: trusted raw HTML, rendered unescaped
# - use_antibot: deny known crawlers with 403
# - use_cloaking, use_preview, use_visit_counter: stored toggles, not read by the viewer
# - click_count: only ever incremented, by the viewer redirect path
videos = sa.Table(
    "videos",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("filename", sa.Text, nullable=False),
    sa.Column("redirect_url", sa.Text, nullable=True),
    sa.Column("description", sa.Text, default=""),
    sa.Column("banner_script_1", sa.Text, nullable=True),
    sa.Column("banner_script_2", sa.Text, nullable=True),
    sa.Column("banner_script_3", sa.Text, nullable=True),
    sa.Column("banner_script_4", sa.Text, nullable=True),
    sa.Column("banner_script_5", sa.Text, nullable=True),
    sa.Column("facebook_redirect_url", sa.Text, nullable=True),
    sa.Column("use_cloaking", sa.Boolean, nullable=False, default=False),
    sa.Column("use_antibot", sa.Boolean, nullable=False, default=False),
    sa.Column("use_preview", sa.Boolean, nullable=False, default=False),
    sa.Column("use_visit_counter", sa.Boolean, nullable=False, default=False),
    sa.Column("preview_title", sa.Text, nullable=True),
    sa.Column("preview_image", sa.Text, nullable=True),
    sa.Column("visit_counter_script", sa.Text, nullable=True),
    sa.Column(
        "click_count",
        sa.Integer,
        sa.CheckConstraint("click_count >= 0", name="ck_videos_click_count"),
        nullable=False,
        default=0,
        server_default="0",
    ),
    sa.Column("created_at", sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)),
    sa.Index("ix_videos_created_at", "created_at"),
)


def async_database_url(url: str) -> str:
    """Map a plain database URL onto its async driver (asyncpg, aiosqlite)."""
    parsed = make_url(url)
    drivername = ASYNC_DRIVERS.get(parsed.drivername, parsed.drivername)
    return parsed.set(drivername=drivername).render_as_string(hide_password=False)


def sync_database_url(url: str) -> str:
    """Map an async database URL back onto the default sync driver."""
    parsed = make_url(url)
    drivername = SYNC_DRIVERS.get(parsed.drivername, parsed.drivername)
    return parsed.set(drivername=drivername).render_as_string(hide_password=False)


def create_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Create the async engine (connection pool) the application runs on.

    Connections are opened lazily; the app disposes the engine on shutdown.
    """
    return create_async_engine(async_database_url(url or config.DATABASE_URL), pool_pre_ping=True)


def create_tables(url: Optional[str] = None) -> None:
    """
    Create database tables directly using SQLAlchemy metadata.
    Existing tables are left untouched (create-if-absent).
    """
    engine = sa.create_engine(sync_database_url(url or config.DATABASE_URL))
    metadata.create_all(engine)
    engine.dispose()


if __name__ == "__main__":
    create_tables()
    print("Database tables created successfully!")

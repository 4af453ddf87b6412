"""
Metadata store for uploaded videos.

All access to the videos table goes through VideoStore, which is constructed
with an explicit AsyncEngine by the application factory. Every operation is
a single SQL statement in its own transaction; the store relies on the
database for per-row atomicity and does no locking of its own.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from api.database import videos
from api.errors import is_unique_violation
from api.schemas import VideoMetadata
from config import RELATED_VIDEOS_LIMIT, VIDEO_ID_LENGTH

logger = logging.getLogger(__name__)

# Retry budget for id collisions (vanishingly rare at the default id length)
MAX_ID_ATTEMPTS = 5

# Columns read by the public gallery and the admin list
GALLERY_COLUMNS = ("id", "filename", "description", "preview_image")
ADMIN_LIST_COLUMNS = ("id", "filename", "description")
RELATED_COLUMNS = ("id", "description", "preview_image")


def generate_token(length: int = VIDEO_ID_LENGTH) -> str:
    """Generate a short URL-safe random token."""
    return secrets.token_urlsafe(length)[:length]


class VideoStore:
    """Single-table store over `videos`."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def _fetch_all(self, query) -> List[Dict[str, Any]]:
        async with self.engine.connect() as conn:
            result = await conn.execute(query)
            return [dict(row) for row in result.mappings().all()]

    async def _execute_scalar(self, query) -> Any:
        async with self.engine.begin() as conn:
            result = await conn.execute(query)
            return result.scalar_one_or_none()

    async def create_video(self, filename: str, metadata: VideoMetadata) -> str:
        """
        Insert a new video row and return its generated id.

        The id is generated here, never taken from the client. A primary key
        collision is retried with a fresh id; any other error propagates.
        """
        values = metadata.to_row()
        attempts = 0
        while True:
            video_id = generate_token()
            try:
                async with self.engine.begin() as conn:
                    await conn.execute(
                        videos.insert().values(
                            id=video_id,
                            filename=filename,
                            click_count=0,
                            created_at=datetime.now(timezone.utc),
                            **values,
                        )
                    )
                return video_id
            except IntegrityError as e:
                attempts += 1
                if not is_unique_violation(e, column="id") or attempts >= MAX_ID_ATTEMPTS:
                    raise
                logger.info(f"Video id collision on {video_id}, retrying ({attempts}/{MAX_ID_ATTEMPTS})")

    async def get_video(self, video_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._fetch_all(videos.select().where(videos.c.id == video_id))
        return rows[0] if rows else None

    async def list_videos(self, columns: Sequence[str] = GALLERY_COLUMNS) -> List[Dict[str, Any]]:
        """Return every row (selected columns only), newest first. No pagination."""
        query = sa.select(*[videos.c[name] for name in columns]).order_by(
            videos.c.created_at.desc(), videos.c.id
        )
        return await self._fetch_all(query)

    async def sample_related(self, exclude_id: str, limit: int = RELATED_VIDEOS_LIMIT) -> List[Dict[str, Any]]:
        """
        Sample up to `limit` distinct videos other than `exclude_id`.

        Order is random; no other ordering guarantee is made.
        """
        query = (
            sa.select(*[videos.c[name] for name in RELATED_COLUMNS])
            .where(videos.c.id != exclude_id)
            .order_by(sa.func.random())
            .limit(limit)
        )
        return await self._fetch_all(query)

    async def increment_click_count(self, video_id: str) -> Optional[int]:
        """
        Atomically add one click and return the new count.

        The increment is computed by the database in a single UPDATE, so
        concurrent calls never lose updates. Returns None if the row is gone.
        """
        query = (
            videos.update()
            .where(videos.c.id == video_id)
            .values(click_count=videos.c.click_count + 1)
            .returning(videos.c.click_count)
        )
        return await self._execute_scalar(query)

    async def update_description(self, video_id: str, description: str) -> bool:
        """Update the description only. Returns False if no such video exists."""
        query = (
            videos.update()
            .where(videos.c.id == video_id)
            .values(description=description)
            .returning(videos.c.id)
        )
        return await self._execute_scalar(query) is not None

    async def delete_video(self, video_id: str) -> Optional[str]:
        """Delete a video row, returning its object store key (None if absent)."""
        query = videos.delete().where(videos.c.id == video_id).returning(videos.c.filename)
        return await self._execute_scalar(query)

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(sa.text("SELECT 1"))
        return True

"""
Pytest fixtures for vidhost tests.

Tests run against a temporary SQLite database (one file per test) and an
in-memory S3 client behind the real ObjectStore, so no external services
are needed.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

# Set up test environment BEFORE importing config
_test_temp_dir = tempfile.mkdtemp()
os.environ["VIDHOST_RATE_LIMIT_ENABLED"] = "0"
os.environ["VIDHOST_AUDIT_LOG_PATH"] = str(Path(_test_temp_dir) / "audit.log")
os.environ.setdefault("AWS_S3_BUCKET", "test-bucket")
os.environ.setdefault("AWS_REGION", "us-east-1")

from api.admin_auth import AdminCredentialStore  # noqa: E402
from api.database import create_database, create_tables, videos  # noqa: E402
from api.object_store import ObjectStore  # noqa: E402
from api.video_store import VideoStore  # noqa: E402

TEST_BUCKET = "test-bucket"
TEST_ADMIN_USER = "admin"
TEST_ADMIN_PASSWORD = "test-admin-password-12345"
ADMIN_AUTH = (TEST_ADMIN_USER, TEST_ADMIN_PASSWORD)


class InMemoryS3Client:
    """
    Stand-in for a boto3 S3 client holding objects in a dict.

    Implements only the calls ObjectStore makes. upload_fileobj drains the
    file object through read() in chunks, the way boto3's transfer manager
    does, so size limits are exercised.
    """

    def __init__(self, chunk_size: int = 64 * 1024):
        self.objects = {}
        self.content_types = {}
        self.deleted = []
        self.chunk_size = chunk_size
        self.available = True

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None, Config=None):
        chunks = []
        while True:
            chunk = fileobj.read(self.chunk_size)
            if not chunk:
                break
            chunks.append(chunk)
        self.objects[key] = b"".join(chunks)
        self.content_types[key] = (ExtraArgs or {}).get("ContentType")

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)
        return {}

    def head_bucket(self, Bucket):
        if not self.available:
            from botocore.exceptions import ClientError

            raise ClientError({"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket")
        return {}


@pytest.fixture(scope="function")
def test_db_url(tmp_path: Path) -> str:
    """Create a SQLite test database file with all tables and return its URL."""
    db_url = f"sqlite:///{tmp_path / 'vidhost_test.db'}"
    create_tables(db_url)
    return db_url


@pytest.fixture(scope="function")
async def test_database(test_db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on the test database, for seeding and inspecting rows."""
    engine = create_database(test_db_url)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def video_store(test_database: AsyncEngine) -> VideoStore:
    return VideoStore(test_database)


@pytest.fixture(scope="function")
def s3_client() -> InMemoryS3Client:
    return InMemoryS3Client()


@pytest.fixture(scope="function")
def object_store(s3_client: InMemoryS3Client) -> ObjectStore:
    return ObjectStore(bucket=TEST_BUCKET, client=s3_client)


@pytest.fixture(scope="function")
def admin_credentials() -> AdminCredentialStore:
    return AdminCredentialStore({TEST_ADMIN_USER: TEST_ADMIN_PASSWORD})


@pytest.fixture(scope="function")
def client(test_db_url: str, object_store: ObjectStore, admin_credentials: AdminCredentialStore):
    """
    Test client for the full application.

    The app gets its own engine on the test database (it runs on the
    TestClient event loop) and disposes it through its lifespan.
    """
    from fastapi.testclient import TestClient

    from api.main import create_app

    app = create_app(
        engine=create_database(test_db_url),
        object_store=object_store,
        credentials=admin_credentials,
    )
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


async def insert_video(engine: AsyncEngine, video_id: str, **values) -> dict:
    """Insert a video row directly, returning the values written."""
    row = {
        "id": video_id,
        "filename": f"videos/{video_id}.mp4",
        "description": f"Description of {video_id}",
        "use_cloaking": False,
        "use_antibot": False,
        "use_preview": False,
        "use_visit_counter": False,
        "click_count": 0,
        "created_at": datetime.now(timezone.utc),
    }
    row.update(values)
    async with engine.begin() as conn:
        await conn.execute(videos.insert().values(**row))
    return row


@pytest.fixture(scope="function")
def make_video(test_database: AsyncEngine):
    """Factory inserting extra video rows: await make_video("id", description=...)."""

    async def _make(video_id: str, **values) -> dict:
        return await insert_video(test_database, video_id, **values)

    return _make


@pytest.fixture(scope="function")
async def sample_video(test_database: AsyncEngine) -> dict:
    """A plain video: no redirects, no antibot."""
    return await insert_video(
        test_database,
        "sample0001",
        description="A sample video",
        preview_title="Sample title",
        preview_image="https://img.example.com/sample.jpg",
        banner_script_1="<script>banner(1)</script>",
        banner_script_4="<div class='ad'>banner four</div>",
        visit_counter_script="<script>countVisit()</script>",
    )


@pytest.fixture(scope="function")
async def redirect_video(test_database: AsyncEngine) -> dict:
    """A video with a generic redirect and a Facebook redirect."""
    return await insert_video(
        test_database,
        "redirect01",
        redirect_url="https://example.com/landing",
        facebook_redirect_url="https://example.com/facebook",
        created_at=datetime.now(timezone.utc) - timedelta(minutes=5),
    )


@pytest.fixture(scope="function")
async def antibot_video(test_database: AsyncEngine) -> dict:
    """A video with antibot on and a generic redirect."""
    return await insert_video(
        test_database,
        "antibot001",
        use_antibot=True,
        redirect_url="https://example.com/landing",
        facebook_redirect_url="https://example.com/facebook",
        created_at=datetime.now(timezone.utc) - timedelta(minutes=10),
    )

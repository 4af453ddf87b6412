"""S3-compatible object storage for uploaded video files"""
import asyncio
import logging
import os
from functools import partial
from typing import Any, BinaryIO, Optional
from urllib.parse import quote

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

import config
from api.errors import ObjectStoreError, UploadTooLargeError
from api.video_store import generate_token

logger = logging.getLogger(__name__)


def _encode_object_key_for_url(object_key: str) -> str:
    """URL-encode each path segment of an object key, keeping the slashes."""
    if not object_key:
        return ""
    return "/".join(quote(segment, safe="") for segment in object_key.split("/"))


class SizeLimitedReader:
    """
    File-like wrapper that refuses to read past max_size bytes.

    boto3 pulls the upload through read() in part-sized chunks, so the limit
    is enforced while streaming and the file is never buffered whole.
    """

    def __init__(self, fileobj: BinaryIO, max_size: int):
        self._fileobj = fileobj
        self.max_size = max_size
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._fileobj.read(size)
        self.bytes_read += len(chunk)
        if self.bytes_read > self.max_size:
            raise UploadTooLargeError(self.max_size)
        return chunk


class ObjectStore:
    """Stores video files in one bucket under a fixed key prefix."""

    def __init__(
        self,
        bucket: str,
        client: Any = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        key_prefix: str = "videos/",
        multipart_chunksize: int = 10 * 1024 * 1024,
        max_concurrency: int = 5,
    ):
        if not bucket:
            raise ValueError("S3 bucket is not set. Set the AWS_S3_BUCKET environment variable.")

        self.bucket = bucket
        self.key_prefix = key_prefix
        self.public_base_url = (public_base_url or f"https://{bucket}.s3.amazonaws.com").rstrip("/")
        self.transfer_config = TransferConfig(
            multipart_chunksize=multipart_chunksize,
            max_concurrency=max_concurrency,
        )

        if client is None:
            client = boto3.client(
                "s3",
                region_name=region or None,
                endpoint_url=endpoint_url or None,
                aws_access_key_id=access_key_id or None,
                aws_secret_access_key=secret_access_key or None,
                config=Config(signature_version="s3v4"),
            )
        self.s3_client = client
        logger.info(f"ObjectStore initialized for bucket: {self.bucket}")

    @classmethod
    def from_config(cls) -> "ObjectStore":
        return cls(
            bucket=config.S3_BUCKET,
            region=config.AWS_REGION,
            access_key_id=config.AWS_ACCESS_KEY_ID,
            secret_access_key=config.AWS_SECRET_ACCESS_KEY,
            endpoint_url=config.S3_ENDPOINT_URL,
            public_base_url=config.S3_PUBLIC_BASE_URL,
            key_prefix=config.S3_KEY_PREFIX,
            multipart_chunksize=config.S3_MULTIPART_CHUNK_SIZE,
            max_concurrency=config.S3_MAX_CONCURRENCY,
        )

    def generate_key(self, original_filename: Optional[str]) -> str:
        """
        Build a fresh object key: <prefix><random token><extension>.

        The extension is taken from the client's filename and lower-cased; the
        rest of the client's filename never reaches the key.
        """
        ext = os.path.splitext(original_filename or "")[1].lower()
        return f"{self.key_prefix}{generate_token()}{ext}"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{_encode_object_key_for_url(key)}"

    def _upload_sync(self, fileobj: BinaryIO, key: str, content_type: Optional[str], max_size: int) -> int:
        reader = SizeLimitedReader(fileobj, max_size)
        extra_args = {"ContentType": content_type} if content_type else None
        try:
            self.s3_client.upload_fileobj(
                reader,
                self.bucket,
                key,
                ExtraArgs=extra_args,
                Config=self.transfer_config,
            )
        except (ClientError, BotoCoreError) as e:
            raise ObjectStoreError(f"Failed to upload {key}: {e}", key=key) from e
        return reader.bytes_read

    async def upload(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: Optional[str] = None,
        max_size: int = config.MAX_UPLOAD_SIZE,
    ) -> int:
        """
        Stream a file object to the bucket under `key`.

        Returns the number of bytes written. Raises UploadTooLargeError once
        more than max_size bytes have been read (the multipart upload is
        aborted by boto3) and ObjectStoreError for storage failures.
        """
        loop = asyncio.get_running_loop()
        size = await loop.run_in_executor(
            None, partial(self._upload_sync, fileobj, key, content_type, max_size)
        )
        logger.info(f"Uploaded {key} to bucket {self.bucket} ({size} bytes)")
        return size

    def _delete_sync(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStoreError(f"Failed to delete {key}: {e}", key=key) from e

    async def delete(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._delete_sync, key)
        logger.info(f"Deleted {key} from bucket {self.bucket}")

    def _check_available_sync(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.warning(f"Bucket {self.bucket} is not accessible ({error_code})")
            return False
        except BotoCoreError as e:
            logger.warning(f"Object store probe failed: {e}")
            return False

    async def check_available(self) -> bool:
        """Probe the bucket with HEAD; False when unreachable or forbidden."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._check_available_sync)

"""Remote backend that publishes release files to an S3 bucket."""

import logging
import mimetypes
import time
from typing import BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from plugin_release.config_manager import ReleaseConfig
from plugin_release.errors import NetworkError, RemoteIOError
from plugin_release.remote_backends.base import RemoteBackend

logger = logging.getLogger(__name__)

MAX_RETRIES = 3

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def object_key(remote_path: str) -> str:
    """S3 keys carry no leading slash."""
    return remote_path.lstrip("/")


def content_type_for(remote_path: str) -> str:
    content_type, _ = mimetypes.guess_type(remote_path)
    if content_type is None:
        if remote_path.endswith(".zip"):
            content_type = "application/zip"
        elif remote_path.endswith(".json"):
            content_type = "application/json"
        else:
            content_type = "application/octet-stream"
    return content_type


class S3Backend(RemoteBackend):
    """Stores release files as objects under the configured key prefix."""

    name = "s3"

    def __init__(self, config: ReleaseConfig):
        """Initialize the backend.

        Args:
            config: Settings providing the bucket and region
        """
        self.bucket_name = config.s3_bucket
        self.region = config.aws_region
        self.s3_client = None

    def connect(self) -> None:
        try:
            self.s3_client = boto3.client("s3", region_name=self.region)
        except BotoCoreError as e:
            raise NetworkError(f"Failed to create S3 client: {e}") from e
        logger.info(f"Initialized S3 backend for bucket: {self.bucket_name}")

    def _require_client(self):
        if self.s3_client is None:
            raise NetworkError("S3 backend is not connected")
        return self.s3_client

    def stat(self, remote_path: str) -> float | None:
        client = self._require_client()
        key = object_key(remote_path)
        try:
            response = client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            error_code = str(e.response.get("Error", {}).get("Code", "Unknown"))
            if error_code in _NOT_FOUND_CODES:
                return None
            raise RemoteIOError(
                f"Failed to stat s3://{self.bucket_name}/{key}: {error_code}", path=remote_path
            ) from e
        except BotoCoreError as e:
            raise NetworkError(f"Failed to stat s3://{self.bucket_name}/{key}: {e}") from e

        last_modified = response.get("LastModified")
        if last_modified is None:
            return None
        return last_modified.timestamp()

    def put(self, remote_path: str, stream: BinaryIO) -> int:
        """Upload the stream with retry logic.

        Raises:
            RemoteIOError: If all upload attempts fail
        """
        client = self._require_client()
        key = object_key(remote_path)
        start = stream.tell() if stream.seekable() else None

        for attempt in range(MAX_RETRIES):
            try:
                logger.debug(
                    f"Uploading to s3://{self.bucket_name}/{key} (attempt {attempt + 1})"
                )
                if start is not None:
                    stream.seek(start)
                client.upload_fileobj(
                    stream,
                    self.bucket_name,
                    key,
                    ExtraArgs={"ContentType": content_type_for(remote_path)},
                )
                size = stream.tell() - start if start is not None else 0
                logger.debug(f"Successfully uploaded {key}")
                return size

            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Upload attempt {attempt + 1} failed for {key}: {e}")

                if attempt == MAX_RETRIES - 1 or start is None:
                    logger.error(f"All upload attempts failed for {key}")
                    raise RemoteIOError(
                        f"Upload to s3://{self.bucket_name}/{key} failed: {e}",
                        path=remote_path,
                    ) from e

                # Exponential backoff
                time.sleep(2**attempt)

        return 0

    def make_dirs(self, remote_dir: str) -> None:
        # Object storage has no directories
        logger.debug(f"No directory creation needed for prefix {object_key(remote_dir)}")

    def close(self) -> None:
        self.s3_client = None

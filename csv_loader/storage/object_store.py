"""
S3 object store access for source files and error reports.
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from csv_loader.core.errors import RetrievalError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 8192


class BlobStore(Protocol):
    """Minimal blob storage contract used by the pipeline."""

    def get_object(self, bucket: str, key: str) -> BinaryIO: ...

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None: ...


class ObjectStore:
    """
    Thin wrapper around a boto3 S3 client.
    """

    def __init__(self, region: str, client=None):
        """
        Initialize object store.

        Args:
            region: AWS region of the bucket
            client: Pre-built S3 client (default: boto3 client for the region)
        """
        self.region = region
        self.client = client or boto3.client("s3", region_name=region)

    def get_object(self, bucket: str, key: str) -> BinaryIO:
        """
        Open an object for reading.

        Returns:
            Streaming body; the caller drains and closes it
        """
        response = self.client.get_object(Bucket=bucket, Key=key)
        return response["Body"]

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Upload bytes as one object."""
        self.client.put_object(
            Bucket=bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ContentLength=len(body),
        )


@contextmanager
def downloaded_object(store: BlobStore, bucket: str, key: str) -> Iterator[Path]:
    """
    Stream an object into a temporary file for the duration of the block.

    The source stream is closed and the temporary file deleted whether the
    block succeeds or not.

    Args:
        store: Blob store to read from
        bucket: Source bucket
        key: Source object key

    Yields:
        Path of the local copy

    Raises:
        RetrievalError: If the object cannot be fetched or written locally
    """
    fd, name = tempfile.mkstemp(prefix="s3-processor-", suffix="-temp")
    path = Path(name)
    try:
        try:
            body = store.get_object(bucket, key)
            try:
                with os.fdopen(fd, "wb") as out:
                    fd = None
                    while True:
                        data = body.read(DOWNLOAD_CHUNK_SIZE)
                        if not data:
                            break
                        out.write(data)
            finally:
                body.close()
        except (ClientError, BotoCoreError, OSError) as e:
            raise RetrievalError(
                f"Failed to retrieve s3://{bucket}/{key}: {e}",
                cause=e,
            ) from e

        logger.info(
            "Downloaded source object",
            extra={"bucket": bucket, "key": key, "size_bytes": path.stat().st_size},
        )
        yield path
    finally:
        if fd is not None:
            os.close(fd)
        path.unlink(missing_ok=True)

"""
BlobStore — async S3/MinIO access addressed by ``{container}/{key}`` paths.

Workflow envelopes carry object locations as a single string whose first
segment is the bucket (container).  This module splits those paths and
wraps the handful of S3 calls the steps need.  Buckets are created on
first write and remembered per process.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote, urlencode

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from docflow.core.constants import JSON_CONTENT_TYPE
from docflow.core.logging import get_logger
from docflow.pipeline.errors import StorageError

logger = get_logger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}

DEFAULT_CHUNK_SIZE = 1024 * 1024


def split_path(path: str) -> tuple[str, str]:
    """``"input/a/b.pdf"`` → ``("input", "a/b.pdf")``."""
    container, _, key = path.strip().lstrip("/").partition("/")
    if not container or not key:
        raise StorageError(f"Invalid object path '{path}': expected '<container>/<key>'")
    return container, key


def _encode_metadata(metadata: Mapping[str, Any] | None) -> dict[str, str]:
    # S3 user metadata travels in HTTP headers: ASCII only.
    return {
        str(k): quote(str(v), safe=" -_.,:/=@")
        for k, v in (metadata or {}).items()
    }


def _decode_metadata(metadata: Mapping[str, str] | None) -> dict[str, str]:
    return {str(k): unquote(str(v)) for k, v in (metadata or {}).items()}


@dataclass
class ObjectStream:
    """An open object body: its size when the store reports one, and its chunks."""

    content_length: int | None
    chunks: AsyncIterator[bytes]


class BlobStore:
    """Thin async wrapper over an aioboto3 S3 client."""

    def __init__(
        self,
        endpoint_url: str | None,
        access_key: str | None,
        secret_key: str | None,
        region: str = "us-east-1",
        session: aioboto3.Session | None = None,
    ) -> None:
        self._endpoint_url = endpoint_url or None
        self._access_key = access_key or None
        self._secret_key = secret_key or None
        self._region = region
        self._session = session or aioboto3.Session()
        self._known_containers: set[str] = set()
        self._container_lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _client(self):
        return self._session.client(
            "s3",
            endpoint_url=self._endpoint_url,
            aws_access_key_id=self._access_key,
            aws_secret_access_key=self._secret_key,
            region_name=self._region,
        )

    def _lock(self) -> asyncio.Lock:
        # Celery tasks run each message in a fresh event loop.
        loop = asyncio.get_running_loop()
        if self._container_lock is None or self._lock_loop is not loop:
            self._container_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._container_lock

    # ─── Containers ────────────────────────────────────

    async def ensure_container(self, container: str) -> None:
        """Create ``container`` if it does not exist yet."""
        if container in self._known_containers:
            return

        async with self._lock():
            if container in self._known_containers:
                return
            async with self._client() as s3:
                try:
                    await s3.head_bucket(Bucket=container)
                except ClientError as e:
                    if e.response.get("Error", {}).get("Code") not in _NOT_FOUND_CODES:
                        raise StorageError(
                            f"Cannot access container '{container}': {e}"
                        ) from e
                    logger.info("Container does not exist, creating", container=container)
                    try:
                        await s3.create_bucket(Bucket=container)
                    except ClientError as create_err:
                        code = create_err.response.get("Error", {}).get("Code")
                        if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                            raise StorageError(
                                f"Cannot create container '{container}': {create_err}"
                            ) from create_err
            self._known_containers.add(container)

    # ─── Reads ─────────────────────────────────────────

    async def read_bytes(self, path: str) -> bytes:
        container, key = split_path(path)
        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=container, Key=key)
                return await response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to read '{path}': {e}") from e

    @asynccontextmanager
    async def open_stream(
        self,
        path: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> AsyncIterator[ObjectStream]:
        """
        Open an object for chunked reading.

        The body is only valid inside the ``async with`` block; the S3
        connection is released when it exits.
        """
        container, key = split_path(path)
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=container, Key=key)
            except (ClientError, BotoCoreError) as e:
                raise StorageError(f"Failed to read '{path}': {e}") from e
            yield ObjectStream(
                content_length=response.get("ContentLength"),
                chunks=_iter_chunks(path, response["Body"], chunk_size),
            )

    async def read_text(self, path: str, encoding: str = "utf-8") -> str:
        data = await self.read_bytes(path)
        return data.decode(encoding, errors="replace").lstrip("\ufeff")

    async def get_metadata(self, path: str) -> dict[str, str]:
        """User metadata of an object (keys as returned by the store)."""
        container, key = split_path(path)
        try:
            async with self._client() as s3:
                response = await s3.head_object(Bucket=container, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to read metadata of '{path}': {e}") from e
        return _decode_metadata(response.get("Metadata"))

    async def get_tags(self, path: str) -> dict[str, str]:
        container, key = split_path(path)
        try:
            async with self._client() as s3:
                response = await s3.get_object_tagging(Bucket=container, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to read tags of '{path}': {e}") from e
        return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}

    # ─── Writes ────────────────────────────────────────

    async def write_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: Mapping[str, Any] | None = None,
        tags: Mapping[str, Any] | None = None,
    ) -> str:
        """Write (overwrite) an object.  Returns ``path``."""
        container, key = split_path(path)
        await self.ensure_container(container)

        kwargs: dict[str, Any] = {
            "Bucket": container,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if metadata:
            kwargs["Metadata"] = _encode_metadata(metadata)
        if tags:
            kwargs["Tagging"] = urlencode({str(k): str(v) for k, v in tags.items()})

        try:
            async with self._client() as s3:
                await s3.put_object(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to write '{path}': {e}") from e

        logger.debug("Object written", path=path, size=len(data), content_type=content_type)
        return path

    async def write_json(self, path: str, document: Any) -> str:
        body = json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")
        return await self.write_bytes(path, body, content_type=JSON_CONTENT_TYPE)


async def _iter_chunks(path: str, body: Any, chunk_size: int) -> AsyncIterator[bytes]:
    try:
        async for chunk in body.iter_chunks(chunk_size):
            yield chunk
    except (ClientError, BotoCoreError) as e:
        raise StorageError(f"Failed to read '{path}': {e}") from e

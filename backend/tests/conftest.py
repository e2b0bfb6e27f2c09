"""Shared fixtures: in-memory transport and object store, wired workflow parts."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import pytest

from docflow.core.constants import ALERT_TASK_NAME
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.controller import WorkflowController
from docflow.pipeline.errors import StorageError
from docflow.pipeline.routing import QueueRouter, WorkflowConfig
from docflow.storage.blob_store import ObjectStream, split_path


@dataclass
class SentMessage:
    queue: str
    task_name: str
    payload: str
    delay_seconds: int = 0

    def json(self) -> Any:
        return json.loads(self.payload)


class FakeTransport:
    """Records every send instead of talking to a broker."""

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self.fail_with: Exception | None = None
        self.failing_queues: dict[str, Exception] = {}

    def send(self, queue: str, task_name: str, payload: str, delay_seconds: int = 0) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        if queue in self.failing_queues:
            raise self.failing_queues[queue]
        self.sent.append(SentMessage(queue, task_name, payload, delay_seconds))
        return f"task-{len(self.sent)}"

    def ensure_queue(self, queue: str) -> None:
        return None

    @property
    def alerts(self) -> list[dict[str, Any]]:
        return [m.json() for m in self.sent if m.task_name == ALERT_TASK_NAME]

    @property
    def dispatched(self) -> list[SentMessage]:
        return [m for m in self.sent if m.task_name != ALERT_TASK_NAME]


@dataclass
class StoredObject:
    data: bytes
    content_type: str = "application/octet-stream"
    metadata: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)


class InMemoryBlobStore:
    """Dict-backed stand-in for BlobStore with the same async surface."""

    def __init__(self) -> None:
        self.objects: dict[str, StoredObject] = {}
        self.unavailable = False

    def put(
        self,
        path: str,
        data: bytes | str,
        metadata: Mapping[str, str] | None = None,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.objects[path] = StoredObject(data, metadata=dict(metadata or {}), tags=dict(tags or {}))

    def _get(self, path: str) -> StoredObject:
        split_path(path)
        if self.unavailable:
            raise StorageError("object store unavailable")
        try:
            return self.objects[path]
        except KeyError:
            raise StorageError(f"Failed to read '{path}': NoSuchKey") from None

    def json(self, path: str) -> Any:
        return json.loads(self.objects[path].data)

    async def read_bytes(self, path: str) -> bytes:
        return self._get(path).data

    @asynccontextmanager
    async def open_stream(self, path: str, chunk_size: int = 4) -> AsyncIterator[ObjectStream]:
        data = self._get(path).data

        async def chunks() -> AsyncIterator[bytes]:
            for start in range(0, len(data), chunk_size):
                yield data[start:start + chunk_size]

        yield ObjectStream(len(data), chunks())

    async def read_text(self, path: str, encoding: str = "utf-8") -> str:
        return self._get(path).data.decode(encoding)

    async def get_metadata(self, path: str) -> dict[str, str]:
        return dict(self._get(path).metadata)

    async def get_tags(self, path: str) -> dict[str, str]:
        return dict(self._get(path).tags)

    async def write_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: Mapping[str, Any] | None = None,
        tags: Mapping[str, Any] | None = None,
    ) -> str:
        split_path(path)
        self.objects[path] = StoredObject(
            data,
            content_type=content_type,
            metadata={k: str(v) for k, v in (metadata or {}).items()},
            tags={k: str(v) for k, v in (tags or {}).items()},
        )
        return path

    async def write_json(self, path: str, document: Any) -> str:
        body = json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")
        return await self.write_bytes(path, body, content_type="application/json")


@pytest.fixture
def config() -> WorkflowConfig:
    return WorkflowConfig()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def alerts(transport, config) -> AlertPublisher:
    return AlertPublisher(transport, config.alert_queue)


@pytest.fixture
def router(config, transport, alerts) -> QueueRouter:
    return QueueRouter(config, transport, alerts)


@pytest.fixture
def controller(router, alerts) -> WorkflowController:
    return WorkflowController(router, alerts)

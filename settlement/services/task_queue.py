"""Fire-and-forget background work on Redis lists.

The API enqueues and returns; ``settlement.worker`` drains the queues.
The only producer today is AccountService, which hands the raw
password-reset / verify-email token to the ``email_delivery`` queue so
that it never appears in an HTTP response.

Tasks are LPUSHed at the head and BRPOPed from the tail (FIFO).  A
worker that dies mid-task loses it.  For email links that is fine: the
user asks again and the new token supersedes the old one.
"""

from __future__ import annotations

import json
import uuid
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Protocol, runtime_checkable

from settlement.core.metrics import QUEUE_DEPTH
from settlement.db.redis import redis_pool

EMAIL_DELIVERY_QUEUE = "email_delivery"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    queue: str
    payload: dict[str, Any]

    @staticmethod
    def new(queue: str, payload: dict[str, Any]) -> Task:
        return Task(id=uuid.uuid4().hex, queue=queue, payload=payload)

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @staticmethod
    def from_json(raw: str | bytes) -> Task:
        data = json.loads(raw)
        return Task(id=data["id"], queue=data["queue"], payload=data["payload"])


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict[str, Any]) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """Process-local queues; ``dequeue`` never blocks."""

    def __init__(self) -> None:
        self._lists: dict[str, deque[Task]] = {}

    async def enqueue(self, queue: str, payload: dict[str, Any]) -> Task:
        task = Task.new(queue, payload)
        pending = self._lists.setdefault(queue, deque())
        pending.append(task)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(pending))
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        pending = self._lists.get(queue)
        if not pending:
            return None
        task = pending.popleft()
        QUEUE_DEPTH.labels(queue_name=queue).set(len(pending))
        return task

    async def queue_length(self, queue: str) -> int:
        return len(self._lists.get(queue, ()))

    def clear(self) -> None:
        self._lists.clear()


def _list_key(queue: str) -> str:
    return f"tasks:{queue}"


class RedisTaskQueue:
    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, payload: dict[str, Any]) -> Task:
        task = Task.new(queue, payload)
        depth = await self._redis.lpush(_list_key(queue), task.to_json())
        QUEUE_DEPTH.labels(queue_name=queue).set(depth)
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        popped = await self._redis.brpop(_list_key(queue), timeout=timeout)
        if popped is None:
            return None
        QUEUE_DEPTH.labels(queue_name=queue).set(await self.queue_length(queue))
        return Task.from_json(popped[1])

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(_list_key(queue))


task_queue: TaskQueue = (
    RedisTaskQueue(redis_pool) if redis_pool is not None else InMemoryTaskQueue()
)

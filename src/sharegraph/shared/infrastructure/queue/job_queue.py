"""
Background job queues.

A queue carries ``(job_name, payload)`` pairs where the payload is a JSON
object. The share service treats the queue as optional: when none is
configured, jobs run synchronously in the request path.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from ...config.settings import get_settings
from ...exceptions import ConfigurationError
from ..monitoring import get_logger

try:
    import redis.asyncio as aioredis
    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False

Job = Tuple[str, Dict[str, Any]]


class JobQueue(ABC):
    """Abstract FIFO job queue."""

    @abstractmethod
    async def enqueue(self, job_name: str, payload: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def dequeue(self, timeout: Optional[float] = None) -> Optional[Job]:
        """
        Wait for the next job; returns None when ``timeout`` elapses.

        A non-positive timeout polls without waiting.
        """
        pass

    async def close(self) -> None:
        pass


class InMemoryJobQueue(JobQueue):
    """Process-local queue backed by ``asyncio.Queue``."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self._queue: 'asyncio.Queue[Job]' = asyncio.Queue()

    async def enqueue(self, job_name: str, payload: Dict[str, Any]) -> None:
        # Round-trip through JSON so payloads behave as they would on Redis
        await self._queue.put((job_name, json.loads(json.dumps(payload))))
        self.logger.debug(f"Enqueued job {job_name}")

    async def dequeue(self, timeout: Optional[float] = None) -> Optional[Job]:
        if timeout is not None and timeout <= 0:
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return None
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()


class RedisJobQueue(JobQueue):
    """
    Redis list-backed queue.

    Jobs are pushed with LPUSH and popped with BRPOP, so several workers can
    consume one queue.
    """

    def __init__(self, redis_url: Optional[str] = None, queue_name: Optional[str] = None):
        if not REDIS_AVAILABLE:
            raise ConfigurationError("redis package is required for RedisJobQueue")

        settings = get_settings()
        redis_url = redis_url or settings.redis_url
        if not redis_url:
            raise ConfigurationError("redis_url must be set to use RedisJobQueue")

        self.logger = get_logger(__name__)
        self.key = f"sharegraph:queue:{queue_name or settings.share_queue_name}"
        self.client = aioredis.from_url(redis_url, decode_responses=True)

    async def enqueue(self, job_name: str, payload: Dict[str, Any]) -> None:
        await self.client.lpush(self.key, json.dumps({'name': job_name, 'payload': payload}))
        self.logger.debug(f"Enqueued job {job_name} on {self.key}")

    async def dequeue(self, timeout: Optional[float] = None) -> Optional[Job]:
        if timeout is not None and timeout <= 0:
            raw = await self.client.rpop(self.key)
        else:
            item = await self.client.brpop([self.key], timeout=timeout or 0)
            raw = item[1] if item else None
        if raw is None:
            return None
        message = json.loads(raw)
        return message['name'], message['payload']

    async def close(self) -> None:
        await self.client.aclose()


def create_job_queue() -> Optional[JobQueue]:
    """
    Build the configured job queue.

    Returns:
        A RedisJobQueue when ``redis_url`` is set, otherwise None
    """
    if get_settings().redis_url:
        return RedisJobQueue()
    return None

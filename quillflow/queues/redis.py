"""Redis job queue for cross-process workers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import socket
import time
import uuid
from typing import Any, AsyncIterator, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..contracts import ContentJob
from .base import BaseJobQueue

logger = logging.getLogger(__name__)


def default_consumer_name() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class RedisJobQueue(BaseJobQueue[str]):
    """Redis-backed queue with reliable delivery.

    Jobs wait in a list and are atomically moved to a per-consumer
    processing list on delivery. Every consumer keeps a lease key alive
    while connected; processing lists whose lease has expired belong to a
    crashed consumer and are recovered by the surviving consumers.
    Delayed jobs sit in a sorted set scored by their due time and are
    promoted as they come due.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        consumer_name: Optional[str] = None,
        lease_ttl: float = 30.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.consumer_name = consumer_name or default_consumer_name()
        self.lease_ttl = lease_ttl
        self._redis: Optional[Any] = None
        self._heartbeat: Optional[asyncio.Task] = None

    @property
    def pending_key(self) -> str:
        return f"quillflow:{self.name}:pending"

    def processing_key_for(self, consumer: str) -> str:
        return f"quillflow:{self.name}:processing:{consumer}"

    def lease_key_for(self, consumer: str) -> str:
        return f"quillflow:{self.name}:lease:{consumer}"

    @property
    def processing_key(self) -> str:
        return self.processing_key_for(self.consumer_name)

    @property
    def lease_key(self) -> str:
        return self.lease_key_for(self.consumer_name)

    @property
    def consumers_key(self) -> str:
        return f"quillflow:{self.name}:consumers"

    @property
    def delayed_key(self) -> str:
        return f"quillflow:{self.name}:delayed"

    @property
    def dead_key(self) -> str:
        return f"quillflow:{self.name}:dead"

    async def connect(self) -> None:
        """Connect, take a lease, and requeue jobs held by expired consumers."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()
        own_list_stale = not await self._redis.exists(self.lease_key)
        await self.renew_lease()
        await self.recover_inflight(include_own=own_list_stale)
        self._heartbeat = asyncio.create_task(self._keep_lease())

    async def disconnect(self) -> None:
        if self._heartbeat:
            self._heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat
            self._heartbeat = None
        if self._redis:
            # Unacked jobs stay in the processing list for another consumer
            # to recover once the lease is gone.
            await self._redis.delete(self.lease_key)
            if not await self._redis.llen(self.processing_key):
                await self._redis.srem(self.consumers_key, self.consumer_name)
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    async def renew_lease(self) -> None:
        client = self._redis
        await client.sadd(self.consumers_key, self.consumer_name)
        await client.set(self.lease_key, "1", px=int(self.lease_ttl * 1000))

    async def _keep_lease(self) -> None:
        while True:
            await asyncio.sleep(self.lease_ttl / 3)
            try:
                await self.renew_lease()
                await self.recover_inflight()
            except RedisError as e:
                logger.warning(f"Lease upkeep for {self.consumer_name} on {self.name} failed: {e}")

    async def _requeue(self, client: Any, payload: str) -> bool:
        try:
            job = ContentJob.from_json(payload)
        except ValidationError as e:
            logger.error(f"Dead-lettering unparseable in-flight job on {self.name}: {e}")
            await client.lpush(self.dead_key, payload)
            return False
        if job.exhausted:
            await self.dead_letter(job, "worker stopped while processing")
            return False
        await client.rpush(self.pending_key, job.bump_attempt().to_json())
        return True

    async def _drain_own(self, client: Any) -> int:
        recovered = 0
        while True:
            payload = await client.lindex(self.processing_key, -1)
            if payload is None:
                return recovered
            recovered += await self._requeue(client, payload)
            await client.lrem(self.processing_key, -1, payload)

    async def _drain_expired(self, client: Any, consumer: str) -> int:
        source = self.processing_key_for(consumer)
        recovered = 0
        while True:
            # LMOVE hands each job to exactly one recovering consumer.
            payload = await client.lmove(source, self.processing_key, "RIGHT", "LEFT")
            if payload is None:
                break
            recovered += await self._requeue(client, payload)
            await client.lrem(self.processing_key, 1, payload)
        await client.srem(self.consumers_key, consumer)
        return recovered

    async def recover_inflight(self, include_own: bool = False) -> int:
        """Requeue deliveries held by consumers whose lease has expired.

        ``include_own`` also recovers this consumer's own processing list,
        for a named consumer restarting after a crash. Each recovered job
        counts as a new attempt; exhausted jobs are dead-lettered instead.
        """
        client = await self._client()
        recovered = 0
        if include_own:
            recovered += await self._drain_own(client)
        for consumer in await client.smembers(self.consumers_key):
            if consumer == self.consumer_name:
                continue
            if await client.exists(self.lease_key_for(consumer)):
                continue
            recovered += await self._drain_expired(client, consumer)
        if recovered:
            logger.warning(f"Recovered {recovered} in-flight job(s) on {self.name}")
        return recovered

    async def publish(self, job: ContentJob, delay: float = 0.0) -> None:
        client = await self._client()
        payload = job.to_json()
        if delay > 0:
            await client.zadd(self.delayed_key, {payload: time.time() + delay})
        else:
            await client.lpush(self.pending_key, payload)

    async def promote_due(self) -> int:
        """Move delayed jobs whose due time has passed onto the pending list."""
        client = await self._client()
        due = await client.zrangebyscore(self.delayed_key, 0, time.time())
        promoted = 0
        for payload in due:
            # Only the consumer that wins the ZREM pushes the job.
            if await client.zrem(self.delayed_key, payload):
                await client.lpush(self.pending_key, payload)
                promoted += 1
        return promoted

    async def subscribe(
        self, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[str, ContentJob]]:
        client = await self._client()
        start_time = asyncio.get_running_loop().time()

        while True:
            if lifespan is not None:
                elapsed = asyncio.get_running_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            await self.promote_due()
            payload = await client.blmove(
                self.pending_key, self.processing_key, 1, "RIGHT", "LEFT"
            )
            if not payload:
                continue

            try:
                job = ContentJob.from_json(payload)
            except ValidationError as e:
                logger.error(f"Failed to parse job on {self.name}: {e}")
                await client.lrem(self.processing_key, 1, payload)
                await client.lpush(self.dead_key, payload)
                continue
            yield payload, job

    async def ack(self, raw_job: str) -> None:
        client = await self._client()
        await client.lrem(self.processing_key, 1, raw_job)

    async def dead_letter(self, job: ContentJob, reason: str) -> None:
        client = await self._client()
        await client.lpush(self.dead_key, job.to_json())
        logger.info(f"Dead-lettered job {job.job_id} on {self.name}: {reason}")

    async def pending_count(self) -> int:
        client = await self._client()
        return await client.llen(self.pending_key) + await client.zcard(self.delayed_key)

"""In-memory job queue for tests and single-process runs."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Tuple

from ..contracts import ContentJob
from .base import BaseJobQueue


class InMemoryJobQueue(BaseJobQueue[str]):
    """Simple in-process queue honoring delivery delays."""

    def __init__(self, *args, poll_interval: float = 0.05, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.poll_interval = poll_interval
        self._ready: List[Tuple[float, int, ContentJob]] = []
        self._sequence = 0
        self._inflight: dict[str, ContentJob] = {}
        self.dead_letters: List[Tuple[ContentJob, str]] = []
        self._lock = asyncio.Lock()

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    async def publish(self, job: ContentJob, delay: float = 0.0) -> None:
        async with self._lock:
            self._sequence += 1
            self._ready.append((self._now() + max(delay, 0.0), self._sequence, job))
            self._ready.sort(key=lambda item: (item[0], item[1]))

    def jobs(self) -> List[ContentJob]:
        """Return queued (not yet delivered) jobs in delivery order."""
        return [job for _, _, job in self._ready]

    def inflight(self) -> List[ContentJob]:
        """Return delivered jobs that have not been acknowledged."""
        return list(self._inflight.values())

    async def _pop_ready(self) -> Optional[ContentJob]:
        async with self._lock:
            if self._ready and self._ready[0][0] <= self._now():
                _, _, job = self._ready.pop(0)
                self._inflight[job.to_json()] = job
                return job
        return None

    async def subscribe(
        self, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[str, ContentJob]]:
        start_time = self._now()
        while True:
            if lifespan is not None and self._now() - start_time >= lifespan:
                break
            job = await self._pop_ready()
            if job is None:
                await asyncio.sleep(self.poll_interval)
                continue
            yield job.to_json(), job

    async def ack(self, raw_job: str) -> None:
        self._inflight.pop(raw_job, None)

    async def dead_letter(self, job: ContentJob, reason: str) -> None:
        self.dead_letters.append((job, reason))

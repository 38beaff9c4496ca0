"""Scheduler that promotes due content requests onto the job queue."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence

from .constants import (
    DEFAULT_BULK_INTERVAL_HOURS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SCHEDULER_BATCH,
    QUEUE_STATUS_LIMIT,
    RECURRING_DEFAULT_COUNT,
    RequestStatus,
)
from .persistence.models import RequestRecord, ScheduleEntry
from .persistence.repository import ContentRepository
from .queues.base import BaseJobQueue
from .recurrence import Frequency, generate_recurring_dates, render_title
from .utils.clock import utcnow

logger = logging.getLogger(__name__)


class ContentScheduler:
    """Periodic poller plus the content-creation entry points.

    Each tick materializes due recurring schedule entries into pending
    requests, then enqueues a bounded batch of due pending requests.
    """

    def __init__(
        self,
        repository: ContentRepository,
        queue: BaseJobQueue,
        batch_size: int = DEFAULT_SCHEDULER_BATCH,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._repository = repository
        self._queue = queue
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self._stop = asyncio.Event()

    async def poll_once(self, now: Optional[datetime] = None) -> List[str]:
        """Enqueue due pending requests and return the new job ids."""
        now = now or utcnow()
        due = await self._repository.due_requests(now, self.batch_size)
        if not due:
            return []

        logger.info(f"[Scheduler] Found {len(due)} items to process")
        job_ids = []
        for record in due:
            try:
                job_id = await self._queue.enqueue(record.id, record.tenant_id, record.title)
                if not await self._repository.transition_status(
                    record.id, RequestStatus.QUEUED, expected=[RequestStatus.PENDING]
                ):
                    logger.warning(
                        f"[Scheduler] Request {record.id} left pending before it could be marked queued"
                    )
            except Exception as e:
                logger.error(f"[Scheduler] Failed to queue request {record.id}: {e}")
                continue
            job_ids.append(job_id)
            logger.info(f"[Scheduler] Queued: {record.title} for tenant {record.tenant_id}")
        return job_ids

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        now = now or utcnow()
        await self.materialize_schedules(now.date())
        return await self.poll_once(now)

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Poll every ``poll_interval`` seconds until stopped."""
        self._stop.clear()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        logger.info("[Scheduler] Content scheduler started")
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("[Scheduler] Error checking scheduled content")

            timeout = self.poll_interval
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                timeout = min(timeout, remaining)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass
        logger.info("[Scheduler] Content scheduler stopped")

    def stop(self) -> None:
        self._stop.set()

    # ------------------------------------------------------------------
    async def add_content(
        self, tenant_id: int, title: str, scheduled_for: Optional[datetime] = None
    ) -> int:
        record = await self._repository.create_request(tenant_id, title, scheduled_for)
        logger.info(f"[Scheduler] Added content to queue: {title} (ID: {record.id})")
        return record.id

    async def bulk_add_content(
        self,
        tenant_id: int,
        titles: Sequence[str],
        interval_hours: float = DEFAULT_BULK_INTERVAL_HOURS,
        start: Optional[datetime] = None,
    ) -> List[int]:
        """Create one pending request per title, ``interval_hours`` apart."""
        start = start or utcnow()
        ids = [
            await self.add_content(
                tenant_id, title, start + timedelta(hours=index * interval_hours)
            )
            for index, title in enumerate(titles)
        ]
        logger.info(f"[Scheduler] Bulk added {len(ids)} items for tenant {tenant_id}")
        return ids

    async def queue_status(self, tenant_id: int) -> List[RequestRecord]:
        return await self._repository.list_requests(
            tenant_id=tenant_id, limit=QUEUE_STATUS_LIMIT
        )

    async def system_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Request counts by status (7 days) and per-step performance (24 hours)."""
        now = now or utcnow()
        return {
            "queue_stats": await self._repository.status_counts(now - timedelta(days=7)),
            "step_performance": await self._repository.step_performance(
                now - timedelta(hours=24)
            ),
            "timestamp": now,
        }

    # ------------------------------------------------------------------
    async def create_recurring_schedule(
        self,
        tenant_id: int,
        title_template: str,
        frequency: Frequency | str,
        start: date,
        end: Optional[date] = None,
        count: int = RECURRING_DEFAULT_COUNT,
        scheduled_time: time = time(9, 0),
        auto_publish: bool = True,
    ) -> List[ScheduleEntry]:
        dates = generate_recurring_dates(frequency, start, end=end, count=count)
        entries = await self._repository.create_schedule_entries(
            ScheduleEntry(
                tenant_id=tenant_id,
                title=render_title(title_template, n),
                scheduled_date=occurrence,
                scheduled_time=scheduled_time,
                auto_publish=auto_publish,
            )
            for n, occurrence in enumerate(dates, start=1)
        )
        logger.info(
            f"[Scheduler] Created {len(entries)} {Frequency(frequency).value} "
            f"schedule entries for tenant {tenant_id}"
        )
        return entries

    async def materialize_schedules(self, today: Optional[date] = None) -> List[int]:
        """Turn schedule entries dated ``today`` or earlier into pending requests."""
        today = today or utcnow().date()
        created = []
        for entry in await self._repository.due_schedule_entries(today):
            record = await self._repository.materialize_schedule_entry(
                entry.id, datetime.combine(entry.scheduled_date, entry.scheduled_time)
            )
            if record is None:
                continue
            logger.info(f"[Scheduler] Added content to queue: {record.title} (ID: {record.id})")
            created.append(record.id)
        return created

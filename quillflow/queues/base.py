"""Base interface for durable content job queues."""

from __future__ import annotations

import abc
import logging
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..constants import DEFAULT_JOB_ATTEMPTS, DEFAULT_JOB_BACKOFF, DEFAULT_QUEUE_NAME
from ..contracts import ContentJob
from ..utils.retry import compute_backoff

logger = logging.getLogger(__name__)

RawJobT = TypeVar("RawJobT")


class BaseJobQueue(Generic[RawJobT], metaclass=abc.ABCMeta):
    """Abstract at-least-once job queue.

    Subclasses provide delivery (``publish``/``subscribe``/``ack``) and a
    dead-letter sink. Redelivery with exponential backoff is shared: a
    negatively acknowledged job is republished with its attempt counter
    bumped until ``max_attempts`` is reached.
    """

    def __init__(
        self,
        name: str = DEFAULT_QUEUE_NAME,
        max_attempts: int = DEFAULT_JOB_ATTEMPTS,
        backoff_delay: float = DEFAULT_JOB_BACKOFF,
    ) -> None:
        self.name = name
        self.max_attempts = max_attempts
        self.backoff_delay = backoff_delay

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    async def enqueue(
        self,
        request_id: int,
        tenant_id: int,
        title: str,
        resume_hint: Optional[int] = None,
        delay: float = 0.0,
    ) -> str:
        """Create and publish a job for ``request_id``; return its job id."""
        job = ContentJob(
            request_id=request_id,
            tenant_id=tenant_id,
            title=title,
            resume_hint=resume_hint,
            max_attempts=self.max_attempts,
        )
        await self.publish(job, delay=delay)
        logger.info(f"Enqueued job {job.job_id} for request {request_id} on {self.name}")
        return job.job_id

    @abc.abstractmethod
    async def publish(self, job: ContentJob, delay: float = 0.0) -> None:
        """Make ``job`` deliverable after ``delay`` seconds."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(
        self, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawJobT, ContentJob]]:
        """Yield raw delivery and decoded job pairs.

        Args:
            lifespan: Maximum time in seconds to keep consuming. If None, runs indefinitely.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_job: RawJobT) -> None:
        """Acknowledge a delivery so it is never redelivered."""
        raise NotImplementedError

    @abc.abstractmethod
    async def dead_letter(self, job: ContentJob, reason: str) -> None:
        """Park a job that exhausted its attempts."""
        raise NotImplementedError

    def retry_delay(self, job: ContentJob) -> float:
        return compute_backoff(job.attempt, initial=self.backoff_delay)

    async def nack(self, raw_job: RawJobT, job: ContentJob, reason: str) -> bool:
        """Settle a failed delivery; return ``True`` if it will be retried.

        The retry (or dead letter) is written before the delivery is
        acknowledged, so a failed write leaves the delivery unacknowledged.
        """
        if job.exhausted:
            logger.error(
                f"Job {job.job_id} for request {job.request_id} exhausted "
                f"{job.attempt} attempt(s): {reason}"
            )
            await self.dead_letter(job, reason)
            await self.ack(raw_job)
            return False

        delay = self.retry_delay(job)
        logger.warning(
            f"Job {job.job_id} for request {job.request_id} failed on attempt "
            f"{job.attempt}, retrying in {delay:.1f}s: {reason}"
        )
        await self.publish(job.bump_attempt(), delay=delay)
        await self.ack(raw_job)
        return True

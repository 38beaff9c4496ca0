"""Worker that drives content jobs through both pipelines."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .constants import OUTLINE, PUBLISH, REVIEW, RequestStatus
from .contracts import ContentJob, PipelineResult
from .engine import Pipeline
from .persistence.repository import ContentRepository
from .pipelines import PipelineServices, build_drafting_pipeline, build_multimedia_pipeline
from .pipelines.outputs import PublishOutcome, QualityReview
from .queues.base import BaseJobQueue

logger = logging.getLogger(__name__)


class JobOutcome(str, Enum):
    """What processing a single job did to its request."""

    SKIPPED = "skipped"
    FAILED = "failed"
    COMPLETE = "complete"
    DRAFT_READY = "draft_ready"


class ContentWorker:
    """Consumes content jobs one at a time."""

    def __init__(
        self,
        queue: BaseJobQueue,
        repository: ContentRepository,
        drafting: Pipeline,
        multimedia: Pipeline,
    ) -> None:
        self._queue = queue
        self._repository = repository
        self._drafting = drafting
        self._multimedia = multimedia

    @classmethod
    def from_services(cls, queue: BaseJobQueue, services: PipelineServices) -> "ContentWorker":
        return cls(
            queue,
            services.repository,
            build_drafting_pipeline(services),
            build_multimedia_pipeline(services),
        )

    async def _claim(self, job: ContentJob) -> bool:
        expected = [RequestStatus.PENDING, RequestStatus.QUEUED]
        if job.attempt > 1:
            # A redelivered job may find its request still marked processing.
            expected.append(RequestStatus.PROCESSING)
        return await self._repository.transition_status(
            job.request_id, RequestStatus.PROCESSING, expected=expected, current_step=0
        )

    async def _fail(self, job: ContentJob, result: PipelineResult) -> JobOutcome:
        logger.error(
            f"Request {job.request_id} failed in {result.pipeline} pipeline: {result.error}"
        )
        await self._repository.transition_status(job.request_id, RequestStatus.FAILED)
        return JobOutcome.FAILED

    async def process_job(self, job: ContentJob) -> JobOutcome:
        """Run ``job`` through drafting then multimedia and record the outcome."""
        if job.resume_hint:
            logger.info(
                f"Job {job.job_id} carries resume hint {job.resume_hint}; "
                "restarting request from the first step"
            )

        if not await self._claim(job):
            record = await self._repository.get_request(job.request_id)
            status = record.status.value if record else "missing"
            logger.warning(
                f"Skipping job {job.job_id} (attempt {job.attempt}): "
                f"request {job.request_id} is {status}"
            )
            return JobOutcome.SKIPPED

        logger.info(f"Processing request {job.request_id}: {job.title}")
        drafting = await self._drafting.run(
            {"request_id": job.request_id, "tenant_id": job.tenant_id, "title": job.title}
        )
        if not drafting.success:
            return await self._fail(job, drafting)

        review: QualityReview = drafting.context[REVIEW]
        multimedia = await self._multimedia.run(
            {
                "request_id": job.request_id,
                "tenant_id": job.tenant_id,
                "title": job.title,
                "final_content": review.final_draft,
                "content_outline": drafting.context[OUTLINE],
            }
        )
        if not multimedia.success:
            return await self._fail(job, multimedia)

        published: PublishOutcome = multimedia.context[PUBLISH]
        outcome = JobOutcome.COMPLETE if published.deployed else JobOutcome.DRAFT_READY
        await self._repository.transition_status(
            job.request_id,
            RequestStatus(outcome.value),
            published_location=published.published_location,
            text_content=review.final_draft,
            html_content=published.html_content,
        )
        logger.info(f"Request {job.request_id} finished as {outcome.value}")
        return outcome

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Consume jobs until ``lifespan`` seconds elapse (forever when None)."""
        await self._queue.connect()
        async for raw_job, job in self._queue.subscribe(lifespan=lifespan):
            try:
                await self.process_job(job)
            except Exception as e:
                logger.exception(f"Job {job.job_id} for request {job.request_id} crashed")
                await self._queue.nack(raw_job, job, f"{type(e).__name__}: {e}")
                continue
            await self._queue.ack(raw_job)

"""Operator actions on content requests."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .constants import RequestStatus
from .exceptions import InvalidStatusTransition, QuillflowError, RequestNotFound
from .persistence.models import RequestRecord
from .persistence.repository import ContentRepository
from .queues.base import BaseJobQueue
from .utils.clock import utcnow

logger = logging.getLogger(__name__)

PAUSABLE = (RequestStatus.PENDING, RequestStatus.QUEUED, RequestStatus.PROCESSING)
CANCELLABLE = (RequestStatus.PENDING, RequestStatus.QUEUED)


class BulkResult(BaseModel):
    succeeded: List[int] = Field(default_factory=list)
    failed: Dict[int, str] = Field(default_factory=dict)


class ContentOperations:
    """Status transitions requested by an operator.

    Every transition is a compare-and-swap against the statuses the action
    is allowed from, so a request that changed underneath the caller raises
    :class:`InvalidStatusTransition` rather than being overwritten.
    """

    def __init__(self, repository: ContentRepository, queue: BaseJobQueue) -> None:
        self._repository = repository
        self._queue = queue

    async def get(self, request_id: int) -> RequestRecord:
        record = await self._repository.get_request(request_id)
        if record is None:
            raise RequestNotFound(request_id)
        return record

    async def _transition(
        self,
        request_id: int,
        action: str,
        target: RequestStatus,
        allowed: Iterable[RequestStatus],
        **fields: Any,
    ) -> RequestRecord:
        allowed = tuple(allowed)
        record = await self.get(request_id)
        if record.status not in allowed:
            raise InvalidStatusTransition(request_id, record.status.value, action, allowed)
        if not await self._repository.transition_status(
            request_id, target, expected=allowed, **fields
        ):
            current = await self.get(request_id)
            raise InvalidStatusTransition(request_id, current.status.value, action, allowed)
        logger.info(f"Request {request_id}: {action} ({record.status.value} -> {target.value})")
        return await self.get(request_id)

    async def _requeue(self, record: RequestRecord, resume_hint: Optional[int] = None) -> str:
        job_id = await self._queue.enqueue(
            record.id, record.tenant_id, record.title, resume_hint=resume_hint
        )
        await self._repository.transition_status(
            record.id, RequestStatus.QUEUED, expected=[RequestStatus.PENDING]
        )
        return job_id

    async def enqueue_now(self, request_id: int) -> str:
        """Queue a pending request immediately, ignoring its schedule."""
        record = await self._transition(
            request_id,
            "enqueue",
            RequestStatus.PENDING,
            [RequestStatus.PENDING],
            scheduled_for=utcnow(),
        )
        return await self._requeue(record)

    async def pause(self, request_id: int) -> RequestRecord:
        return await self._transition(request_id, "pause", RequestStatus.PAUSED, PAUSABLE)

    async def resume(self, request_id: int) -> str:
        """Re-queue a paused request, passing its current step as a hint."""
        record = await self._transition(
            request_id, "resume", RequestStatus.PENDING, [RequestStatus.PAUSED]
        )
        return await self._requeue(record, resume_hint=record.current_step)

    async def retry_failed(self, request_id: int) -> str:
        record = await self._transition(
            request_id,
            "retry",
            RequestStatus.PENDING,
            [RequestStatus.FAILED],
            current_step=0,
        )
        return await self._requeue(record)

    async def cancel(self, request_id: int) -> RequestRecord:
        return await self._transition(request_id, "cancel", RequestStatus.CANCELLED, CANCELLABLE)

    async def reschedule(self, request_id: int, scheduled_for: datetime) -> RequestRecord:
        return await self._transition(
            request_id,
            "reschedule",
            RequestStatus.PENDING,
            [RequestStatus.PENDING],
            scheduled_for=scheduled_for,
        )

    async def delete(self, request_id: int) -> None:
        record = await self.get(request_id)
        if record.status == RequestStatus.PROCESSING:
            raise InvalidStatusTransition(request_id, record.status.value, "delete")
        await self._repository.delete_request(request_id)
        logger.info(f"Deleted request {request_id}")

    async def _bulk(self, request_ids: Iterable[int], action) -> BulkResult:
        result = BulkResult()
        for request_id in request_ids:
            try:
                await action(request_id)
            except QuillflowError as e:
                result.failed[request_id] = e.message
            else:
                result.succeeded.append(request_id)
        return result

    async def bulk_retry(self, request_ids: Iterable[int]) -> BulkResult:
        return await self._bulk(request_ids, self.retry_failed)

    async def bulk_cancel(self, request_ids: Iterable[int]) -> BulkResult:
        return await self._bulk(request_ids, self.cancel)

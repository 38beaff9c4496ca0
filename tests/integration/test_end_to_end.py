"""Scheduler to worker flow on the in-process queue."""

from datetime import timedelta

import pytest

from quillflow.constants import DIRECTIVE_OUTLINE, RequestStatus
from quillflow.operations import ContentOperations
from quillflow.persistence import SQLContentRepository
from quillflow.queues import InMemoryJobQueue
from quillflow.scheduler import ContentScheduler
from quillflow.utils.clock import utcnow
from quillflow.worker import ContentWorker
from tests.fixtures.collaborators import (
    TENANT_ID,
    UNPUBLISHED_TENANT_ID,
    ScriptedGenerator,
    make_services,
)


@pytest.mark.asyncio
async def test_scheduled_content_is_published(repository):
    queue = InMemoryJobQueue(backoff_delay=0, poll_interval=0.01)
    services = make_services(repository)
    scheduler = ContentScheduler(repository, queue)
    worker = ContentWorker.from_services(queue, services)

    ids = await scheduler.bulk_add_content(
        TENANT_ID, ["Remote Work", "Async Rituals"], interval_hours=0, start=utcnow() - timedelta(minutes=1)
    )
    draft_id = await scheduler.add_content(UNPUBLISHED_TENANT_ID, "Internal Memo")
    assert len(await scheduler.tick()) == 3

    await worker.start(lifespan=1.0)

    statuses = {r.id: r.status for r in await repository.list_requests()}
    assert statuses == {
        ids[0]: RequestStatus.COMPLETE,
        ids[1]: RequestStatus.COMPLETE,
        draft_id: RequestStatus.DRAFT_READY,
    }
    stats = await scheduler.system_stats()
    assert stats["queue_stats"] == {"complete": 2, "draft_ready": 1}
    assert {row["step_name"] for row in stats["step_performance"]} >= {"strategy", "publish"}


@pytest.mark.asyncio
async def test_failed_request_recovers_after_retry(tmp_path):
    repository = SQLContentRepository(f"sqlite:///{tmp_path / 'e2e.db'}")
    queue = InMemoryJobQueue(backoff_delay=0, poll_interval=0.01)
    generator = ScriptedGenerator({DIRECTIVE_OUTLINE: [RuntimeError("down"), RuntimeError("down")]})
    services = make_services(repository, generator=generator)
    scheduler = ContentScheduler(repository, queue)
    worker = ContentWorker.from_services(queue, services)
    ops = ContentOperations(repository, queue)

    request_id = await scheduler.add_content(TENANT_ID, "Remote Work")
    await scheduler.poll_once()
    await worker.start(lifespan=0.5)

    record = await repository.get_request(request_id)
    assert record.status == RequestStatus.FAILED
    assert record.current_step == 3
    assert len(await repository.list_artifacts(request_id, "outline")) == 2

    generator.responses[DIRECTIVE_OUTLINE] = '{"seo_title": "Recovered"}'
    await ops.retry_failed(request_id)
    await worker.start(lifespan=0.5)

    record = await repository.get_request(request_id)
    assert record.status == RequestStatus.COMPLETE
    assert record.current_step == 10
    logs = await repository.list_execution_logs(request_id)
    assert sum(1 for entry in logs if entry.step_name == "strategy") == 2
    _, article = services.publisher.calls[0]
    assert article.title == "Recovered"
    await repository.close()

"""Worker tests."""

import pytest

from quillflow.constants import DIRECTIVE_RESEARCH, DIRECTIVE_STRATEGY, RequestStatus
from quillflow.contracts import ContentJob
from quillflow.exceptions import CollaboratorError
from quillflow.queues import InMemoryJobQueue
from quillflow.worker import ContentWorker, JobOutcome
from tests.fixtures.collaborators import (
    DRAFT_TEXT,
    TENANT_ID,
    UNPUBLISHED_TENANT_ID,
    ScriptedGenerator,
    make_services,
)


async def _queued_job(repository, tenant_id=TENANT_ID, status=RequestStatus.QUEUED, attempt=1):
    record = await repository.create_request(tenant_id, "Remote Work")
    await repository.transition_status(record.id, status)
    return ContentJob(
        request_id=record.id, tenant_id=tenant_id, title=record.title, attempt=attempt
    )


@pytest.mark.asyncio
async def test_process_job_completes_and_publishes(services, queue):
    worker = ContentWorker.from_services(queue, services)
    job = await _queued_job(services.repository)

    assert await worker.process_job(job) == JobOutcome.COMPLETE

    record = await services.repository.get_request(job.request_id)
    assert record.status == RequestStatus.COMPLETE
    assert record.current_step == 10
    assert record.published_location == "https://blog.example.com/p/1"
    assert record.text_content == DRAFT_TEXT
    assert record.html_content == "<h1>Remote Work</h1>[IMAGE_1]"


@pytest.mark.asyncio
async def test_process_job_without_credentials_is_draft_ready(services, queue):
    worker = ContentWorker.from_services(queue, services)
    job = await _queued_job(services.repository, tenant_id=UNPUBLISHED_TENANT_ID)

    assert await worker.process_job(job) == JobOutcome.DRAFT_READY

    record = await services.repository.get_request(job.request_id)
    assert record.status == RequestStatus.DRAFT_READY
    assert record.published_location is None
    assert record.text_content == DRAFT_TEXT


@pytest.mark.asyncio
async def test_failing_step_marks_request_failed(repository, queue):
    generator = ScriptedGenerator({DIRECTIVE_RESEARCH: CollaboratorError("overloaded")})
    services = make_services(repository, generator=generator)
    worker = ContentWorker.from_services(queue, services)
    job = await _queued_job(repository)

    assert await worker.process_job(job) == JobOutcome.FAILED

    record = await repository.get_request(job.request_id)
    assert record.status == RequestStatus.FAILED
    assert record.current_step == 2
    logs = await repository.list_execution_logs(job.request_id)
    assert [(e.step_name, e.success) for e in logs] == [
        ("strategy", True),
        ("research", False),
        ("research", False),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status", [RequestStatus.CANCELLED, RequestStatus.PAUSED, RequestStatus.COMPLETE]
)
async def test_unclaimable_job_is_skipped(services, queue, status):
    worker = ContentWorker.from_services(queue, services)
    job = await _queued_job(services.repository, status=status)

    assert await worker.process_job(job) == JobOutcome.SKIPPED

    assert services.generator.calls == []
    assert (await services.repository.get_request(job.request_id)).status == status


@pytest.mark.asyncio
async def test_processing_request_claimed_only_on_redelivery(services, queue):
    worker = ContentWorker.from_services(queue, services)
    first = await _queued_job(services.repository, status=RequestStatus.PROCESSING)
    assert await worker.process_job(first) == JobOutcome.SKIPPED

    redelivered = first.bump_attempt()
    assert await worker.process_job(redelivered) == JobOutcome.COMPLETE


@pytest.mark.asyncio
async def test_resume_hint_restarts_from_first_step(services, queue):
    worker = ContentWorker.from_services(queue, services)
    job = await _queued_job(services.repository)
    job.resume_hint = 4

    assert await worker.process_job(job) == JobOutcome.COMPLETE
    assert services.generator.directives()[0] == DIRECTIVE_STRATEGY


@pytest.mark.asyncio
async def test_missing_request_is_skipped(services, queue):
    worker = ContentWorker.from_services(queue, services)
    job = ContentJob(request_id=404, tenant_id=TENANT_ID, title="ghost")

    assert await worker.process_job(job) == JobOutcome.SKIPPED


@pytest.mark.asyncio
async def test_start_consumes_queue(services, queue):
    worker = ContentWorker.from_services(queue, services)
    record = await services.repository.create_request(TENANT_ID, "Remote Work")
    await queue.enqueue(record.id, record.tenant_id, record.title)
    await services.repository.transition_status(record.id, RequestStatus.QUEUED)

    await worker.start(lifespan=0.5)

    assert (await services.repository.get_request(record.id)).status == RequestStatus.COMPLETE
    assert queue.jobs() == []
    assert queue.dead_letters == []


@pytest.mark.asyncio
async def test_crashing_job_is_redelivered_then_dead_lettered(services):
    queue = InMemoryJobQueue(max_attempts=2, backoff_delay=0, poll_interval=0.01)
    worker = ContentWorker.from_services(queue, services)
    attempts = []

    async def crash(job):
        attempts.append(job.attempt)
        raise RuntimeError("worker bug")

    worker.process_job = crash
    await queue.enqueue(1, TENANT_ID, "Crashes")

    await worker.start(lifespan=0.5)

    assert attempts == [1, 2]
    assert len(queue.dead_letters) == 1
    assert queue.dead_letters[0][1] == "RuntimeError: worker bug"

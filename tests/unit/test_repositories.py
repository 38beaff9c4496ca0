"""Behaviour shared by the in-memory and SQLite content repositories."""

from datetime import date, datetime, time, timedelta

import pytest
import pytest_asyncio

from quillflow.constants import RequestStatus
from quillflow.persistence import (
    InMemoryContentRepository,
    ScheduleEntry,
    SQLContentRepository,
)
from quillflow.utils.clock import utcnow


@pytest_asyncio.fixture(params=["inmemory", "sqlite"])
async def repo(request, tmp_path):
    if request.param == "inmemory":
        yield InMemoryContentRepository()
        return
    repository = SQLContentRepository(f"sqlite:///{tmp_path / 'content.db'}")
    await repository.init_db()
    yield repository
    await repository.close()


@pytest.mark.asyncio
async def test_create_and_get_request(repo):
    when = datetime(2024, 1, 1, 9, 0)
    record = await repo.create_request(4, "Remote work", when)

    loaded = await repo.get_request(record.id)
    assert loaded is not None
    assert loaded.tenant_id == 4
    assert loaded.title == "Remote work"
    assert loaded.status == RequestStatus.PENDING
    assert loaded.current_step == 0
    assert loaded.scheduled_for == when
    assert await repo.get_request(9999) is None


@pytest.mark.asyncio
async def test_due_requests_ordered_and_bounded(repo):
    now = datetime(2024, 6, 1, 12, 0)
    late = await repo.create_request(1, "late", now - timedelta(hours=1))
    early = await repo.create_request(1, "early", now - timedelta(hours=5))
    await repo.create_request(1, "future", now + timedelta(hours=1))
    queued = await repo.create_request(1, "queued", now - timedelta(hours=9))
    await repo.transition_status(queued.id, RequestStatus.QUEUED)

    due = await repo.due_requests(now, limit=5)
    assert [r.id for r in due] == [early.id, late.id]
    assert [r.id for r in await repo.due_requests(now, limit=1)] == [early.id]


@pytest.mark.asyncio
async def test_transition_status_is_compare_and_swap(repo):
    record = await repo.create_request(1, "cas")

    assert await repo.transition_status(
        record.id, RequestStatus.PROCESSING, expected=[RequestStatus.PENDING], current_step=0
    )
    assert not await repo.transition_status(
        record.id, RequestStatus.PROCESSING, expected=[RequestStatus.PENDING]
    )
    assert not await repo.transition_status(9999, RequestStatus.FAILED)

    assert await repo.transition_status(
        record.id, RequestStatus.COMPLETE, published_location="https://x/1"
    )
    loaded = await repo.get_request(record.id)
    assert loaded.status == RequestStatus.COMPLETE
    assert loaded.published_location == "https://x/1"


@pytest.mark.asyncio
async def test_list_requests_filters(repo):
    a = await repo.create_request(1, "a", datetime(2024, 1, 1))
    b = await repo.create_request(1, "b", datetime(2024, 1, 2))
    await repo.create_request(2, "c", datetime(2024, 1, 3))
    await repo.transition_status(a.id, RequestStatus.FAILED)

    assert [r.id for r in await repo.list_requests(tenant_id=1)] == [b.id, a.id]
    failed = await repo.list_requests(statuses=[RequestStatus.FAILED])
    assert [r.id for r in failed] == [a.id]
    assert len(await repo.list_requests(limit=2)) == 2


@pytest.mark.asyncio
async def test_artifacts_and_logs_are_append_only(repo):
    record = await repo.create_request(1, "logs")
    await repo.set_current_step(record.id, 2)
    await repo.save_artifact(record.id, "research", {"error": "boom"}, attempt=1)
    await repo.save_artifact(record.id, "research", {"fact_sheet": {}}, attempt=2)
    await repo.log_execution(record.id, "research", 120, success=False, error="boom", attempt=1)
    await repo.log_execution(record.id, "research", 80, success=True, attempt=2)

    assert (await repo.get_request(record.id)).current_step == 2
    artifacts = await repo.list_artifacts(record.id, "research")
    assert [a.attempt for a in artifacts] == [1, 2]
    latest = await repo.latest_artifact(record.id, "research")
    assert latest.data == {"fact_sheet": {}}
    logs = await repo.list_execution_logs(record.id)
    assert [(e.success, e.error) for e in logs] == [(False, "boom"), (True, None)]


@pytest.mark.asyncio
async def test_delete_request_cascades(repo):
    record = await repo.create_request(1, "gone")
    await repo.save_artifact(record.id, "strategy", {"a": 1})
    await repo.log_execution(record.id, "strategy", 10, success=True)

    assert await repo.delete_request(record.id)
    assert await repo.get_request(record.id) is None
    assert await repo.list_artifacts(record.id) == []
    assert await repo.list_execution_logs(record.id) == []
    assert not await repo.delete_request(record.id)


@pytest.mark.asyncio
async def test_schedule_entries(repo):
    created = await repo.create_schedule_entries(
        [
            ScheduleEntry(tenant_id=1, title="Tip #2", scheduled_date=date(2024, 1, 15)),
            ScheduleEntry(
                tenant_id=1,
                title="Tip #1",
                scheduled_date=date(2024, 1, 8),
                scheduled_time=time(14, 30),
                auto_publish=False,
            ),
        ]
    )
    assert all(entry.id is not None for entry in created)

    entries = await repo.list_schedule_entries(tenant_id=1)
    assert [e.title for e in entries] == ["Tip #1", "Tip #2"]
    assert entries[0].scheduled_time == time(14, 30)
    assert entries[0].auto_publish is False

    due = await repo.due_schedule_entries(date(2024, 1, 10))
    assert [e.title for e in due] == ["Tip #1"]
    request = await repo.materialize_schedule_entry(due[0].id, datetime(2024, 1, 10, 9, 0))
    assert request.title == "Tip #1"
    assert request.tenant_id == 1
    assert request.status == RequestStatus.PENDING
    assert request.scheduled_for == datetime(2024, 1, 10, 9, 0)
    assert await repo.due_schedule_entries(date(2024, 1, 10)) == []
    materialized = await repo.list_schedule_entries(status="materialized")
    assert materialized[0].request_id == request.id

    assert await repo.materialize_schedule_entry(due[0].id, datetime(2024, 1, 10, 9, 0)) is None
    assert [r.title for r in await repo.list_requests(tenant_id=1)] == ["Tip #1"]


@pytest.mark.asyncio
async def test_statistics(repo):
    first = await repo.create_request(1, "one")
    second = await repo.create_request(1, "two")
    await repo.transition_status(second.id, RequestStatus.FAILED)
    await repo.log_execution(first.id, "draft", 100, success=True)
    await repo.log_execution(first.id, "draft", 300, success=False, error="x")
    await repo.log_execution(first.id, "strategy", 50, success=True)

    since = utcnow() - timedelta(days=1)
    assert await repo.status_counts(since) == {"pending": 1, "failed": 1}
    performance = await repo.step_performance(since)
    assert performance == [
        {
            "step_name": "draft",
            "executions": 2,
            "avg_duration_ms": 200.0,
            "successes": 1,
            "failures": 1,
        },
        {
            "step_name": "strategy",
            "executions": 1,
            "avg_duration_ms": 50.0,
            "successes": 1,
            "failures": 0,
        },
    ]
    assert await repo.status_counts(utcnow() + timedelta(days=1)) == {}

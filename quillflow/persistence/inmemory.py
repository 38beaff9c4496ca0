"""In-memory implementation of the content repository."""

from __future__ import annotations

import asyncio
from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from ..constants import RequestStatus
from ..utils.clock import utcnow
from .models import ArtifactRecord, ExecutionLogEntry, RequestRecord, ScheduleEntry
from .repository import ContentRepository


class InMemoryContentRepository(ContentRepository):
    """Store content state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._requests: Dict[int, RequestRecord] = {}
        self._artifacts: List[ArtifactRecord] = []
        self._logs: List[ExecutionLogEntry] = []
        self._schedules: Dict[int, ScheduleEntry] = {}
        self._ids: Counter[str] = Counter()
        self._lock = asyncio.Lock()

    def _next_id(self, kind: str) -> int:
        self._ids[kind] += 1
        return self._ids[kind]

    # ------------------------------------------------------------------
    async def create_request(
        self,
        tenant_id: int,
        title: str,
        scheduled_for: Optional[datetime] = None,
        status: RequestStatus = RequestStatus.PENDING,
    ) -> RequestRecord:
        now = utcnow()
        record = RequestRecord(
            id=self._next_id("request"),
            tenant_id=tenant_id,
            title=title,
            status=status,
            scheduled_for=scheduled_for or now,
            created_at=now,
            updated_at=now,
        )
        self._requests[record.id] = record
        return record.model_copy()

    async def get_request(self, request_id: int) -> RequestRecord | None:
        record = self._requests.get(request_id)
        return record.model_copy() if record else None

    async def list_requests(
        self,
        tenant_id: Optional[int] = None,
        statuses: Optional[Iterable[RequestStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[RequestRecord]:
        wanted = {RequestStatus(s) for s in statuses} if statuses else None
        records = [
            r
            for r in self._requests.values()
            if (tenant_id is None or r.tenant_id == tenant_id)
            and (wanted is None or r.status in wanted)
        ]
        records.sort(key=lambda r: (r.scheduled_for, r.id), reverse=True)
        if limit is not None:
            records = records[:limit]
        return [r.model_copy() for r in records]

    async def due_requests(self, now: datetime, limit: int) -> list[RequestRecord]:
        due = [
            r
            for r in self._requests.values()
            if r.status == RequestStatus.PENDING and r.scheduled_for <= now
        ]
        due.sort(key=lambda r: (r.scheduled_for, r.id))
        return [r.model_copy() for r in due[:limit]]

    async def transition_status(
        self,
        request_id: int,
        status: RequestStatus,
        expected: Optional[Iterable[RequestStatus]] = None,
        **fields: Any,
    ) -> bool:
        async with self._lock:
            record = self._requests.get(request_id)
            if record is None:
                return False
            if expected is not None and record.status not in {
                RequestStatus(s) for s in expected
            }:
                return False
            self._requests[request_id] = record.model_copy(
                update={**fields, "status": RequestStatus(status), "updated_at": utcnow()}
            )
            return True

    async def set_current_step(self, request_id: int, step_index: int) -> None:
        await self.update_request(request_id, current_step=step_index)

    async def update_request(self, request_id: int, **fields: Any) -> None:
        async with self._lock:
            record = self._requests.get(request_id)
            if record is None:
                return
            self._requests[request_id] = record.model_copy(
                update={**fields, "updated_at": utcnow()}
            )

    async def delete_request(self, request_id: int) -> bool:
        if self._requests.pop(request_id, None) is None:
            return False
        self._artifacts = [a for a in self._artifacts if a.request_id != request_id]
        self._logs = [entry for entry in self._logs if entry.request_id != request_id]
        return True

    # ------------------------------------------------------------------
    async def save_artifact(
        self, request_id: int, step_name: str, data: dict, attempt: int = 1
    ) -> ArtifactRecord:
        artifact = ArtifactRecord(
            id=self._next_id("artifact"),
            request_id=request_id,
            step_name=step_name,
            attempt=attempt,
            data=data,
            created_at=utcnow(),
        )
        self._artifacts.append(artifact)
        return artifact

    async def list_artifacts(
        self, request_id: int, step_name: Optional[str] = None
    ) -> list[ArtifactRecord]:
        return [
            a
            for a in self._artifacts
            if a.request_id == request_id and (step_name is None or a.step_name == step_name)
        ]

    async def latest_artifact(
        self, request_id: int, step_name: str
    ) -> ArtifactRecord | None:
        artifacts = await self.list_artifacts(request_id, step_name)
        return artifacts[-1] if artifacts else None

    async def log_execution(
        self,
        request_id: int,
        step_name: str,
        duration_ms: int,
        success: bool,
        error: Optional[str] = None,
        attempt: int = 1,
        token_usage: int = 0,
        cost: float = 0.0,
    ) -> ExecutionLogEntry:
        entry = ExecutionLogEntry(
            id=self._next_id("log"),
            request_id=request_id,
            step_name=step_name,
            attempt=attempt,
            duration_ms=duration_ms,
            success=success,
            error=error,
            token_usage=token_usage,
            cost=cost,
            created_at=utcnow(),
        )
        self._logs.append(entry)
        return entry

    async def list_execution_logs(self, request_id: int) -> list[ExecutionLogEntry]:
        return [entry for entry in self._logs if entry.request_id == request_id]

    # ------------------------------------------------------------------
    async def create_schedule_entries(
        self, entries: Iterable[ScheduleEntry]
    ) -> list[ScheduleEntry]:
        created = []
        for entry in entries:
            stored = entry.model_copy(
                update={"id": self._next_id("schedule"), "created_at": utcnow()}
            )
            self._schedules[stored.id] = stored
            created.append(stored.model_copy())
        return created

    async def list_schedule_entries(
        self, tenant_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[ScheduleEntry]:
        entries = [
            e
            for e in self._schedules.values()
            if (tenant_id is None or e.tenant_id == tenant_id)
            and (status is None or e.status == status)
        ]
        entries.sort(key=lambda e: (e.scheduled_date, e.scheduled_time, e.id))
        return [e.model_copy() for e in entries]

    async def due_schedule_entries(self, until: date) -> list[ScheduleEntry]:
        entries = await self.list_schedule_entries(status="scheduled")
        return [e for e in entries if e.scheduled_date <= until]

    async def materialize_schedule_entry(
        self, entry_id: int, scheduled_for: datetime
    ) -> RequestRecord | None:
        async with self._lock:
            entry = self._schedules.get(entry_id)
            if entry is None or entry.status != "scheduled":
                return None
            now = utcnow()
            record = RequestRecord(
                id=self._next_id("request"),
                tenant_id=entry.tenant_id,
                title=entry.title,
                status=RequestStatus.PENDING,
                scheduled_for=scheduled_for,
                created_at=now,
                updated_at=now,
            )
            self._requests[record.id] = record
            self._schedules[entry_id] = entry.model_copy(
                update={"status": "materialized", "request_id": record.id}
            )
            return record.model_copy()

    # ------------------------------------------------------------------
    async def status_counts(self, since: datetime) -> dict[str, int]:
        counts: Counter[str] = Counter(
            r.status.value
            for r in self._requests.values()
            if r.created_at is None or r.created_at >= since
        )
        return dict(counts)

    async def step_performance(self, since: datetime) -> list[dict[str, Any]]:
        grouped: Dict[str, List[ExecutionLogEntry]] = defaultdict(list)
        for entry in self._logs:
            if entry.created_at is None or entry.created_at >= since:
                grouped[entry.step_name].append(entry)
        return [
            {
                "step_name": name,
                "executions": len(entries),
                "avg_duration_ms": sum(e.duration_ms for e in entries) / len(entries),
                "successes": sum(1 for e in entries if e.success),
                "failures": sum(1 for e in entries if not e.success),
            }
            for name, entries in sorted(grouped.items())
        ]

"""Repository abstraction for content request persistence."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional, Protocol

from ..constants import RequestStatus
from .models import ArtifactRecord, ExecutionLogEntry, RequestRecord, ScheduleEntry


class ContentRepository(Protocol):
    """Protocol for request, artifact and execution-log backends.

    Every write is a single-row, single-statement operation; nothing spans
    more than one step of a pipeline.
    """

    async def create_request(
        self,
        tenant_id: int,
        title: str,
        scheduled_for: Optional[datetime] = None,
        status: RequestStatus = RequestStatus.PENDING,
    ) -> RequestRecord:
        """Insert a new request record."""

    async def get_request(self, request_id: int) -> RequestRecord | None:
        """Retrieve a request by id."""

    async def list_requests(
        self,
        tenant_id: Optional[int] = None,
        statuses: Optional[Iterable[RequestStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[RequestRecord]:
        """Return requests, latest ``scheduled_for`` first."""

    async def due_requests(self, now: datetime, limit: int) -> list[RequestRecord]:
        """Return pending requests due at ``now``, earliest first."""

    async def transition_status(
        self,
        request_id: int,
        status: RequestStatus,
        expected: Optional[Iterable[RequestStatus]] = None,
        **fields: Any,
    ) -> bool:
        """Set ``status`` (and ``fields``) if the current status is ``expected``.

        Returns ``True`` when the row was updated.
        """

    async def set_current_step(self, request_id: int, step_index: int) -> None:
        """Record the step about to run."""

    async def update_request(self, request_id: int, **fields: Any) -> None:
        """Update arbitrary request columns."""

    async def delete_request(self, request_id: int) -> bool:
        """Delete a request together with its artifacts and log entries."""

    async def save_artifact(
        self, request_id: int, step_name: str, data: dict, attempt: int = 1
    ) -> ArtifactRecord:
        """Append a step artifact."""

    async def list_artifacts(
        self, request_id: int, step_name: Optional[str] = None
    ) -> list[ArtifactRecord]:
        """Return artifacts in insertion order."""

    async def latest_artifact(
        self, request_id: int, step_name: str
    ) -> ArtifactRecord | None:
        """Return the newest artifact of a step."""

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
        """Append an execution log entry."""

    async def list_execution_logs(self, request_id: int) -> list[ExecutionLogEntry]:
        """Return log entries in insertion order."""

    async def create_schedule_entries(
        self, entries: Iterable[ScheduleEntry]
    ) -> list[ScheduleEntry]:
        """Persist schedule entries and return them with ids."""

    async def list_schedule_entries(
        self, tenant_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[ScheduleEntry]:
        """Return schedule entries ordered by date."""

    async def due_schedule_entries(self, until: date) -> list[ScheduleEntry]:
        """Return unmaterialized entries dated on or before ``until``."""

    async def materialize_schedule_entry(
        self, entry_id: int, scheduled_for: datetime
    ) -> RequestRecord | None:
        """Create the pending request for a scheduled entry and link the two.

        Both writes happen together and only while the entry is still
        ``scheduled``; returns ``None`` when another caller got there first.
        """

    async def status_counts(self, since: datetime) -> dict[str, int]:
        """Count requests created since ``since`` by status."""

    async def step_performance(self, since: datetime) -> list[dict[str, Any]]:
        """Aggregate execution-log entries since ``since`` by step."""

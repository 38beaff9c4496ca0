"""SQL implementation of the content repository (SQLite or PostgreSQL)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import case, delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel, select

from ..constants import RequestStatus
from ..utils.clock import utcnow
from .models import ArtifactRecord, ExecutionLogEntry, RequestRecord, ScheduleEntry
from .repository import ContentRepository
from .tables import ArtifactRow, ExecutionLogRow, RequestRow, ScheduleRow


def normalize_database_url(database_url: str) -> str:
    """Map plain SQLite/PostgreSQL URLs onto their async drivers."""
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def _status_values(statuses: Iterable[RequestStatus]) -> list[str]:
    return [RequestStatus(s).value for s in statuses]


class SQLContentRepository(ContentRepository):
    """Persist content state using SQLModel tables on an async engine."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = normalize_database_url(database_url)
        connect_args = (
            {"check_same_thread": False} if self.database_url.startswith("sqlite") else {}
        )
        self.engine = create_async_engine(
            self.database_url, echo=echo, connect_args=connect_args
        )
        self._initialized = False

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self._initialized = True

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if not self._initialized:
            await self.init_db()
        async with AsyncSession(self.engine, expire_on_commit=False) as session:
            yield session

    # ------------------------------------------------------------------
    async def create_request(
        self,
        tenant_id: int,
        title: str,
        scheduled_for: Optional[datetime] = None,
        status: RequestStatus = RequestStatus.PENDING,
    ) -> RequestRecord:
        now = utcnow()
        row = RequestRow(
            tenant_id=tenant_id,
            title=title,
            status=RequestStatus(status).value,
            scheduled_for=scheduled_for or now,
            created_at=now,
            updated_at=now,
        )
        async with self.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return RequestRecord.model_validate(row)

    async def get_request(self, request_id: int) -> RequestRecord | None:
        async with self.session() as session:
            row = await session.get(RequestRow, request_id)
        return RequestRecord.model_validate(row) if row else None

    async def list_requests(
        self,
        tenant_id: Optional[int] = None,
        statuses: Optional[Iterable[RequestStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[RequestRecord]:
        query = select(RequestRow)
        if tenant_id is not None:
            query = query.where(RequestRow.tenant_id == tenant_id)
        if statuses:
            query = query.where(RequestRow.status.in_(_status_values(statuses)))
        query = query.order_by(RequestRow.scheduled_for.desc(), RequestRow.id.desc())
        if limit is not None:
            query = query.limit(limit)
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [RequestRecord.model_validate(r) for r in rows]

    async def due_requests(self, now: datetime, limit: int) -> list[RequestRecord]:
        query = (
            select(RequestRow)
            .where(RequestRow.status == RequestStatus.PENDING.value)
            .where(RequestRow.scheduled_for <= now)
            .order_by(RequestRow.scheduled_for.asc(), RequestRow.id.asc())
            .limit(limit)
        )
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [RequestRecord.model_validate(r) for r in rows]

    async def transition_status(
        self,
        request_id: int,
        status: RequestStatus,
        expected: Optional[Iterable[RequestStatus]] = None,
        **fields: Any,
    ) -> bool:
        statement = update(RequestRow).where(RequestRow.id == request_id)
        if expected is not None:
            statement = statement.where(RequestRow.status.in_(_status_values(expected)))
        statement = statement.values(
            **fields, status=RequestStatus(status).value, updated_at=utcnow()
        )
        async with self.session() as session:
            result = await session.execute(statement)
            await session.commit()
        return result.rowcount == 1

    async def set_current_step(self, request_id: int, step_index: int) -> None:
        await self.update_request(request_id, current_step=step_index)

    async def update_request(self, request_id: int, **fields: Any) -> None:
        if "status" in fields:
            fields["status"] = RequestStatus(fields["status"]).value
        statement = (
            update(RequestRow)
            .where(RequestRow.id == request_id)
            .values(**fields, updated_at=utcnow())
        )
        async with self.session() as session:
            await session.execute(statement)
            await session.commit()

    async def delete_request(self, request_id: int) -> bool:
        async with self.session() as session:
            await session.execute(
                delete(ArtifactRow).where(ArtifactRow.request_id == request_id)
            )
            await session.execute(
                delete(ExecutionLogRow).where(ExecutionLogRow.request_id == request_id)
            )
            result = await session.execute(
                delete(RequestRow).where(RequestRow.id == request_id)
            )
            await session.commit()
        return result.rowcount == 1

    # ------------------------------------------------------------------
    async def save_artifact(
        self, request_id: int, step_name: str, data: dict, attempt: int = 1
    ) -> ArtifactRecord:
        row = ArtifactRow(
            request_id=request_id, step_name=step_name, attempt=attempt, data=data
        )
        async with self.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return ArtifactRecord.model_validate(row)

    async def list_artifacts(
        self, request_id: int, step_name: Optional[str] = None
    ) -> list[ArtifactRecord]:
        query = select(ArtifactRow).where(ArtifactRow.request_id == request_id)
        if step_name is not None:
            query = query.where(ArtifactRow.step_name == step_name)
        async with self.session() as session:
            rows = (await session.execute(query.order_by(ArtifactRow.id))).scalars().all()
        return [ArtifactRecord.model_validate(r) for r in rows]

    async def latest_artifact(
        self, request_id: int, step_name: str
    ) -> ArtifactRecord | None:
        query = (
            select(ArtifactRow)
            .where(ArtifactRow.request_id == request_id)
            .where(ArtifactRow.step_name == step_name)
            .order_by(ArtifactRow.id.desc())
            .limit(1)
        )
        async with self.session() as session:
            row = (await session.execute(query)).scalars().first()
        return ArtifactRecord.model_validate(row) if row else None

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
        row = ExecutionLogRow(
            request_id=request_id,
            step_name=step_name,
            attempt=attempt,
            duration_ms=duration_ms,
            success=success,
            error=error,
            token_usage=token_usage,
            cost=cost,
        )
        async with self.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return ExecutionLogEntry.model_validate(row)

    async def list_execution_logs(self, request_id: int) -> list[ExecutionLogEntry]:
        query = (
            select(ExecutionLogRow)
            .where(ExecutionLogRow.request_id == request_id)
            .order_by(ExecutionLogRow.id)
        )
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [ExecutionLogEntry.model_validate(r) for r in rows]

    # ------------------------------------------------------------------
    async def create_schedule_entries(
        self, entries: Iterable[ScheduleEntry]
    ) -> list[ScheduleEntry]:
        rows = [
            ScheduleRow(**entry.model_dump(exclude={"id", "created_at"}))
            for entry in entries
        ]
        async with self.session() as session:
            session.add_all(rows)
            await session.commit()
            for row in rows:
                await session.refresh(row)
        return [ScheduleEntry.model_validate(r) for r in rows]

    async def list_schedule_entries(
        self, tenant_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[ScheduleEntry]:
        query = select(ScheduleRow)
        if tenant_id is not None:
            query = query.where(ScheduleRow.tenant_id == tenant_id)
        if status is not None:
            query = query.where(ScheduleRow.status == status)
        query = query.order_by(
            ScheduleRow.scheduled_date, ScheduleRow.scheduled_time, ScheduleRow.id
        )
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [ScheduleEntry.model_validate(r) for r in rows]

    async def due_schedule_entries(self, until: date) -> list[ScheduleEntry]:
        query = (
            select(ScheduleRow)
            .where(ScheduleRow.status == "scheduled")
            .where(ScheduleRow.scheduled_date <= until)
            .order_by(ScheduleRow.scheduled_date, ScheduleRow.scheduled_time, ScheduleRow.id)
        )
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [ScheduleEntry.model_validate(r) for r in rows]

    async def materialize_schedule_entry(
        self, entry_id: int, scheduled_for: datetime
    ) -> RequestRecord | None:
        now = utcnow()
        async with self.session() as session:
            claimed = await session.execute(
                update(ScheduleRow)
                .where(ScheduleRow.id == entry_id)
                .where(ScheduleRow.status == "scheduled")
                .values(status="materialized")
            )
            if claimed.rowcount != 1:
                await session.rollback()
                return None
            entry = await session.get(ScheduleRow, entry_id)
            row = RequestRow(
                tenant_id=entry.tenant_id,
                title=entry.title,
                status=RequestStatus.PENDING.value,
                scheduled_for=scheduled_for,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            entry.request_id = row.id
            session.add(entry)
            await session.commit()
            await session.refresh(row)
        return RequestRecord.model_validate(row)

    # ------------------------------------------------------------------
    async def status_counts(self, since: datetime) -> dict[str, int]:
        query = (
            select(RequestRow.status, func.count())
            .where(RequestRow.created_at >= since)
            .group_by(RequestRow.status)
        )
        async with self.session() as session:
            rows = (await session.execute(query)).all()
        return {status: count for status, count in rows}

    async def step_performance(self, since: datetime) -> list[dict[str, Any]]:
        successes = func.sum(case((ExecutionLogRow.success.is_(True), 1), else_=0))
        query = (
            select(
                ExecutionLogRow.step_name,
                func.count(),
                func.avg(ExecutionLogRow.duration_ms),
                successes,
            )
            .where(ExecutionLogRow.created_at >= since)
            .group_by(ExecutionLogRow.step_name)
            .order_by(ExecutionLogRow.step_name)
        )
        async with self.session() as session:
            rows = (await session.execute(query)).all()
        return [
            {
                "step_name": step_name,
                "executions": executions,
                "avg_duration_ms": float(avg or 0),
                "successes": int(ok or 0),
                "failures": executions - int(ok or 0),
            }
            for step_name, executions, avg, ok in rows
        ]

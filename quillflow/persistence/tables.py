from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel

from ..constants import RequestStatus
from ..utils.clock import utcnow


class RequestRow(SQLModel, table=True):
    """One content request and its lifecycle state."""

    __tablename__ = "requests"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(index=True)
    title: str
    status: str = Field(default=RequestStatus.PENDING.value, index=True)
    current_step: int = 0
    scheduled_for: datetime = Field(default_factory=utcnow, index=True)
    published_location: Optional[str] = None
    text_content: Optional[str] = Field(default=None, sa_column=Column(Text))
    html_content: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ArtifactRow(SQLModel, table=True):
    """Append-only step output."""

    __tablename__ = "artifacts"

    id: Optional[int] = Field(default=None, primary_key=True)
    request_id: int = Field(foreign_key="requests.id", index=True, ondelete="CASCADE")
    step_name: str = Field(index=True)
    attempt: int = 1
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)


class ExecutionLogRow(SQLModel, table=True):
    """Per-attempt execution metrics."""

    __tablename__ = "execution_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    request_id: int = Field(foreign_key="requests.id", index=True, ondelete="CASCADE")
    step_name: str = Field(index=True)
    attempt: int = 1
    duration_ms: int = 0
    success: bool
    error: Optional[str] = Field(default=None, sa_column=Column(Text))
    token_usage: int = 0
    cost: float = 0.0
    created_at: datetime = Field(default_factory=utcnow, index=True)


class ScheduleRow(SQLModel, table=True):
    """Recurring-calendar entry awaiting materialization."""

    __tablename__ = "content_schedules"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(index=True)
    title: str
    scheduled_date: date = Field(index=True)
    scheduled_time: time = Field(default=time(9, 0))
    auto_publish: bool = True
    status: str = Field(default="scheduled", index=True)
    request_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)

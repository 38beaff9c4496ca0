"""Data models for persisted content request state."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import RequestStatus


class RequestRecord(BaseModel):
    """Durable state of one content request."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    title: str
    status: RequestStatus = RequestStatus.PENDING
    current_step: int = 0
    scheduled_for: datetime
    published_location: Optional[str] = None
    text_content: Optional[str] = None
    html_content: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArtifactRecord(BaseModel):
    """Immutable output of a single step attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    step_name: str
    attempt: int = 1
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class ExecutionLogEntry(BaseModel):
    """Observational record of a single step attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    step_name: str
    attempt: int = 1
    duration_ms: int = 0
    success: bool
    error: Optional[str] = None
    token_usage: int = 0
    cost: float = 0.0
    created_at: Optional[datetime] = None


class ScheduleEntry(BaseModel):
    """Lightweight calendar entry, materialized into a request later."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    tenant_id: int
    title: str
    scheduled_date: date
    scheduled_time: time = time(9, 0)
    auto_publish: bool = True
    status: str = "scheduled"
    request_id: Optional[int] = None
    created_at: Optional[datetime] = None

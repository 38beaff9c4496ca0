"""Core contracts shared by the engine, pipelines, queue and worker."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .constants import DEFAULT_JOB_ATTEMPTS
from .utils.clock import utcnow

CARRIED_FIELDS = ("request_id", "tenant_id")


class StepResult(BaseModel):
    """Outcome of a single step handler invocation."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    attempts: int = 1

    @classmethod
    def ok(cls, data: Any = None, duration_ms: Optional[int] = None) -> "StepResult":
        return cls(success=True, data=data, duration_ms=duration_ms)

    @classmethod
    def failed(cls, error: str, duration_ms: Optional[int] = None) -> "StepResult":
        return cls(success=False, error=error, duration_ms=duration_ms)


class PipelineContext(BaseModel):
    """Accumulated state handed to every step of a pipeline run.

    ``outputs`` maps step names to the typed output of each finished step.
    ``request_id`` and ``tenant_id`` are carried unchanged through every
    merge. Item access looks up outputs first, then the initial inputs.
    """

    request_id: int
    tenant_id: int
    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    attempt: int = 1

    @classmethod
    def from_mapping(cls, initial: Mapping[str, Any]) -> "PipelineContext":
        missing = [name for name in CARRIED_FIELDS if name not in initial]
        if missing:
            raise ValueError(f"Initial context is missing {', '.join(missing)}")
        inputs = {k: v for k, v in initial.items() if k not in CARRIED_FIELDS}
        return cls(
            request_id=initial["request_id"],
            tenant_id=initial["tenant_id"],
            inputs=inputs,
        )

    def __getitem__(self, key: str) -> Any:
        if key in self.outputs:
            return self.outputs[key]
        if key in self.inputs:
            return self.inputs[key]
        if key in CARRIED_FIELDS:
            return getattr(self, key)
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return key in self.outputs or key in self.inputs or key in CARRIED_FIELDS

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def with_output(self, step_name: str, data: Any) -> "PipelineContext":
        """Return a new context with ``data`` stored under ``step_name``."""
        return self.model_copy(
            update={"outputs": {**self.outputs, step_name: data}, "attempt": 1}
        )


class PipelineResult(BaseModel):
    """Outcome of a full pipeline run."""

    pipeline: str
    success: bool
    context: PipelineContext
    error: Optional[str] = None
    failed_step: Optional[str] = None
    step_results: Dict[str, StepResult] = Field(default_factory=dict)
    total_duration_ms: int = 0


class ContentJob(BaseModel):
    """Queue-delivered unit of work naming the request to drive."""

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request_id: int
    tenant_id: int
    title: str
    resume_hint: Optional[int] = None
    attempt: int = 1
    max_attempts: int = DEFAULT_JOB_ATTEMPTS
    enqueued_at: datetime = Field(default_factory=utcnow)

    def to_json(self) -> str:
        """Serialize job to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "ContentJob":
        """Deserialize job from JSON."""
        return cls.model_validate_json(data)

    def bump_attempt(self) -> "ContentJob":
        """Return a copy of this job for its next delivery attempt."""
        return self.model_copy(update={"attempt": self.attempt + 1, "enqueued_at": utcnow()})

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

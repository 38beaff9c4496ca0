"""Persistence layer for quillflow requests, artifacts and execution logs."""

from __future__ import annotations

import os
from typing import Optional

from ..config import QuillflowConfig, load_config
from .inmemory import InMemoryContentRepository
from .models import ArtifactRecord, ExecutionLogEntry, RequestRecord, ScheduleEntry
from .repository import ContentRepository
from .sql import SQLContentRepository, normalize_database_url

_repository_instance: ContentRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[QuillflowConfig] = None
) -> ContentRepository:
    """Factory function to obtain a content repository.

    The backend is selected from ``database_url`` which can be provided
    explicitly, via environment variable ``QUILLFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("QUILLFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryContentRepository()
        return _repository_instance

    if database_url.startswith(("sqlite", "postgres")):
        _repository_instance = SQLContentRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "ArtifactRecord",
    "ContentRepository",
    "ExecutionLogEntry",
    "InMemoryContentRepository",
    "RequestRecord",
    "SQLContentRepository",
    "ScheduleEntry",
    "get_repository",
    "normalize_database_url",
]

"""Job queue factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import QuillflowConfig, load_config
from .base import BaseJobQueue
from .inmemory import InMemoryJobQueue


def get_queue(
    backend: Optional[str] = None, config: Optional[QuillflowConfig] = None
) -> BaseJobQueue:
    """Factory function to get the configured job queue."""

    config = config or load_config()
    queue_conf = config.queue
    backend = (backend or os.getenv("QUILLFLOW_QUEUE") or queue_conf.backend).lower()
    common = dict(
        name=queue_conf.name,
        max_attempts=queue_conf.max_attempts,
        backoff_delay=queue_conf.backoff_delay,
    )

    if backend == "inmemory":
        return InMemoryJobQueue(**common)
    elif backend == "redis":
        from .redis import RedisJobQueue

        redis_conf = queue_conf.redis
        return RedisJobQueue(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            consumer_name=redis_conf.consumer_name,
            lease_ttl=redis_conf.lease_ttl,
            **common,
        )
    elif backend == "rabbitmq":
        from .rabbitmq import RabbitMQJobQueue

        return RabbitMQJobQueue(url=queue_conf.rabbitmq.url, **common)
    else:
        raise ValueError(f"Unsupported queue backend: {backend}")


__all__ = ["BaseJobQueue", "InMemoryJobQueue", "get_queue"]

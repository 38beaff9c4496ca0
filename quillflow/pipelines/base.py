"""Shared wiring for the drafting and multimedia pipelines."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

from ..collaborators.base import (
    ContentGenerator,
    ImageGenerator,
    Publisher,
    SearchClient,
    TenantDirectory,
    TenantProfile,
)
from ..config import PipelineConfig
from ..constants import STEP_INDEX, STEP_RETRY_POLICY
from ..contracts import PipelineContext, StepResult
from ..exceptions import TenantNotFound
from ..persistence.repository import ContentRepository
from .outputs import StepOutput

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=StepOutput)
StepBody = Callable[[PipelineContext], Awaitable[StepOutput]]


@dataclass
class PipelineServices:
    """Repository and collaborators every step handler may reach.

    ``research`` maps research roles (``deep_search``, ``web_search``,
    ``competitors``, ``statistics``) to search clients; a missing role
    contributes an empty result.
    """

    repository: ContentRepository
    generator: ContentGenerator
    tenants: TenantDirectory
    research: Dict[str, SearchClient] = field(default_factory=dict)
    video_search: Optional[SearchClient] = None
    images: Optional[ImageGenerator] = None
    publisher: Optional[Publisher] = None
    settings: PipelineConfig = field(default_factory=PipelineConfig)

    def retry_policy(self, step_name: str) -> Tuple[int, float]:
        retries, delay = STEP_RETRY_POLICY[step_name]
        return retries, delay * self.settings.retry_delay_factor

    async def require_tenant(self, tenant_id: int) -> TenantProfile:
        tenant = await self.tenants.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFound(tenant_id)
        return tenant

    async def brand_voice(self, tenant_id: int) -> str:
        tenant = await self.tenants.get_tenant(tenant_id)
        return tenant.brand_voice if tenant else TenantProfile().brand_voice


def load_output(model: Type[OutputT], data: Dict[str, Any]) -> OutputT:
    """Validate provider JSON into ``model``, ignoring any foreign tag."""
    payload = {k: v for k, v in data.items() if k != "step"}
    return model.model_validate(payload)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def tracked_step(
    services: PipelineServices, name: str, index: Optional[int] = None
) -> Callable[[StepBody], Callable[[PipelineContext], Awaitable[StepResult]]]:
    """Wrap a step body with status, artifact and execution-log bookkeeping.

    The request's ``current_step`` is set to ``index`` before the body runs.
    Every attempt, successful or not, writes one execution-log row and one
    artifact row.
    """
    step_index = STEP_INDEX[name] if index is None else index

    def decorator(body: StepBody) -> Callable[[PipelineContext], Awaitable[StepResult]]:
        async def handler(context: PipelineContext) -> StepResult:
            repository = services.repository
            started = time.perf_counter()
            try:
                await repository.set_current_step(context.request_id, step_index)
                output = await body(context)
            except Exception as e:
                duration = _elapsed_ms(started)
                error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"[{name}] Request {context.request_id} attempt {context.attempt} failed: {error}"
                )
                await repository.log_execution(
                    context.request_id,
                    name,
                    duration,
                    success=False,
                    error=error,
                    attempt=context.attempt,
                )
                await repository.save_artifact(
                    context.request_id, name, {"error": error}, attempt=context.attempt
                )
                return StepResult.failed(error, duration)

            duration = _elapsed_ms(started)
            await repository.log_execution(
                context.request_id, name, duration, success=True, attempt=context.attempt
            )
            await repository.save_artifact(
                context.request_id, name, output.to_artifact(), attempt=context.attempt
            )
            logger.info(f"[{name}] Request {context.request_id} finished in {duration}ms")
            return StepResult.ok(output, duration)

        handler.__name__ = body.__name__
        return handler

    return decorator

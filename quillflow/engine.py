"""Sequential step executor used by every quillflow pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Union

from .constants import DEFAULT_RETRY_DELAY, DEFAULT_STEP_RETRIES
from .contracts import PipelineContext, PipelineResult, StepResult

logger = logging.getLogger(__name__)

StepHandler = Callable[[PipelineContext], Awaitable[StepResult]]


@dataclass
class PipelineStep:
    """One registered step of a pipeline."""

    name: str
    handler: StepHandler
    retries: int = DEFAULT_STEP_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class Pipeline:
    """Runs named steps strictly in registration order.

    Each handler receives the accumulated :class:`PipelineContext`. A step is
    invoked up to ``retries`` times with a fixed ``retry_delay`` between
    attempts; the first step that exhausts its attempts halts the run. The
    executor itself never persists anything.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._steps: List[PipelineStep] = []

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def step(
        self,
        name: str,
        handler: StepHandler,
        retries: int = DEFAULT_STEP_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> "Pipeline":
        """Register a step and return the pipeline for chaining."""
        if retries < 1:
            raise ValueError(f"Step {name} needs at least one attempt, got {retries}")
        if name in self.step_names:
            raise ValueError(f"Step {name} already registered in pipeline {self.name}")
        self._steps.append(
            PipelineStep(name=name, handler=handler, retries=retries, retry_delay=retry_delay)
        )
        return self

    async def _run_step(self, step: PipelineStep, context: PipelineContext) -> StepResult:
        attempt = 0
        while True:
            attempt += 1
            context.attempt = attempt
            started = time.perf_counter()
            try:
                result = await step.handler(context)
                if not isinstance(result, StepResult):
                    raise TypeError(
                        f"Step {step.name} returned {type(result).__name__}, expected StepResult"
                    )
            except Exception as exc:
                result = StepResult.failed(str(exc) or type(exc).__name__, _elapsed_ms(started))

            result.attempts = attempt
            if result.success:
                return result

            if attempt >= step.retries:
                if not result.error:
                    result.error = "Step failed"
                return result

            logger.info(
                f"[Pipeline:{self.name}] Step {step.name} failed, retrying "
                f"({attempt}/{step.retries}): {result.error}"
            )
            if step.retry_delay > 0:
                await asyncio.sleep(step.retry_delay)

    async def run(
        self, initial: Union[Mapping[str, Any], PipelineContext]
    ) -> PipelineResult:
        """Execute every step against ``initial`` and report the outcome."""
        started = time.perf_counter()
        context = (
            initial.model_copy()
            if isinstance(initial, PipelineContext)
            else PipelineContext.from_mapping(initial)
        )
        step_results: dict[str, StepResult] = {}

        logger.info(
            f"[Pipeline:{self.name}] Starting request {context.request_id} "
            f"with {len(self._steps)} steps"
        )

        for step in self._steps:
            logger.debug(f"[Pipeline:{self.name}] Executing step: {step.name}")
            result = await self._run_step(step, context)
            step_results[step.name] = result

            if not result.success:
                logger.warning(
                    f"[Pipeline:{self.name}] Step {step.name} failed after "
                    f"{result.attempts} attempt(s): {result.error}"
                )
                return PipelineResult(
                    pipeline=self.name,
                    success=False,
                    context=context,
                    error=f"Step '{step.name}' failed: {result.error}",
                    failed_step=step.name,
                    step_results=step_results,
                    total_duration_ms=_elapsed_ms(started),
                )

            context = context.with_output(step.name, result.data)

        logger.info(f"[Pipeline:{self.name}] Completed request {context.request_id}")
        return PipelineResult(
            pipeline=self.name,
            success=True,
            context=context,
            step_results=step_results,
            total_duration_ms=_elapsed_ms(started),
        )


def define_pipeline(name: str) -> Pipeline:
    """Create a new, empty pipeline."""
    return Pipeline(name)

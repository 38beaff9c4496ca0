"""Build a small pipeline on the step executor.

Each step receives the accumulated context and returns a StepResult. A
step that keeps failing halts the run; the executor itself persists
nothing.
"""

import asyncio
import random

from quillflow import StepResult, define_pipeline
from quillflow.contracts import PipelineContext


async def pick_topic(context: PipelineContext) -> StepResult:
    return StepResult.ok({"topic": context["title"].lower()})


async def flaky_outline(context: PipelineContext) -> StepResult:
    if random.random() < 0.5:
        return StepResult.failed(f"outline service busy (attempt {context.attempt})")
    return StepResult.ok(["Intro", f"Why {context['pick_topic']['topic']}", "Wrap-up"])


async def main() -> None:
    pipeline = (
        define_pipeline("outline-only")
        .step("pick_topic", pick_topic)
        .step("outline", flaky_outline, retries=4, retry_delay=0.1)
    )
    result = await pipeline.run({"request_id": 1, "tenant_id": 1, "title": "Async Standups"})
    if result.success:
        print(f"Outline: {result.context['outline']}")
    else:
        print(f"Failed: {result.error}")


if __name__ == "__main__":
    asyncio.run(main())

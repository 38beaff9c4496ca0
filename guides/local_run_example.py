"""Draft and publish one article end to end in a single process.

This example demonstrates how to:
1. Register a tenant with publishing credentials
2. Schedule a content request and let the scheduler queue it
3. Run a worker until the request reaches a terminal status

Set OPENAI_API_KEY (and optionally TAVILY_API_KEY, EXA_API_KEY and
RUNWARE_API_KEY) before running. Without WordPress credentials the article
finishes as draft_ready.
"""

import asyncio
import logging

from quillflow import (
    ContentScheduler,
    ContentWorker,
    InMemoryJobQueue,
    QuillflowConfig,
    build_services,
    get_repository,
)

logging.basicConfig(level=logging.INFO)


async def main() -> None:
    config = QuillflowConfig(
        tenants={
            1: {
                "business_name": "Acme Analytics",
                "brand_voice": "Friendly and precise",
                "icp_profile": {"role": "Head of Data", "company_size": "50-200"},
            }
        }
    )
    repository = get_repository(config=config)
    queue = InMemoryJobQueue(backoff_delay=1.0)
    scheduler = ContentScheduler(repository, queue)
    worker = ContentWorker.from_services(queue, build_services(config, repository))

    request_id = await scheduler.add_content(1, "How small data teams ship dashboards faster")
    await scheduler.tick()
    await worker.start(lifespan=300)

    record = await repository.get_request(request_id)
    print(f"Request {record.id} finished as {record.status.value} at step {record.current_step}")
    for entry in await repository.list_execution_logs(request_id):
        print(f"  {entry.step_name} #{entry.attempt}: {entry.duration_ms}ms success={entry.success}")


if __name__ == "__main__":
    asyncio.run(main())

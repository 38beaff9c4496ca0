"""Multimedia pipeline tests."""

import pytest

from quillflow.collaborators.base import PublishResult
from quillflow.constants import (
    ASSEMBLY,
    DIRECTIVE_ASSEMBLY,
    DIRECTIVE_VISUAL,
    IMAGE_GENERATION,
    MULTIMEDIA_STEPS,
    PUBLISH,
    VIDEO_CURATION,
    VISUAL_DIRECTION,
)
from quillflow.pipelines import build_multimedia_pipeline
from quillflow.pipelines.multimedia import NOT_DEPLOYED_REASON
from quillflow.pipelines.outputs import ContentOutline
from tests.fixtures.collaborators import (
    DRAFT_TEXT,
    TENANT_ID,
    UNPUBLISHED_TENANT_ID,
    FakeImages,
    FakePublisher,
    ScriptedGenerator,
    make_services,
)

OUTLINE = {
    "seo_title": "Remote Work Playbook",
    "meta_title": "Remote Work",
    "meta_description": "How to run a remote team",
    "lsi_keywords": ["async", "remote"],
}


async def _run(services, tenant_id=TENANT_ID, outline=None):
    record = await services.repository.create_request(tenant_id, "Remote Work")
    result = await build_multimedia_pipeline(services).run(
        {
            "request_id": record.id,
            "tenant_id": tenant_id,
            "title": record.title,
            "final_content": DRAFT_TEXT,
            "content_outline": OUTLINE if outline is None else outline,
        }
    )
    return record.id, result


@pytest.mark.asyncio
async def test_multimedia_pipeline_publishes_article(services):
    request_id, result = await _run(services)

    assert result.success, result.error
    published = result.context[PUBLISH]
    assert published.deployed
    assert published.published_location == "https://blog.example.com/p/1"
    assert published.post_id == 1
    assert published.html_content == "<h1>Remote Work</h1>[IMAGE_1]"

    credentials, article = services.publisher.calls[0]
    assert credentials.site_url == "https://blog.example.com"
    assert article.title == "Remote Work Playbook"
    assert article.tags == ["async", "remote"]
    assert article.categories == ["Blog"]
    assert article.seo_title == "Remote Work"
    assert article.seo_description == "How to run a remote team"
    assert [image.alt_text for image in article.images] == ["Home office", "Chat"]

    repository = services.repository
    assert (await repository.get_request(request_id)).current_step == 10
    logs = await repository.list_execution_logs(request_id)
    assert [entry.step_name for entry in logs] == list(MULTIMEDIA_STEPS)


@pytest.mark.asyncio
async def test_video_curation_searches_limited_topics(repository):
    services = make_services(repository)

    _, result = await _run(services)

    videos = result.context[VIDEO_CURATION]
    assert videos.key_topics == ["Why async", "Tools", "Rituals"]
    assert videos.recommended_videos[0]["title"] == "Async 101"
    queries = [query for query, _ in services.video_search.queries]
    assert queries == [
        "Why async tutorial video site:youtube.com",
        "Tools tutorial video site:youtube.com",
    ]


@pytest.mark.asyncio
async def test_image_prompts_carry_style_suffix(services):
    _, result = await _run(services)

    images = result.context[IMAGE_GENERATION]
    assert len(images.images) == 2
    assert images.skipped == 0
    assert all(prompt.endswith("cinematic lighting") for prompt in services.images.prompts)
    assert images.images[0].prompt == "A calm home office"


@pytest.mark.asyncio
async def test_failed_images_are_skipped(repository):
    services = make_services(repository, images=FakeImages(fail_on=("team chat",)))

    _, result = await _run(services)

    images = result.context[IMAGE_GENERATION]
    assert result.success
    assert [image.alt_text for image in images.images] == ["Home office"]
    assert images.skipped == 1


@pytest.mark.asyncio
async def test_missing_image_generator_skips_all_images(repository):
    services = make_services(repository, images=None)

    _, result = await _run(services)

    assert result.success
    assert result.context[IMAGE_GENERATION].images == []
    assert result.context[IMAGE_GENERATION].skipped == 2


@pytest.mark.asyncio
async def test_unparseable_visual_direction_uses_default(repository):
    services = make_services(
        repository, generator=ScriptedGenerator({DIRECTIVE_VISUAL: "no idea"})
    )

    _, result = await _run(services)

    direction = result.context[VISUAL_DIRECTION]
    assert direction.topics() == ["Main Content"]
    assert len(direction.image_prompts) == 1


@pytest.mark.asyncio
async def test_assembly_falls_back_to_raw_output(repository):
    services = make_services(
        repository, generator=ScriptedGenerator({DIRECTIVE_ASSEMBLY: "<p>Plain html</p>"})
    )

    _, result = await _run(services)

    assembled = result.context[ASSEMBLY]
    assert assembled.raw_output == "<p>Plain html</p>"
    assert assembled.html_content == "<p>Plain html</p>"


@pytest.mark.asyncio
async def test_tenant_without_credentials_is_not_deployed(services):
    _, result = await _run(services, tenant_id=UNPUBLISHED_TENANT_ID)

    published = result.context[PUBLISH]
    assert result.success
    assert not published.deployed
    assert published.reason == NOT_DEPLOYED_REASON
    assert published.published_location is None
    assert services.publisher.calls == []


@pytest.mark.asyncio
async def test_rejected_publish_fails_step(repository):
    publisher = FakePublisher([PublishResult(success=False, error="HTTP 401")])
    services = make_services(repository, publisher=publisher)

    request_id, result = await _run(services)

    assert not result.success
    assert result.failed_step == PUBLISH
    assert "PublishError: HTTP 401" in result.error
    assert len(publisher.calls) == 2
    assert (await repository.get_request(request_id)).current_step == 10


@pytest.mark.asyncio
async def test_outline_may_arrive_as_model(services):
    _, result = await _run(services, outline=ContentOutline(seo_title="From model"))

    _, article = services.publisher.calls[0]
    assert article.title == "From model"

"""Multimedia pipeline: visuals, video, images, assembly and publishing."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..collaborators.base import ArticleImage, ArticlePayload
from ..constants import (
    ASSEMBLY,
    DIRECTIVE_ASSEMBLY,
    DIRECTIVE_VIDEO,
    DIRECTIVE_VISUAL,
    IMAGE_GENERATION,
    PUBLISH,
    VIDEO_CURATION,
    VISUAL_DIRECTION,
)
from ..contracts import PipelineContext
from ..engine import Pipeline, define_pipeline
from ..exceptions import PublishError
from ..utils.parsing import extract_json_object
from .base import PipelineServices, load_output, tracked_step
from .outputs import (
    DEFAULT_IMAGE_PROMPT,
    Assembly,
    ContentOutline,
    ImageAsset,
    ImageGeneration,
    PublishOutcome,
    VideoCuration,
    VisualDirection,
)

logger = logging.getLogger(__name__)

MULTIMEDIA_PIPELINE = "multimedia"
NOT_DEPLOYED_REASON = "No publishing credentials configured"


def _default_direction(_: str) -> Dict[str, Any]:
    return {
        "selected_sections": [{"section_title": "Main Content"}],
        "image_prompts": [DEFAULT_IMAGE_PROMPT.model_dump()],
    }


def _outline(context: PipelineContext) -> ContentOutline:
    outline = context.get("content_outline")
    if isinstance(outline, ContentOutline):
        return outline
    return load_output(ContentOutline, dict(outline or {}))


def build_multimedia_pipeline(services: PipelineServices) -> Pipeline:
    """Build the five-step multimedia pipeline bound to ``services``.

    Initial inputs are ``final_content`` (the reviewed draft text) and
    ``content_outline`` from the drafting pipeline.
    """
    generator = services.generator
    settings = services.settings

    @tracked_step(services, VISUAL_DIRECTION)
    async def visual_direction(context: PipelineContext) -> VisualDirection:
        final_content: str = context["final_content"]
        raw = await generator.generate(
            DIRECTIVE_VISUAL,
            {
                "article_content": final_content[: settings.visual_context_chars],
                "content_outline": _outline(context).to_artifact(),
                "target_sections": settings.target_image_sections,
            },
        )
        return load_output(VisualDirection, extract_json_object(raw, _default_direction))

    @tracked_step(services, VIDEO_CURATION)
    async def video_curation(context: PipelineContext) -> VideoCuration:
        direction: VisualDirection = context[VISUAL_DIRECTION]
        topics = direction.topics()
        search_results: List[Dict[str, Any]] = []
        for topic in topics[: settings.max_video_topics]:
            if services.video_search is None:
                search_results.append({"results": []})
                continue
            try:
                search_results.append(
                    await services.video_search.search(
                        f"{topic} tutorial video site:youtube.com",
                        {"num_results": 3, "type": "neural"},
                    )
                )
            except Exception as e:
                logger.warning(f"[video_curation] Video search failed for topic {topic}: {e}")
                search_results.append({"results": []})

        raw = await generator.generate(
            DIRECTIVE_VIDEO,
            {
                "article_content": context["final_content"][: settings.video_context_chars],
                "key_topics": topics,
                "video_search_results": search_results,
            },
        )
        data = extract_json_object(raw, lambda _: {"recommended_videos": []})
        return load_output(VideoCuration, {**data, "key_topics": topics})

    @tracked_step(services, IMAGE_GENERATION)
    async def image_generation(context: PipelineContext) -> ImageGeneration:
        direction: VisualDirection = context[VISUAL_DIRECTION]
        if not direction.image_prompts:
            logger.warning("[image_generation] No image prompts provided, skipping")
            return ImageGeneration()
        if services.images is None:
            logger.warning("[image_generation] No image generator configured, skipping")
            return ImageGeneration(skipped=len(direction.image_prompts))

        output = ImageGeneration()
        for prompt in direction.image_prompts:
            try:
                image = await services.images.generate(prompt.prompt + settings.image_style_suffix)
            except Exception as e:
                logger.warning(
                    f"[image_generation] Image {prompt.image_number} failed, skipping: {e}"
                )
                output.skipped += 1
                continue
            output.images.append(
                ImageAsset(
                    path=image.local_path,
                    url=image.url,
                    alt_text=prompt.alt_text or "Article image",
                    caption=prompt.caption,
                    placement=prompt.section_placement,
                    prompt=prompt.prompt,
                )
            )
        return output

    @tracked_step(services, ASSEMBLY)
    async def assembly(context: PipelineContext) -> Assembly:
        final_content: str = context["final_content"]
        outline = _outline(context)
        images: ImageGeneration = context[IMAGE_GENERATION]
        videos: VideoCuration = context[VIDEO_CURATION]
        raw = await generator.generate(
            DIRECTIVE_ASSEMBLY,
            {
                "article_content": final_content,
                "content_outline": outline.to_artifact(),
                "image_data": [image.model_dump() for image in images.images],
                "video_recommendations": videos.recommended_videos,
                "seo_requirements": outline.schema_markup,
            },
        )
        data = extract_json_object(raw, lambda text: {"raw_output": text})
        result = load_output(Assembly, data)
        if not result.html_content:
            result.html_content = (raw or "").strip() or final_content
        return result

    @tracked_step(services, PUBLISH)
    async def publish(context: PipelineContext) -> PublishOutcome:
        assembled: Assembly = context[ASSEMBLY]
        html_content = assembled.html_content
        tenant = await services.tenants.get_tenant(context.tenant_id)
        if tenant is None or tenant.publishing is None or services.publisher is None:
            logger.warning(
                f"[publish] Request {context.request_id}: no publishing credentials, "
                "leaving as draft"
            )
            return PublishOutcome(
                deployed=False, reason=NOT_DEPLOYED_REASON, html_content=html_content
            )

        outline = _outline(context)
        images: ImageGeneration = context[IMAGE_GENERATION]
        article = ArticlePayload(
            title=outline.title or context.get("title") or "Untitled Article",
            content=html_content,
            images=[
                ArticleImage(
                    path=image.path, url=image.url, alt_text=image.alt_text, caption=image.caption
                )
                for image in images.images
            ],
            categories=list(settings.default_categories),
            tags=outline.lsi_keywords,
            seo_title=outline.meta_title,
            seo_description=outline.meta_description,
        )
        result = await services.publisher.publish(tenant.publishing, article)
        if not result.success:
            raise PublishError(result.error or "Publishing failed")
        return PublishOutcome(
            deployed=True,
            published_location=result.published_location,
            post_id=result.post_id,
            html_content=html_content,
        )

    pipeline = define_pipeline(MULTIMEDIA_PIPELINE)
    for name, handler in (
        (VISUAL_DIRECTION, visual_direction),
        (VIDEO_CURATION, video_curation),
        (IMAGE_GENERATION, image_generation),
        (ASSEMBLY, assembly),
        (PUBLISH, publish),
    ):
        retries, delay = services.retry_policy(name)
        pipeline.step(name, handler, retries=retries, retry_delay=delay)
    return pipeline

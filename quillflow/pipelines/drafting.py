"""Drafting pipeline: strategy, research, outline, draft and review."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..collaborators.base import SearchClient
from ..constants import (
    DIRECTIVE_DRAFT,
    DIRECTIVE_OUTLINE,
    DIRECTIVE_RESEARCH,
    DIRECTIVE_REVIEW,
    DIRECTIVE_STRATEGY,
    DRAFT,
    OUTLINE,
    RESEARCH,
    REVIEW,
    STRATEGY,
)
from ..contracts import PipelineContext
from ..engine import Pipeline, define_pipeline
from ..exceptions import StepOutputError
from ..utils.parsing import extract_json, extract_json_object
from .base import PipelineServices, load_output, tracked_step
from .outputs import (
    ContentOutline,
    DraftText,
    QualityReview,
    ResearchSynthesis,
    StrategyBrief,
)

logger = logging.getLogger(__name__)

DRAFTING_PIPELINE = "drafting"

STATISTICS_SUFFIXES = ("statistics", "market data trends", "research study findings")
STATISTICS_MARKERS = ("%", "percent", "statistics", "study", "research")


async def _deep_search(client: SearchClient, questions: List[str]) -> List[Dict[str, Any]]:
    results = []
    for question in questions:
        data = await client.search(question, {"search_depth": "advanced", "max_results": 5})
        results.append({"query": question, "data": data})
    return results


async def _web_search(client: SearchClient, query: str) -> Dict[str, Any]:
    return await client.search(query, {"num_results": 5})


async def _competitors(client: SearchClient, query: str) -> List[Dict[str, Any]]:
    data = await client.search(f'"{query}" site:*.com OR site:*.org', {"max_results": 3})
    return [
        {
            "title": item.get("title", ""),
            "url": item.get("url", ""),
            "content_preview": (item.get("content") or "")[:500],
            "score": item.get("score"),
        }
        for item in data.get("results", [])
    ]


async def _statistics(client: SearchClient, topic: str) -> Dict[str, Any]:
    sources = []
    for suffix in STATISTICS_SUFFIXES:
        data = await client.search(f"{topic} {suffix}", {"max_results": 5})
        for item in data.get("results", []):
            content = (item.get("content") or "").lower()
            if any(marker in content for marker in STATISTICS_MARKERS):
                sources.append(item)
    return {"topic": topic, "statistical_sources": sources[:3]}


async def _degraded(
    role: str,
    client: Optional[SearchClient],
    run: Callable[[SearchClient], Awaitable[Any]],
    empty: Any,
) -> Any:
    if client is None:
        return empty
    try:
        return await run(client)
    except Exception as e:
        logger.warning(f"[research] {role} search failed, continuing without it: {e}")
        return empty


async def gather_research(
    services: PipelineServices, brief: StrategyBrief, primary_query: str
) -> Dict[str, Any]:
    """Query every research role concurrently; failed roles yield empty results."""
    roles = services.research
    deep, web, competitors, statistics = await asyncio.gather(
        _degraded(
            "deep_search",
            roles.get("deep_search"),
            lambda c: _deep_search(c, brief.research_questions),
            [],
        ),
        _degraded("web_search", roles.get("web_search"), lambda c: _web_search(c, primary_query), {"results": []}),
        _degraded("competitors", roles.get("competitors"), lambda c: _competitors(c, primary_query), []),
        _degraded(
            "statistics",
            roles.get("statistics"),
            lambda c: _statistics(c, primary_query),
            {"statistical_sources": []},
        ),
    )
    return {
        "deep_search": deep,
        "web_search": web,
        "competitors": competitors,
        "statistics": statistics,
    }


def review_decision(review: Dict[str, Any], threshold: float) -> Tuple[float, bool]:
    """Return the review score and whether the draft must be revised."""
    score = review.get("overall_score")
    try:
        score = float(score) if score is not None else threshold
    except (TypeError, ValueError):
        score = threshold
    return score, score < threshold


def build_drafting_pipeline(services: PipelineServices) -> Pipeline:
    """Build the five-step drafting pipeline bound to ``services``."""
    generator = services.generator
    settings = services.settings

    @tracked_step(services, STRATEGY)
    async def strategy(context: PipelineContext) -> StrategyBrief:
        tenant = await services.require_tenant(context.tenant_id)
        raw = await generator.generate(
            DIRECTIVE_STRATEGY,
            {
                "title": context.get("title", ""),
                "business_name": tenant.business_name,
                "icp": tenant.icp_profile,
                "brand_voice": tenant.brand_voice,
            },
        )
        try:
            data = extract_json(raw)
        except ValueError as e:
            raise StepOutputError(f"Invalid JSON response from strategy directive: {e}") from e
        if not isinstance(data, dict):
            raise StepOutputError("Strategy directive did not return a JSON object")
        return load_output(StrategyBrief, data)

    @tracked_step(services, RESEARCH)
    async def research(context: PipelineContext) -> ResearchSynthesis:
        brief: StrategyBrief = context[STRATEGY]
        primary_query = brief.primary_query(context.get("title", ""))
        logger.info(
            f"[research] Request {context.request_id}: "
            f"{len(brief.research_questions)} research question(s)"
        )
        raw_research = await gather_research(services, brief, primary_query)
        raw = await generator.generate(
            DIRECTIVE_RESEARCH,
            {"strategic_brief": brief.to_artifact(), **raw_research},
        )
        fact_sheet = extract_json_object(raw, lambda text: {"raw_research": text})
        return ResearchSynthesis(fact_sheet=fact_sheet, raw_research=raw_research)

    @tracked_step(services, OUTLINE)
    async def outline(context: PipelineContext) -> ContentOutline:
        brief: StrategyBrief = context[STRATEGY]
        findings: ResearchSynthesis = context[RESEARCH]
        raw = await generator.generate(
            DIRECTIVE_OUTLINE,
            {
                "strategic_brief": brief.to_artifact(),
                "research_findings": findings.fact_sheet,
                "primary_keyword": brief.primary_query(context.get("title", "")),
            },
        )
        data = extract_json_object(raw, lambda text: {"raw_outline": text})
        return load_output(ContentOutline, data)

    @tracked_step(services, DRAFT)
    async def draft(context: PipelineContext) -> DraftText:
        findings: ResearchSynthesis = context[RESEARCH]
        text = await generator.generate(
            DIRECTIVE_DRAFT,
            {
                "fact_sheet": findings.fact_sheet,
                "content_outline": context[OUTLINE].to_artifact(),
                "strategic_brief": context[STRATEGY].to_artifact(),
                "brand_voice": await services.brand_voice(context.tenant_id),
            },
        )
        if not text or not text.strip():
            raise StepOutputError("Draft directive returned empty text")
        return DraftText(draft=text)

    @tracked_step(services, REVIEW)
    async def review(context: PipelineContext) -> QualityReview:
        findings: ResearchSynthesis = context[RESEARCH]
        draft_text: DraftText = context[DRAFT]
        content_outline = context[OUTLINE].to_artifact()
        brand_voice = await services.brand_voice(context.tenant_id)

        raw = await generator.generate(
            DIRECTIVE_REVIEW,
            {
                "draft_content": draft_text.draft,
                "content_outline": content_outline,
                "research_facts": findings.fact_sheet,
                "brand_voice": brand_voice,
            },
        )
        threshold = settings.quality_threshold
        feedback = extract_json_object(
            raw, lambda text: {"overall_score": threshold, "raw_review": text}
        )
        score, revise = review_decision(feedback, threshold)
        if not revise:
            return QualityReview(
                review=feedback, overall_score=score, final_draft=draft_text.draft
            )

        logger.info(
            f"[review] Request {context.request_id}: score {score} below "
            f"{threshold}, requesting revision"
        )
        revised = await generator.generate(
            DIRECTIVE_DRAFT,
            {
                "original_draft": draft_text.draft,
                "editor_feedback": feedback,
                "fact_sheet": findings.fact_sheet,
                "content_outline": content_outline,
                "brand_voice": brand_voice,
                "revision_required": True,
            },
        )
        if not revised or not revised.strip():
            raise StepOutputError("Revision returned empty text")
        return QualityReview(
            review=feedback,
            overall_score=score,
            final_draft=revised,
            revision_performed=True,
        )

    pipeline = define_pipeline(DRAFTING_PIPELINE)
    for name, handler in (
        (STRATEGY, strategy),
        (RESEARCH, research),
        (OUTLINE, outline),
        (DRAFT, draft),
        (REVIEW, review),
    ):
        retries, delay = services.retry_policy(name)
        pipeline.step(name, handler, retries=retries, retry_delay=delay)
    return pipeline

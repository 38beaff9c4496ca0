"""Wire collaborators and pipelines from configuration."""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from .collaborators.base import SearchClient
from .collaborators.content import AgentContentGenerator
from .collaborators.images import RunwareImageGenerator
from .collaborators.search import ExaSearchClient, TavilySearchClient
from .collaborators.tenants import StaticTenantDirectory
from .collaborators.wordpress import WordPressPublisher
from .config import QuillflowConfig, load_config
from .persistence import ContentRepository, get_repository
from .pipelines.base import PipelineServices

logger = logging.getLogger(__name__)


def build_services(
    config: Optional[QuillflowConfig] = None,
    repository: Optional[ContentRepository] = None,
) -> PipelineServices:
    """Build pipeline services from ``config`` and provider keys in the environment.

    Tavily backs the deep-search, competitor and statistics research roles;
    Exa backs web search and video search. A provider without an API key is
    left out and its steps degrade to empty results.
    """
    config = config or load_config()
    repository = repository or get_repository(config=config)
    providers = config.providers
    timeout = providers.request_timeout

    research: Dict[str, SearchClient] = {}
    video_search: Optional[SearchClient] = None

    tavily_key = os.getenv("TAVILY_API_KEY")
    if tavily_key:
        tavily = TavilySearchClient(tavily_key, timeout=timeout)
        research.update(deep_search=tavily, competitors=tavily, statistics=tavily)
    else:
        logger.warning("TAVILY_API_KEY not set; deep search, competitor and statistics research disabled")

    exa_key = os.getenv("EXA_API_KEY")
    if exa_key:
        exa = ExaSearchClient(exa_key, timeout=timeout)
        research["web_search"] = exa
        video_search = exa
    else:
        logger.warning("EXA_API_KEY not set; web and video search disabled")

    runware_key = os.getenv("RUNWARE_API_KEY")
    images = (
        RunwareImageGenerator(
            runware_key, output_dir=providers.image_output_dir, timeout=timeout
        )
        if runware_key
        else None
    )

    return PipelineServices(
        repository=repository,
        generator=AgentContentGenerator(
            model=providers.model,
            directives_path=providers.directives_path,
            temperature=providers.temperature,
        ),
        tenants=StaticTenantDirectory.from_config(config),
        research=research,
        video_search=video_search,
        images=images,
        publisher=WordPressPublisher(timeout=timeout),
        settings=config.pipeline,
    )

"""Web search collaborators backed by Tavily and Exa."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .http import HTTPCollaborator

EXCLUDED_DOMAINS = ["pinterest.com", "facebook.com", "twitter.com"]


class TavilySearchClient(HTTPCollaborator):
    """Search through the Tavily API.

    Options: ``search_depth`` (default ``advanced``), ``max_results``
    (default 5), ``include_domains`` and ``exclude_domains``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tavily.com",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, transport=transport)
        self.api_key = api_key

    async def search(
        self, query: str, options: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        options = options or {}
        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": options.get("search_depth", "advanced"),
            "include_raw_content": options.get("include_raw_content", True),
            "max_results": options.get("max_results", 5),
            "include_domains": options.get("include_domains", []),
            "exclude_domains": options.get("exclude_domains", EXCLUDED_DOMAINS),
        }
        return await self._post_json("/search", payload)


class ExaSearchClient(HTTPCollaborator):
    """Neural search through the Exa API.

    Options: ``num_results`` (default 10), ``type`` (``neural`` or
    ``keyword``), ``include_domains``, ``exclude_domains`` and
    ``start_published_date``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.exa.ai",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    async def search(
        self, query: str, options: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        options = options or {}
        payload: Dict[str, Any] = {
            "query": query,
            "numResults": options.get("num_results", 10),
            "includeDomains": options.get("include_domains", []),
            "excludeDomains": options.get("exclude_domains", EXCLUDED_DOMAINS),
            "useAutoprompt": options.get("use_autoprompt", True),
            "type": options.get("type", "neural"),
            "contents": {"text": True},
        }
        if options.get("start_published_date"):
            payload["startPublishedDate"] = options["start_published_date"]
        return await self._post_json("/search", payload)


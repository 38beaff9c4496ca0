"""Publishing collaborator for the WordPress REST API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import CollaboratorError
from .base import ArticlePayload, PublishingCredentials, PublishResult

logger = logging.getLogger(__name__)


class WordPressPublisher:
    """Create draft posts on a tenant's WordPress site.

    Images are uploaded to the media library first and substituted for the
    ``[IMAGE_n]`` placeholders in the article content. Categories and tags
    are resolved by name, creating any that do not exist yet.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    def _client(self, credentials: PublishingCredentials) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{credentials.site_url.rstrip('/')}/wp-json/wp/v2",
            auth=(credentials.username, credentials.app_password),
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _check(response: httpx.Response) -> Any:
        if not response.is_success:
            raise CollaboratorError(
                f"WordPress returned HTTP {response.status_code} for {response.url}",
                status_code=response.status_code,
            )
        return response.json()

    async def _upload_media(
        self, client: httpx.AsyncClient, path: str, alt_text: str
    ) -> Dict[str, Any]:
        file_path = Path(path)
        response = await client.post(
            "/media",
            files={"file": (file_path.name, file_path.read_bytes())},
            data={"alt_text": alt_text},
        )
        data = self._check(response)
        return {"id": data["id"], "url": data.get("source_url", ""), "alt_text": alt_text}

    async def _resolve_terms(
        self, client: httpx.AsyncClient, endpoint: str, names: List[str]
    ) -> List[int]:
        if not names:
            return []
        existing = self._check(await client.get(endpoint, params={"per_page": 100}))
        by_name = {item["name"].lower(): item["id"] for item in existing}
        ids = []
        for name in names:
            term_id = by_name.get(name.lower())
            if term_id is None:
                created = self._check(await client.post(endpoint, json={"name": name}))
                term_id = created["id"]
                by_name[name.lower()] = term_id
            ids.append(term_id)
        return ids

    @staticmethod
    def replace_placeholders(content: str, uploaded: List[Dict[str, Any]]) -> str:
        for index, image in enumerate(uploaded, start=1):
            tag = f'<img src="{image["url"]}" alt="{image["alt_text"]}" />'
            content = content.replace(f"[IMAGE_{index}]", tag, 1)
        return content

    async def publish(
        self, credentials: PublishingCredentials, article: ArticlePayload
    ) -> PublishResult:
        try:
            async with self._client(credentials) as client:
                uploaded = [
                    await self._upload_media(client, image.path, image.alt_text)
                    for image in article.images
                    if image.path
                ]
                categories = await self._resolve_terms(client, "/categories", article.categories)
                tags = await self._resolve_terms(client, "/tags", article.tags)
                post: Dict[str, Any] = {
                    "title": article.title,
                    "content": self.replace_placeholders(article.content, uploaded),
                    "status": "draft",
                    "categories": categories,
                    "tags": tags,
                    "meta": {
                        "_yoast_wpseo_title": article.seo_title,
                        "_yoast_wpseo_metadesc": article.seo_description,
                        "_rank_math_title": article.seo_title,
                        "_rank_math_description": article.seo_description,
                    },
                }
                if uploaded:
                    post["featured_media"] = uploaded[0]["id"]
                created = self._check(await client.post("/posts", json=post))
        except (CollaboratorError, httpx.HTTPError, OSError) as e:
            logger.error(f"WordPress deployment to {credentials.site_url} failed: {e}")
            return PublishResult(success=False, error=str(e))

        logger.info(f"Created WordPress draft {created.get('id')} on {credentials.site_url}")
        return PublishResult(
            success=True,
            published_location=created.get("link"),
            post_id=created.get("id"),
            uploaded_images=uploaded,
        )

"""Contracts for the external services invoked by pipeline steps."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ..constants import DEFAULT_BRAND_VOICE


class PublishingCredentials(BaseModel):
    """Credentials for a tenant's publishing target."""

    site_url: str
    username: str
    app_password: str


class TenantProfile(BaseModel):
    """Tenant attributes the pipelines read."""

    id: Optional[int] = None
    business_name: str = ""
    brand_voice: str = DEFAULT_BRAND_VOICE
    icp_profile: Dict[str, Any] = Field(default_factory=dict)
    publishing: Optional[PublishingCredentials] = None


class GeneratedImage(BaseModel):
    url: str = ""
    local_path: str = ""
    prompt: str = ""


class ArticleImage(BaseModel):
    path: str = ""
    url: str = ""
    alt_text: str = ""
    caption: str = ""


class ArticlePayload(BaseModel):
    """Article handed to the publishing collaborator."""

    title: str
    content: str
    images: List[ArticleImage] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None


class PublishResult(BaseModel):
    success: bool
    published_location: Optional[str] = None
    post_id: Optional[int] = None
    uploaded_images: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


@runtime_checkable
class ContentGenerator(Protocol):
    """Text-in/text-out generation driven by a named directive."""

    async def generate(self, directive: str, context: Dict[str, Any]) -> str:
        """Return generated text for ``directive`` given ``context``."""


@runtime_checkable
class SearchClient(Protocol):
    async def search(
        self, query: str, options: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Return structured search results for ``query``."""


@runtime_checkable
class ImageGenerator(Protocol):
    async def generate(self, prompt: str) -> GeneratedImage:
        """Generate one image for ``prompt``."""


@runtime_checkable
class Publisher(Protocol):
    async def publish(
        self, credentials: PublishingCredentials, article: ArticlePayload
    ) -> PublishResult:
        """Publish ``article`` and report where it landed."""


@runtime_checkable
class TenantDirectory(Protocol):
    async def get_tenant(self, tenant_id: int) -> Optional[TenantProfile]:
        """Return the tenant profile or ``None`` when unknown."""

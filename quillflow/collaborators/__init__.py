"""Collaborators invoked by pipeline steps."""

from __future__ import annotations

from .base import (
    ArticleImage,
    ArticlePayload,
    ContentGenerator,
    GeneratedImage,
    ImageGenerator,
    Publisher,
    PublishingCredentials,
    PublishResult,
    SearchClient,
    TenantDirectory,
    TenantProfile,
)
from .tenants import StaticTenantDirectory

__all__ = [
    "ArticleImage",
    "ArticlePayload",
    "ContentGenerator",
    "GeneratedImage",
    "ImageGenerator",
    "PublishResult",
    "Publisher",
    "PublishingCredentials",
    "SearchClient",
    "StaticTenantDirectory",
    "TenantDirectory",
    "TenantProfile",
]

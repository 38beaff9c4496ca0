"""Typed outputs of every pipeline step, tagged by step name."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import (
    ASSEMBLY,
    DRAFT,
    IMAGE_GENERATION,
    OUTLINE,
    PUBLISH,
    RESEARCH,
    REVIEW,
    STRATEGY,
    VIDEO_CURATION,
    VISUAL_DIRECTION,
)


class StepOutput(BaseModel):
    """Base for step outputs; unknown keys returned by providers are kept."""

    model_config = ConfigDict(extra="allow")

    def to_artifact(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class StrategyBrief(StepOutput):
    step: Literal["strategy"] = STRATEGY
    strategic_hook: str = ""
    research_questions: List[str] = Field(default_factory=list)

    def primary_query(self, fallback: str = "") -> str:
        if self.research_questions:
            return self.research_questions[0]
        return self.strategic_hook or fallback


class ResearchSynthesis(StepOutput):
    step: Literal["research"] = RESEARCH
    fact_sheet: Dict[str, Any] = Field(default_factory=dict)
    raw_research: Dict[str, Any] = Field(default_factory=dict)


class ContentOutline(StepOutput):
    step: Literal["outline"] = OUTLINE
    seo_title: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    lsi_keywords: List[str] = Field(default_factory=list)
    schema_markup: Dict[str, Any] = Field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        return self.seo_title or self.meta_title


class DraftText(StepOutput):
    step: Literal["draft"] = DRAFT
    draft: str


class QualityReview(StepOutput):
    step: Literal["review"] = REVIEW
    review: Dict[str, Any] = Field(default_factory=dict)
    overall_score: float
    final_draft: str
    revision_performed: bool = False


class ImagePrompt(BaseModel):
    model_config = ConfigDict(extra="allow")

    image_number: int = 1
    section_placement: str = ""
    prompt: str
    alt_text: str = "Article image"
    caption: str = ""


DEFAULT_IMAGE_PROMPT = ImagePrompt(
    image_number=1,
    section_placement="Introduction",
    prompt="Professional business concept illustration, modern clean design, 16:9 aspect ratio",
    alt_text="Article illustration",
)


class VisualDirection(StepOutput):
    step: Literal["visual_direction"] = VISUAL_DIRECTION
    selected_sections: List[Dict[str, Any]] = Field(default_factory=list)
    image_prompts: List[ImagePrompt] = Field(default_factory=list)

    def topics(self) -> List[str]:
        titles = [
            str(section["section_title"])
            for section in self.selected_sections
            if section.get("section_title")
        ]
        return titles or ["main topic"]


class VideoCuration(StepOutput):
    step: Literal["video_curation"] = VIDEO_CURATION
    key_topics: List[str] = Field(default_factory=list)
    recommended_videos: List[Dict[str, Any]] = Field(default_factory=list)


class ImageAsset(BaseModel):
    path: str = ""
    url: str = ""
    alt_text: str = "Article image"
    caption: str = ""
    placement: str = ""
    prompt: str = ""


class ImageGeneration(StepOutput):
    step: Literal["image_generation"] = IMAGE_GENERATION
    images: List[ImageAsset] = Field(default_factory=list)
    skipped: int = 0


class Assembly(StepOutput):
    step: Literal["assembly"] = ASSEMBLY
    html_content: str = ""
    raw_output: Optional[str] = None


class PublishOutcome(StepOutput):
    step: Literal["publish"] = PUBLISH
    deployed: bool
    reason: Optional[str] = None
    published_location: Optional[str] = None
    post_id: Optional[int] = None
    html_content: str = ""

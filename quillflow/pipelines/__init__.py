"""Concrete pipelines built on the step executor."""

from __future__ import annotations

from .base import PipelineServices, tracked_step
from .drafting import DRAFTING_PIPELINE, build_drafting_pipeline, review_decision
from .multimedia import MULTIMEDIA_PIPELINE, build_multimedia_pipeline

__all__ = [
    "DRAFTING_PIPELINE",
    "MULTIMEDIA_PIPELINE",
    "PipelineServices",
    "build_drafting_pipeline",
    "build_multimedia_pipeline",
    "review_decision",
    "tracked_step",
]

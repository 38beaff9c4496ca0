"""Shared constants for quillflow."""

from __future__ import annotations

from enum import Enum


class RequestStatus(str, Enum):
    """Lifecycle states of a content request."""

    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETE = "complete"
    DRAFT_READY = "draft_ready"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {RequestStatus.COMPLETE, RequestStatus.DRAFT_READY, RequestStatus.FAILED}
)

# Drafting pipeline steps
STRATEGY = "strategy"
RESEARCH = "research"
OUTLINE = "outline"
DRAFT = "draft"
REVIEW = "review"

# Multimedia pipeline steps
VISUAL_DIRECTION = "visual_direction"
VIDEO_CURATION = "video_curation"
IMAGE_GENERATION = "image_generation"
ASSEMBLY = "assembly"
PUBLISH = "publish"

DRAFTING_STEPS = (STRATEGY, RESEARCH, OUTLINE, DRAFT, REVIEW)
MULTIMEDIA_STEPS = (VISUAL_DIRECTION, VIDEO_CURATION, IMAGE_GENERATION, ASSEMBLY, PUBLISH)

# current_step ordinal written by each step; 0 means "not started"
STEP_INDEX = {
    name: index
    for index, name in enumerate(DRAFTING_STEPS + MULTIMEDIA_STEPS, start=1)
}

# (retries, retry_delay seconds) per step
STEP_RETRY_POLICY = {
    STRATEGY: (2, 2.0),
    RESEARCH: (2, 3.0),
    OUTLINE: (2, 2.0),
    DRAFT: (2, 3.0),
    REVIEW: (1, 0.0),
    VISUAL_DIRECTION: (2, 2.0),
    VIDEO_CURATION: (2, 2.0),
    IMAGE_GENERATION: (1, 0.0),
    ASSEMBLY: (2, 2.0),
    PUBLISH: (2, 3.0),
}

# Directive names understood by the content generator
DIRECTIVE_STRATEGY = "01_strategy"
DIRECTIVE_RESEARCH = "02_research"
DIRECTIVE_OUTLINE = "03_outline"
DIRECTIVE_DRAFT = "04_draft"
DIRECTIVE_REVIEW = "05_review"
DIRECTIVE_VISUAL = "06_visual_direction"
DIRECTIVE_VIDEO = "07_video_curation"
DIRECTIVE_ASSEMBLY = "08_assembly"

DEFAULT_QUALITY_THRESHOLD = 85.0
DEFAULT_BRAND_VOICE = "Professional"
DEFAULT_STEP_RETRIES = 1
DEFAULT_RETRY_DELAY = 1.0

DEFAULT_JOB_ATTEMPTS = 3
DEFAULT_JOB_BACKOFF = 5.0
DEFAULT_QUEUE_NAME = "content-jobs"

DEFAULT_POLL_INTERVAL = 60.0
DEFAULT_SCHEDULER_BATCH = 5
DEFAULT_BULK_INTERVAL_HOURS = 24
QUEUE_STATUS_LIMIT = 50

RECURRING_DEFAULT_COUNT = 12
RECURRING_MAX_COUNT = 52

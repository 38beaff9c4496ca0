"""quillflow: multi-tenant content pipeline orchestration."""

from .config import QuillflowConfig, load_config
from .contracts import ContentJob, PipelineContext, PipelineResult, StepResult
from .engine import Pipeline, define_pipeline
from .operations import ContentOperations
from .persistence import get_repository
from .pipelines import PipelineServices, build_drafting_pipeline, build_multimedia_pipeline
from .queues import InMemoryJobQueue, get_queue
from .scheduler import ContentScheduler
from .services import build_services
from .worker import ContentWorker, JobOutcome

__version__ = "0.1.0"
__all__ = [
    "ContentJob",
    "ContentOperations",
    "ContentScheduler",
    "ContentWorker",
    "InMemoryJobQueue",
    "JobOutcome",
    "Pipeline",
    "PipelineContext",
    "PipelineResult",
    "PipelineServices",
    "QuillflowConfig",
    "StepResult",
    "build_drafting_pipeline",
    "build_multimedia_pipeline",
    "build_services",
    "define_pipeline",
    "get_queue",
    "get_repository",
    "load_config",
]

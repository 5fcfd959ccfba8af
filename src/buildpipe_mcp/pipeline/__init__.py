"""Pipeline orchestration for project services.

Provides restore → build → package sequencing with:
- Per-service async lock with state machine
- Concurrent runs across services
- Lifecycle events around each stage
- Cooperative cancellation and timeouts
"""

from .manager import PipelineManager
from .policy import PathPolicy
from .session import ServicePipeline
from .state import ALL_STAGES, PipelineResult, PipelineStage, PipelineState

__all__ = [
    "PipelineManager",
    "ServicePipeline",
    "PathPolicy",
    "PipelineResult",
    "PipelineStage",
    "PipelineState",
    "ALL_STAGES",
]

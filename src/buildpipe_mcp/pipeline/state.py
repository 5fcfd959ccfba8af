"""Pipeline state management and result types.

State machine for service pipelines:
IDLE → RESTORING → BUILDING → PACKAGING → READY | FAILED | CANCELLED
     ↑_____________________________________________|
READY → PUSHING → READY | FAILED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..project.results import (
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)


class PipelineState(str, Enum):
    """Service pipeline state machine states."""

    IDLE = "idle"
    RESTORING = "restoring"
    BUILDING = "building"
    PACKAGING = "packaging"
    PUSHING = "pushing"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineStage(str, Enum):
    """Pipeline stages in execution order."""

    RESTORE = "restore"
    BUILD = "build"
    PACKAGE = "package"

    @property
    def running_state(self) -> PipelineState:
        return {
            PipelineStage.RESTORE: PipelineState.RESTORING,
            PipelineStage.BUILD: PipelineState.BUILDING,
            PipelineStage.PACKAGE: PipelineState.PACKAGING,
        }[self]


ALL_STAGES: tuple[PipelineStage, ...] = (
    PipelineStage.RESTORE,
    PipelineStage.BUILD,
    PipelineStage.PACKAGE,
)


def order_stages(stages: list[PipelineStage] | tuple[PipelineStage, ...]) -> list[PipelineStage]:
    """Requested stages, de-duplicated, in pipeline order."""
    requested = {PipelineStage(s) for s in stages}
    return [stage for stage in ALL_STAGES if stage in requested]


@dataclass
class PipelineResult:
    """Result of running pipeline stages for one service."""

    service: str
    success: bool
    state: PipelineState
    stages: list[PipelineStage] = field(default_factory=list)
    restore: ServiceRestoreResult | None = None
    build: ServiceBuildResult | None = None
    package: ServicePackageResult | None = None
    error: str | None = None
    error_details: dict[str, Any] | None = None
    progress: list[ServiceProgress] = field(default_factory=list)
    duration_ms: float = 0.0
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "service": self.service,
            "success": self.success,
            "state": self.state.value,
            "stages": [s.value for s in self.stages],
            "durationMs": round(self.duration_ms, 2),
            "progress": [p.message for p in self.progress],
        }
        if self.restore is not None:
            result["restore"] = self.restore.to_dict()
        if self.build is not None:
            result["build"] = self.build.to_dict()
        if self.package is not None:
            result["package"] = self.package.to_dict()
        if self.error:
            result["error"] = self.error
        if self.error_details:
            result["errorDetails"] = self.error_details
        if self.cancelled:
            result["cancelled"] = True
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK] Pipeline succeeded" if self.success else "[FAILED] Pipeline failed"
        if self.cancelled:
            status = "[CANCELLED] Pipeline cancelled"

        parts = [
            status,
            f"  Service: {self.service}",
            f"  Stages: {', '.join(s.value for s in self.stages)}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.build is not None:
            parts.append(f"  Build output: {self.build.build_output_path}")
        if self.package is not None:
            parts.append(f"  Package: {self.package.package_path}")
        if self.error:
            parts.append(f"  Error: {self.error}")
        return "\n".join(parts)

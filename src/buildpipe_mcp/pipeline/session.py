"""Service pipeline - per-service state machine driving a framework backend.

State machine:
IDLE → RESTORING → BUILDING → PACKAGING → READY | FAILED | CANCELLED
     ↑_____________________________________________|

Each stage runs as a TaskWithProgress. Progress is drained, logged and
forwarded before the stage result is read.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import ConfigurationError, PipelineError, TaskCancelledError
from ..project.config import ServiceConfig, ServiceEvent
from ..project.framework import FrameworkService
from ..project.results import (
    DockerPackageResult,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)
from ..tasks import TaskWithProgress
from ..toolchain import DockerCli
from .state import ALL_STAGES, PipelineResult, PipelineStage, PipelineState, order_stages

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PipelineStage, ServiceProgress], Awaitable[None]]

_PRE_EVENTS = {
    PipelineStage.RESTORE: ServiceEvent.PRERESTORE,
    PipelineStage.BUILD: ServiceEvent.PREBUILD,
    PipelineStage.PACKAGE: ServiceEvent.PREPACKAGE,
}
_POST_EVENTS = {
    PipelineStage.RESTORE: ServiceEvent.POSTRESTORE,
    PipelineStage.BUILD: ServiceEvent.POSTBUILD,
    PipelineStage.PACKAGE: ServiceEvent.POSTPACKAGE,
}


class ServicePipeline:
    """Per-service pipeline session with state machine.

    Thread-safe via asyncio.Lock. Only one run at a time per service.
    """

    def __init__(self, service_config: ServiceConfig, framework: FrameworkService):
        self._service = service_config
        self._framework = framework
        self._state = PipelineState.IDLE
        self._lock = asyncio.Lock()
        self._current_task: TaskWithProgress[Any, ServiceProgress] | None = None
        self._cancel_requested = False
        self._initialized = False
        self._last_result: PipelineResult | None = None
        self._state_listeners: list[Callable[[PipelineState], None]] = []
        # Last successful stage outputs
        self._restore_output: ServiceRestoreResult | None = None
        self._build_output: ServiceBuildResult | None = None
        self._package_output: ServicePackageResult | None = None

    @property
    def name(self) -> str:
        return self._service.name

    @property
    def service_config(self) -> ServiceConfig:
        return self._service

    @property
    def framework(self) -> FrameworkService:
        return self._framework

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def last_result(self) -> PipelineResult | None:
        return self._last_result

    @property
    def package_output(self) -> ServicePackageResult | None:
        """Last successful package result."""
        return self._package_output

    @property
    def is_running(self) -> bool:
        return self._state in (
            PipelineState.RESTORING,
            PipelineState.BUILDING,
            PipelineState.PACKAGING,
            PipelineState.PUSHING,
        )

    def on_state_change(self, listener: Callable[[PipelineState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: PipelineState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"[{self.name}] Pipeline state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        await self._framework.initialize(self._service)
        self._initialized = True

    def _start_stage(
        self,
        stage: PipelineStage,
        restore_output: ServiceRestoreResult | None,
        build_output: ServiceBuildResult | None,
    ) -> TaskWithProgress[Any, ServiceProgress]:
        if stage == PipelineStage.RESTORE:
            return self._framework.restore(self._service)
        if stage == PipelineStage.BUILD:
            return self._framework.build(self._service, restore_output)
        return self._framework.package(self._service, build_output)

    async def _run_stage(
        self,
        stage: PipelineStage,
        result: PipelineResult,
        on_progress: ProgressCallback | None,
    ) -> Any:
        if self._cancel_requested:
            raise TaskCancelledError(f"Pipeline for '{self.name}' was cancelled")

        self._set_state(stage.running_state)
        await self._service.raise_event(_PRE_EVENTS[stage])

        restore_output = result.restore or self._restore_output
        build_output = result.build or self._build_output
        task = self._start_stage(stage, restore_output, build_output)
        self._current_task = task

        try:
            async for event in task.progress():
                logger.info(f"[{self.name}] {stage.value}: {event.message}")
                result.progress.append(event)
                if on_progress is not None:
                    await on_progress(stage, event)
            output = await task.wait()
        finally:
            self._current_task = None
            if not task.done:
                # Run abandoned before the stage finished
                task.cancel()

        await self._service.raise_event(_POST_EVENTS[stage], result=output)
        return output

    async def _run_stages(
        self,
        stages: list[PipelineStage],
        result: PipelineResult,
        on_progress: ProgressCallback | None,
    ) -> None:
        for stage in stages:
            output = await self._run_stage(stage, result, on_progress)
            if stage == PipelineStage.RESTORE:
                result.restore = self._restore_output = output
            elif stage == PipelineStage.BUILD:
                result.build = self._build_output = output
            else:
                result.package = self._package_output = output

    async def run(
        self,
        stages: list[PipelineStage] | tuple[PipelineStage, ...] = ALL_STAGES,
        on_progress: ProgressCallback | None = None,
        timeout: float | None = None,
    ) -> PipelineResult:
        """Run pipeline stages in order.

        Stages not requested are skipped; later stages then use the last
        successful outputs of earlier stages (or None).

        Args:
            stages: Stages to run
            on_progress: Async callback receiving each progress event
            timeout: Overall timeout in seconds

        Returns:
            Pipeline result (failures are reported, not raised)

        Raises:
            PipelineError: On unexpected errors
        """
        async with self._lock:
            self._cancel_requested = False
            ordered = order_stages(stages)
            result = PipelineResult(
                service=self.name,
                success=False,
                state=PipelineState.FAILED,
                stages=ordered,
            )
            start_time = time.perf_counter()

            try:
                await self._ensure_initialized()
                if timeout is not None:
                    await asyncio.wait_for(
                        self._run_stages(ordered, result, on_progress), timeout=timeout
                    )
                else:
                    await self._run_stages(ordered, result, on_progress)
                result.success = True
                result.state = PipelineState.READY

            except TaskCancelledError as e:
                result.state = PipelineState.CANCELLED
                result.cancelled = True
                result.error = str(e)

            except asyncio.TimeoutError:
                logger.warning(f"[{self.name}] Pipeline timeout after {timeout}s")
                result.error = f"Pipeline timeout after {timeout}s"

            except PipelineError as e:
                logger.warning(f"[{self.name}] Pipeline failed: {e}")
                result.error = str(e)
                to_dict = getattr(e, "to_dict", None)
                if callable(to_dict):
                    result.error_details = to_dict()

            except Exception as e:
                self._set_state(PipelineState.FAILED)
                raise PipelineError(f"Pipeline failed: {e}") from e

            result.duration_ms = (time.perf_counter() - start_time) * 1000
            self._last_result = result
            self._set_state(result.state)
            return result

    async def push(self, docker: DockerCli) -> str:
        """Push the last packaged container image.

        Returns:
            Pushed image tag

        Raises:
            ConfigurationError: If there is no container package to push
            ToolInvocationError: If docker push fails
        """
        async with self._lock:
            package = self._package_output
            if package is None:
                raise ConfigurationError(f"service '{self.name}' has not been packaged")
            details = package.details
            if not isinstance(details, DockerPackageResult):
                raise ConfigurationError(
                    f"service '{self.name}' package is not a container image"
                )

            self._set_state(PipelineState.PUSHING)
            try:
                await docker.push(self._service.path(), details.image_tag)
            except Exception:
                self._set_state(PipelineState.FAILED)
                raise
            self._set_state(PipelineState.READY)
            logger.info(f"[{self.name}] Pushed {details.image_tag} to {details.login_server}")
            return details.image_tag

    async def cancel(self) -> bool:
        """Cancel the current run.

        Returns:
            True if a run was cancelled
        """
        if not self.is_running:
            return False

        self._cancel_requested = True
        if self._current_task is not None:
            self._current_task.cancel()
        return True

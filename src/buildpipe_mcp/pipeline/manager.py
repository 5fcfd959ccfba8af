"""Pipeline manager - orchestrates service pipelines for a project.

Provides:
- Service registration with path validation and backend selection
- Concurrent pipeline runs across services
- Required tool checks
- Image push for container packages
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..clock import Clock, SystemClock
from ..environment import Environment
from ..errors import ConfigurationError
from ..project.config import ProjectConfig, ServiceConfig
from ..project.factory import create_framework_service
from ..project.results import ServiceProgress
from ..toolchain import CommandRunner, DockerCli, ensure_tools_installed
from .policy import PathPolicy
from .session import ServicePipeline
from .state import ALL_STAGES, PipelineResult, PipelineStage, PipelineState, order_stages

logger = logging.getLogger(__name__)

ServiceProgressCallback = Callable[[str, PipelineStage, ServiceProgress], Awaitable[None]]


class PipelineManager:
    """Manages service pipelines for one project and environment.

    Usage:
        manager = PipelineManager(ProjectConfig("app", "/src/app"), Environment("dev"))
        manager.add_service("api", {"project": "src/api", "language": "py", "host": "containerapp"})
        results = await manager.run()
    """

    def __init__(
        self,
        project: ProjectConfig,
        env: Environment,
        runner: CommandRunner | None = None,
        clock: Clock | None = None,
        docker_path: str | None = None,
    ):
        self._project = project
        self._env = env
        self._runner = runner or CommandRunner()
        self._clock = clock or SystemClock()
        self._docker_path = docker_path
        self._policy = PathPolicy(project.path or os.getcwd())
        self._pipelines: dict[str, ServicePipeline] = {}
        self._global_listeners: list[Callable[[str, PipelineState], None]] = []

    @property
    def project(self) -> ProjectConfig:
        return self._project

    @property
    def env(self) -> Environment:
        return self._env

    @property
    def services(self) -> list[str]:
        """Registered service names in registration order."""
        return list(self._pipelines)

    def set_environment(self, env: Environment) -> None:
        """Switch environment. Backends are recreated for every service.

        Raises:
            ConfigurationError: If any pipeline is running
        """
        if any(p.is_running for p in self._pipelines.values()):
            raise ConfigurationError("cannot switch environment while a pipeline is running")
        self._env = env
        for pipeline in list(self._pipelines.values()):
            self.register_service(pipeline.service_config)

    def register_service(self, service_config: ServiceConfig) -> ServicePipeline:
        """Register (or replace) a service.

        Raises:
            ConfigurationError: If the path is invalid or the language unsupported
        """
        try:
            self._policy.validate_service_path(service_config.path())
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        framework = create_framework_service(
            service_config, self._env, self._runner, self._clock, self._docker_path
        )
        pipeline = ServicePipeline(service_config, framework)
        name = service_config.name
        # Wire up global listeners
        pipeline.on_state_change(lambda state: self._notify_listeners(name, state))
        self._pipelines[name] = pipeline
        logger.info(f"Registered service '{name}' ({type(framework).__name__})")
        return pipeline

    def add_service(self, name: str, data: Mapping[str, Any]) -> ServicePipeline:
        """Register a service from a plain mapping (``project``, ``language``, ``host``, ...)."""
        return self.register_service(ServiceConfig.from_dict(name, data, self._project))

    def get_pipeline(self, name: str) -> ServicePipeline:
        """Raises ConfigurationError for unknown services."""
        try:
            return self._pipelines[name]
        except KeyError:
            raise ConfigurationError(f"unknown service '{name}'") from None

    def _notify_listeners(self, service: str, state: PipelineState) -> None:
        """Notify global state listeners."""
        for listener in self._global_listeners:
            try:
                listener(service, state)
            except Exception:
                logger.exception("Global pipeline listener error")

    def on_state_change(self, listener: Callable[[str, PipelineState], None]) -> None:
        """Register global state change listener.

        Listener receives (service_name, new_state).
        """
        self._global_listeners.append(listener)

    def _select(self, service_names: list[str] | None) -> list[ServicePipeline]:
        names = service_names if service_names else self.services
        return [self.get_pipeline(name) for name in names]

    async def ensure_tools(self, service_names: list[str] | None = None) -> None:
        """Check tools required by the selected services are installed.

        Raises:
            MissingToolsError: If any tool is missing
        """
        tools = itertools.chain.from_iterable(
            p.framework.required_external_tools() for p in self._select(service_names)
        )
        await ensure_tools_installed(tools)

    async def run(
        self,
        service_names: list[str] | None = None,
        stages: list[PipelineStage] | tuple[PipelineStage, ...] = ALL_STAGES,
        on_progress: ServiceProgressCallback | None = None,
        timeout: float | None = None,
    ) -> dict[str, PipelineResult]:
        """Run stages for the selected services concurrently.

        Args:
            service_names: Services to run (all when empty)
            stages: Stages to run per service
            on_progress: Async callback receiving (service, stage, event)
            timeout: Per-service timeout in seconds

        Returns:
            Results keyed by service name
        """
        pipelines = self._select(service_names)
        ordered = order_stages(stages)

        def relay(name: str):
            if on_progress is None:
                return None

            async def forward(stage: PipelineStage, event: ServiceProgress) -> None:
                await on_progress(name, stage, event)

            return forward

        outcomes = await asyncio.gather(
            *(p.run(ordered, relay(p.name), timeout) for p in pipelines),
            return_exceptions=True,
        )

        results: dict[str, PipelineResult] = {}
        for pipeline, outcome in zip(pipelines, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[{pipeline.name}] Pipeline error: {outcome}")
                outcome = PipelineResult(
                    service=pipeline.name,
                    success=False,
                    state=PipelineState.FAILED,
                    stages=ordered,
                    error=str(outcome),
                )
            results[pipeline.name] = outcome
        return results

    async def push(self, service_name: str) -> str:
        """Push a service's packaged container image.

        Returns:
            Pushed image tag
        """
        pipeline = self.get_pipeline(service_name)
        return await pipeline.push(DockerCli(self._runner, self._docker_path))

    async def cancel(self, service_name: str) -> bool:
        """Cancel a running service pipeline.

        Returns:
            True if a run was cancelled
        """
        return await self.get_pipeline(service_name).cancel()

    async def cancel_all(self) -> int:
        """Cancel all running pipelines.

        Returns:
            Number of pipelines cancelled
        """
        cancelled = 0
        for pipeline in self._pipelines.values():
            if await pipeline.cancel():
                cancelled += 1
        return cancelled

    def get_state(self, service_name: str) -> PipelineState | None:
        pipeline = self._pipelines.get(service_name)
        return pipeline.state if pipeline else None

    def get_last_result(self, service_name: str) -> PipelineResult | None:
        pipeline = self._pipelines.get(service_name)
        return pipeline.last_result if pipeline else None

    def get_all_states(self) -> dict[str, PipelineState]:
        return {name: p.state for name, p in self._pipelines.items()}

    def to_dict(self) -> dict[str, Any]:
        """Get manager status as dictionary."""
        return {
            "project": self._project.name,
            "environment": self._env.name,
            "services": {
                name: {
                    "state": p.state.value,
                    "config": p.service_config.to_dict(),
                    "lastResult": p.last_result.to_dict() if p.last_result else None,
                }
                for name, p in self._pipelines.items()
            },
        }

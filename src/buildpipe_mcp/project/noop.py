"""No-op framework service for services with nothing to restore or build.

Used as the inner framework of dockerfile-only services.
"""

from __future__ import annotations

from ..tasks import ProgressReporter, TaskWithProgress
from ..toolchain import ExternalTool
from .config import ServiceConfig
from .framework import FrameworkService
from .results import (
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)


class NoOpProject(FrameworkService):
    def required_external_tools(self) -> list[ExternalTool]:
        return []

    def restore(
        self,
        service_config: ServiceConfig,
    ) -> TaskWithProgress[ServiceRestoreResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceRestoreResult:
            return ServiceRestoreResult()

        return TaskWithProgress.run(work)

    def build(
        self,
        service_config: ServiceConfig,
        restore_output: ServiceRestoreResult | None = None,
    ) -> TaskWithProgress[ServiceBuildResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceBuildResult:
            return ServiceBuildResult(
                build_output_path=service_config.path(), restore=restore_output
            )

        return TaskWithProgress.run(work)

    def package(
        self,
        service_config: ServiceConfig,
        build_output: ServiceBuildResult | None = None,
    ) -> TaskWithProgress[ServicePackageResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServicePackageResult:
            path = build_output.build_output_path if build_output else service_config.path()
            return ServicePackageResult(package_path=path, build=build_output)

        return TaskWithProgress.run(work)

"""npm framework service.

Package always rebuilds with NODE_ENV=production, then stages the build
output without node_modules.
"""

from __future__ import annotations

import os

from ..tasks import ProgressReporter, TaskWithProgress
from ..toolchain import ExternalTool, NpmCli
from .config import ServiceConfig
from .framework import FrameworkService, copy_to_staging
from .results import (
    DirectoryPackageResult,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)

STAGING_IGNORE = ("node_modules",)


class NpmProject(FrameworkService):
    def __init__(self, npm: NpmCli):
        self._npm = npm

    def required_external_tools(self) -> list[ExternalTool]:
        return [self._npm]

    def _output_dir(self, service_config: ServiceConfig) -> str:
        if service_config.output_path:
            return os.path.join(service_config.path(), service_config.output_path)
        return service_config.path()

    def restore(
        self,
        service_config: ServiceConfig,
    ) -> TaskWithProgress[ServiceRestoreResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceRestoreResult:
            progress.report(ServiceProgress("Installing NPM dependencies"))
            await self._npm.install(service_config.path())
            return ServiceRestoreResult()

        return TaskWithProgress.run(work)

    def build(
        self,
        service_config: ServiceConfig,
        restore_output: ServiceRestoreResult | None = None,
    ) -> TaskWithProgress[ServiceBuildResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceBuildResult:
            progress.report(ServiceProgress("Building service"))
            await self._npm.run_script(service_config.path(), "build")
            return ServiceBuildResult(
                build_output_path=self._output_dir(service_config),
                restore=restore_output,
            )

        return TaskWithProgress.run(work)

    def package(
        self,
        service_config: ServiceConfig,
        build_output: ServiceBuildResult | None = None,
    ) -> TaskWithProgress[ServicePackageResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServicePackageResult:
            progress.report(ServiceProgress("Building for production"))
            await self._npm.run_script(
                service_config.path(), "build", env={"NODE_ENV": "production"}
            )

            source = (
                build_output.build_output_path
                if build_output is not None
                else self._output_dir(service_config)
            )
            progress.report(ServiceProgress("Copying deployment package"))
            staging = await copy_to_staging(source, STAGING_IGNORE)
            return ServicePackageResult(
                package_path=staging,
                build=build_output,
                details=DirectoryPackageResult(directory=staging, language="js"),
            )

        return TaskWithProgress.run(work)

"""dotnet framework service.

Package runs ``dotnet publish`` into a staging directory, which rebuilds the
project in Release configuration.
"""

from __future__ import annotations

import os
import shutil
import tempfile

from ..tasks import ProgressReporter, TaskWithProgress
from ..toolchain import DotNetCli, ExternalTool
from ..toolchain.dotnet import DEFAULT_CONFIGURATION
from .config import ServiceConfig
from .framework import STAGING_PREFIX, FrameworkService
from .results import (
    DirectoryPackageResult,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)


class DotNetProject(FrameworkService):
    def __init__(self, dotnet: DotNetCli):
        self._dotnet = dotnet

    def required_external_tools(self) -> list[ExternalTool]:
        return [self._dotnet]

    def restore(
        self,
        service_config: ServiceConfig,
    ) -> TaskWithProgress[ServiceRestoreResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceRestoreResult:
            progress.report(ServiceProgress("Restoring .NET project dependencies"))
            await self._dotnet.restore(service_config.path())
            return ServiceRestoreResult()

        return TaskWithProgress.run(work)

    def build(
        self,
        service_config: ServiceConfig,
        restore_output: ServiceRestoreResult | None = None,
    ) -> TaskWithProgress[ServiceBuildResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceBuildResult:
            progress.report(ServiceProgress("Building .NET project"))
            await self._dotnet.build(service_config.path())
            return ServiceBuildResult(
                build_output_path=os.path.join(
                    project_directory(service_config.path()), "bin", DEFAULT_CONFIGURATION
                ),
                restore=restore_output,
            )

        return TaskWithProgress.run(work)

    def package(
        self,
        service_config: ServiceConfig,
        build_output: ServiceBuildResult | None = None,
    ) -> TaskWithProgress[ServicePackageResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServicePackageResult:
            staging = tempfile.mkdtemp(prefix=STAGING_PREFIX)
            progress.report(ServiceProgress("Publishing .NET project"))
            try:
                await self._dotnet.publish(service_config.path(), staging)
            except BaseException:
                shutil.rmtree(staging, ignore_errors=True)
                raise
            return ServicePackageResult(
                package_path=staging,
                build=build_output,
                details=DirectoryPackageResult(directory=staging, language="dotnet"),
            )

        return TaskWithProgress.run(work)


def project_directory(path: str) -> str:
    """Directory of a project path that may point at a .csproj/.fsproj file."""
    if os.path.splitext(path)[1] in (".csproj", ".fsproj", ".vbproj"):
        return os.path.dirname(path)
    return path

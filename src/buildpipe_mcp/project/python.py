"""Python framework service.

Restore creates a virtual environment and installs requirements. Build is a
no-op. Package stages the sources without rebuilding.
"""

from __future__ import annotations

import os

from ..tasks import ProgressReporter, TaskWithProgress
from ..toolchain import ExternalTool, PythonCli
from .config import ServiceConfig
from .framework import FrameworkService, copy_to_staging
from .results import (
    DirectoryPackageResult,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)

VENV_NAME = ".venv"
REQUIREMENTS_FILE = "requirements.txt"
STAGING_IGNORE = (VENV_NAME, "__pycache__", "*.pyc", ".git")


class PythonProject(FrameworkService):
    def __init__(self, python: PythonCli):
        self._python = python

    def required_external_tools(self) -> list[ExternalTool]:
        return [self._python]

    def restore(
        self,
        service_config: ServiceConfig,
    ) -> TaskWithProgress[ServiceRestoreResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceRestoreResult:
            path = service_config.path()

            progress.report(ServiceProgress("Checking for Python virtual environment"))
            if not os.path.isdir(os.path.join(path, VENV_NAME)):
                progress.report(ServiceProgress("Creating Python virtual environment"))
                await self._python.create_virtual_env(path, VENV_NAME)

            if os.path.isfile(os.path.join(path, REQUIREMENTS_FILE)):
                progress.report(ServiceProgress("Installing Python dependencies"))
                await self._python.install_requirements(path, VENV_NAME, REQUIREMENTS_FILE)

            return ServiceRestoreResult()

        return TaskWithProgress.run(work)

    def build(
        self,
        service_config: ServiceConfig,
        restore_output: ServiceRestoreResult | None = None,
    ) -> TaskWithProgress[ServiceBuildResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceBuildResult:
            return ServiceBuildResult(
                build_output_path=service_config.path(),
                restore=restore_output,
            )

        return TaskWithProgress.run(work)

    def package(
        self,
        service_config: ServiceConfig,
        build_output: ServiceBuildResult | None = None,
    ) -> TaskWithProgress[ServicePackageResult, ServiceProgress]:
        async def work(progress: ProgressReporter[ServiceProgress]) -> ServicePackageResult:
            source = (
                build_output.build_output_path
                if build_output is not None
                else service_config.path()
            )
            progress.report(ServiceProgress("Copying deployment package"))
            staging = await copy_to_staging(source, STAGING_IGNORE)
            return ServicePackageResult(
                package_path=staging,
                build=build_output,
                details=DirectoryPackageResult(directory=staging, language="python"),
            )

        return TaskWithProgress.run(work)

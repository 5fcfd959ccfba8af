"""Framework service contracts.

A framework service is the build backend for one language or packaging
technology. Stage methods start a TaskWithProgress and return immediately.
A composite framework wraps an inner framework (e.g. docker over npm).
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import TypeVar

from ..tasks import ProgressReporter, TaskWithProgress
from ..toolchain import ExternalTool
from .config import ServiceConfig
from .results import (
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

STAGING_PREFIX = "buildpipe-"


class FrameworkService(ABC):
    """Build backend with restore, build and package stages."""

    @abstractmethod
    def required_external_tools(self) -> list[ExternalTool]:
        """Tools that must be installed for this backend."""

    async def initialize(self, service_config: ServiceConfig) -> None:
        """One-time setup per service; may subscribe to service events."""

    @abstractmethod
    def restore(
        self,
        service_config: ServiceConfig,
    ) -> TaskWithProgress[ServiceRestoreResult, ServiceProgress]:
        """Restore dependencies."""

    @abstractmethod
    def build(
        self,
        service_config: ServiceConfig,
        restore_output: ServiceRestoreResult | None = None,
    ) -> TaskWithProgress[ServiceBuildResult, ServiceProgress]:
        """Build the service. ``restore_output`` is None if restore was skipped."""

    @abstractmethod
    def package(
        self,
        service_config: ServiceConfig,
        build_output: ServiceBuildResult | None = None,
    ) -> TaskWithProgress[ServicePackageResult, ServiceProgress]:
        """Package the service for publishing.

        Backends may rebuild internally; this stays a single task.
        """


class CompositeFrameworkService(FrameworkService):
    """Framework service driving a nested framework service."""

    @abstractmethod
    def set_source(self, inner: FrameworkService) -> None:
        """Bind the wrapped framework before first use."""


async def forward_progress(
    inner: TaskWithProgress[R, ServiceProgress],
    progress: ProgressReporter[ServiceProgress],
) -> R:
    """Relay an inner task's progress, then return its result or raise its error.

    Cancelling the caller cancels the inner task.
    """
    try:
        async for event in inner.progress():
            progress.report(event)
        return await inner.wait()
    except asyncio.CancelledError:
        inner.cancel()
        raise


async def copy_to_staging(source: str, ignore: tuple[str, ...] = ()) -> str:
    """Copy a directory tree into a fresh temporary directory.

    Args:
        source: Directory to copy
        ignore: Glob patterns to skip

    Returns:
        Path of the staging directory
    """
    staging = tempfile.mkdtemp(prefix=STAGING_PREFIX)

    def copy() -> None:
        shutil.copytree(
            source,
            staging,
            ignore=shutil.ignore_patterns(*ignore) if ignore else None,
            dirs_exist_ok=True,
        )

    try:
        await asyncio.to_thread(copy)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    logger.debug(f"Staged {source} -> {staging}")
    return staging

"""Docker framework service - builds and tags a container image.

Composite: the inner framework (npm, python, ...) runs first, then the image
is built from the service directory. Packaging tags the built image for the
container registry.
"""

from __future__ import annotations

import logging

from ..clock import Clock, unix_seconds
from ..environment import (
    CONTAINER_REGISTRY_ENDPOINT_ENV_VAR_NAME,
    ENV_NAME_ENV_VAR_NAME,
    Environment,
)
from ..errors import ConfigurationError, MissingRegistryEndpointError, UnboundSourceError
from ..tasks import ProgressReporter, TaskWithProgress
from ..toolchain import DockerCli, ExternalTool, host_platform, unique_tools
from .config import ServiceConfig
from .framework import CompositeFrameworkService, FrameworkService, forward_progress
from .results import (
    DockerPackageResult,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)

logger = logging.getLogger(__name__)

DEFAULT_DOCKERFILE = "./Dockerfile"
DEFAULT_BUILD_CONTEXT = "."
DEFAULT_TAG_PREFIX = "azd-deploy"


class DockerProject(CompositeFrameworkService):
    """Container image backend wrapping another framework service."""

    def __init__(self, env: Environment, docker: DockerCli, clock: Clock):
        self._env = env
        self._docker = docker
        self._clock = clock
        self._source: FrameworkService | None = None
        self._in_use = False

    @property
    def source(self) -> FrameworkService | None:
        """Wrapped framework, or None if not yet bound."""
        return self._source

    def set_source(self, inner: FrameworkService) -> None:
        """Bind the inner framework.

        Raises:
            RuntimeError: If a stage has already been started
        """
        if self._in_use:
            raise RuntimeError("Docker project source cannot be rebound after first use")
        self._source = inner

    def _claim_source(self) -> FrameworkService | None:
        self._in_use = True
        return self._source

    def _require(self, source: FrameworkService | None) -> FrameworkService:
        if source is None:
            raise UnboundSourceError(
                "docker project has no source framework; call set_source() first"
            )
        return source

    def required_external_tools(self) -> list[ExternalTool]:
        inner = self._source.required_external_tools() if self._source else []
        return unique_tools([self._docker, *inner])

    async def initialize(self, service_config: ServiceConfig) -> None:
        await self._require(self._claim_source()).initialize(service_config)

    def restore(
        self,
        service_config: ServiceConfig,
    ) -> TaskWithProgress[ServiceRestoreResult, ServiceProgress]:
        source = self._claim_source()

        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceRestoreResult:
            inner = self._require(source)
            return await forward_progress(inner.restore(service_config), progress)

        return TaskWithProgress.run(work)

    def build(
        self,
        service_config: ServiceConfig,
        restore_output: ServiceRestoreResult | None = None,
    ) -> TaskWithProgress[ServiceBuildResult, ServiceProgress]:
        source = self._claim_source()

        async def work(progress: ProgressReporter[ServiceProgress]) -> ServiceBuildResult:
            inner = self._require(source)
            # Inner failure propagates here; no image is built
            await forward_progress(inner.build(service_config, restore_output), progress)

            options = service_config.docker
            progress.report(ServiceProgress("Building docker image"))
            image_id = await self._docker.build(
                service_config.path(),
                options.path or DEFAULT_DOCKERFILE,
                options.platform or host_platform(),
                options.context or DEFAULT_BUILD_CONTEXT,
            )
            return ServiceBuildResult(build_output_path=image_id, restore=restore_output)

        return TaskWithProgress.run(work)

    def package(
        self,
        service_config: ServiceConfig,
        build_output: ServiceBuildResult | None = None,
    ) -> TaskWithProgress[ServicePackageResult, ServiceProgress]:
        source = self._claim_source()

        async def work(progress: ProgressReporter[ServiceProgress]) -> ServicePackageResult:
            self._require(source)
            image_tag = self.generate_image_tag(service_config)
            if build_output is None or not build_output.build_output_path:
                raise ConfigurationError(
                    f"service '{service_config.name}' has no built image to package"
                )

            progress.report(ServiceProgress("Tagging docker image"))
            await self._docker.tag(
                service_config.path(), build_output.build_output_path, image_tag
            )
            logger.info(f"Tagged {build_output.build_output_path} as {image_tag}")

            return ServicePackageResult(
                package_path=image_tag,
                build=build_output,
                details=DockerPackageResult(
                    image_tag=image_tag,
                    login_server=self._login_server(image_tag),
                ),
            )

        return TaskWithProgress.run(work)

    def default_image_name(self, service_config: ServiceConfig) -> str:
        """``<project>/<service>-<environment>``, lowercased."""
        return (
            f"{service_config.project.name}/{service_config.name}-{self._env.name}"
        ).lower()

    def generate_image_tag(self, service_config: ServiceConfig) -> str:
        """Resolve the fully qualified image tag.

        An explicit tag template is used verbatim after evaluation. Otherwise
        ``<registry>/<project>/<service>-<env>:azd-deploy-<unix time>``.

        Raises:
            MissingRegistryEndpointError: No explicit tag and no registry endpoint
            TemplateResolutionError: The tag template cannot be resolved
        """
        tag = service_config.docker.tag
        if tag is not None and tag.template:
            return tag.evaluate(self._template_values(service_config))

        endpoint = self._env.get_value(CONTAINER_REGISTRY_ENDPOINT_ENV_VAR_NAME)
        if not endpoint:
            raise MissingRegistryEndpointError(CONTAINER_REGISTRY_ENDPOINT_ENV_VAR_NAME)

        return (
            f"{endpoint}/{self.default_image_name(service_config)}"
            f":{DEFAULT_TAG_PREFIX}-{unix_seconds(self._clock)}"
        )

    def _template_values(self, service_config: ServiceConfig) -> dict[str, str]:
        values = self._env.values
        values.update(
            {
                "PROJECT_NAME": service_config.project.name,
                "SERVICE_NAME": service_config.name,
                ENV_NAME_ENV_VAR_NAME: self._env.name,
                "TIMESTAMP": str(unix_seconds(self._clock)),
            }
        )
        return values

    def _login_server(self, image_tag: str) -> str:
        endpoint = self._env.get_value(CONTAINER_REGISTRY_ENDPOINT_ENV_VAR_NAME)
        if endpoint:
            return endpoint
        return registry_host(image_tag)


def registry_host(image_tag: str) -> str:
    """Registry host of an image reference, or "" for Docker Hub style names."""
    first, sep, _ = image_tag.partition("/")
    if not sep:
        return ""
    if "." in first or ":" in first or first == "localhost":
        return first
    return ""

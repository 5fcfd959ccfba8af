"""Framework service selection."""

from __future__ import annotations

import logging

from ..clock import Clock, SystemClock
from ..environment import Environment
from ..errors import UnsupportedLanguageError
from ..toolchain import CommandRunner, DockerCli, DotNetCli, NpmCli, PythonCli
from .config import ServiceConfig, ServiceLanguageKind, parse_service_language
from .docker import DockerProject
from .dotnet import DotNetProject
from .framework import FrameworkService
from .noop import NoOpProject
from .npm import NpmProject
from .python import PythonProject

logger = logging.getLogger(__name__)


def language_framework(language: str, runner: CommandRunner) -> FrameworkService:
    """Backend for a declared language.

    Raises:
        UnsupportedLanguageError: Unknown language, or one without a backend
    """
    if not language or language == ServiceLanguageKind.DOCKER.value:
        return NoOpProject()

    kind = parse_service_language(language)
    if kind in (ServiceLanguageKind.DOTNET, ServiceLanguageKind.CSHARP, ServiceLanguageKind.FSHARP):
        return DotNetProject(DotNetCli(runner))
    if kind in (ServiceLanguageKind.JAVASCRIPT, ServiceLanguageKind.TYPESCRIPT):
        return NpmProject(NpmCli(runner))
    if kind == ServiceLanguageKind.PYTHON:
        return PythonProject(PythonCli(runner))

    raise UnsupportedLanguageError(language)


def create_framework_service(
    service_config: ServiceConfig,
    env: Environment,
    runner: CommandRunner,
    clock: Clock | None = None,
    docker_path: str | None = None,
) -> FrameworkService:
    """Create the backend for a service.

    Container hosts and docker services get the language backend wrapped in
    a DockerProject.
    """
    inner = language_framework(service_config.language, runner)

    if service_config.host.requires_container or service_config.language == ServiceLanguageKind.DOCKER.value:
        docker = DockerProject(env, DockerCli(runner, docker_path), clock or SystemClock())
        docker.set_source(inner)
        logger.debug(
            f"Service '{service_config.name}': docker over {type(inner).__name__}"
        )
        return docker

    return inner

"""Service configuration model.

Configuration is read-only for the pipeline: ServiceConfig is frozen, so
path and language cannot change during a build invocation.
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ConfigurationError, UnsupportedLanguageError
from .expandable import ExpandableString

logger = logging.getLogger(__name__)


class ServiceLanguageKind(str, Enum):
    """Declared service languages."""

    DOTNET = "dotnet"
    CSHARP = "csharp"
    FSHARP = "fsharp"
    JAVASCRIPT = "js"
    TYPESCRIPT = "ts"
    PYTHON = "python"
    JAVA = "java"
    DOCKER = "docker"


def parse_service_language(kind: str) -> ServiceLanguageKind:
    """Parse a declared language.

    ``docker`` is rejected: it is derived from the host, not declared.

    Raises:
        UnsupportedLanguageError: If the language is unknown
    """
    # aliases
    if kind == "py":
        return ServiceLanguageKind.PYTHON

    try:
        language = ServiceLanguageKind(kind)
    except ValueError:
        raise UnsupportedLanguageError(kind) from None

    if language == ServiceLanguageKind.DOCKER:
        raise UnsupportedLanguageError(kind)
    return language


class ServiceTargetKind(str, Enum):
    """Hosting targets."""

    APP_SERVICE = "appservice"
    CONTAINER_APP = "containerapp"
    AZURE_FUNCTION = "function"
    STATIC_WEB_APP = "staticwebapp"
    AKS = "aks"

    @property
    def requires_container(self) -> bool:
        """Whether services on this host ship as container images."""
        return self in (ServiceTargetKind.CONTAINER_APP, ServiceTargetKind.AKS)


class ServiceEvent(str, Enum):
    """Lifecycle events raised around each pipeline stage."""

    PRERESTORE = "prerestore"
    POSTRESTORE = "postrestore"
    PREBUILD = "prebuild"
    POSTBUILD = "postbuild"
    PREPACKAGE = "prepackage"
    POSTPACKAGE = "postpackage"


EventHandler = Callable[..., Awaitable[None] | None]


@dataclass(frozen=True)
class DockerProjectOptions:
    """Container build options. Empty strings mean "use the default"."""

    path: str = ""
    context: str = ""
    platform: str = ""
    tag: ExpandableString | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> DockerProjectOptions:
        data = data or {}
        tag = data.get("tag")
        return cls(
            path=data.get("path", ""),
            context=data.get("context", ""),
            platform=data.get("platform", ""),
            tag=ExpandableString(tag) if tag else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.path:
            result["path"] = self.path
        if self.context:
            result["context"] = self.context
        if self.platform:
            result["platform"] = self.platform
        if self.tag is not None:
            result["tag"] = self.tag.template
        return result


@dataclass(frozen=True)
class ProjectConfig:
    """Project owning one or more services."""

    name: str
    path: str = ""


@dataclass(frozen=True)
class ServiceConfig:
    """Service descriptor consumed by framework backends."""

    name: str
    project: ProjectConfig
    relative_path: str
    host: ServiceTargetKind = ServiceTargetKind.APP_SERVICE
    language: str = ""
    docker: DockerProjectOptions = field(default_factory=DockerProjectOptions)
    output_path: str = ""
    _handlers: dict[ServiceEvent, list[EventHandler]] = field(
        default_factory=dict, compare=False, repr=False
    )

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any], project: ProjectConfig) -> ServiceConfig:
        """Build a service config from a plain mapping.

        Raises:
            ConfigurationError: If the host kind is unknown or the path is missing
        """
        relative_path = data.get("project")
        if not relative_path:
            raise ConfigurationError(f"service '{name}' has no project path")
        host = data.get("host", ServiceTargetKind.APP_SERVICE.value)
        try:
            host_kind = ServiceTargetKind(host)
        except ValueError:
            raise ConfigurationError(f"service '{name}' has unsupported host '{host}'") from None
        return cls(
            name=name,
            project=project,
            relative_path=relative_path,
            host=host_kind,
            language=data.get("language", ""),
            docker=DockerProjectOptions.from_dict(data.get("docker")),
            output_path=data.get("dist", ""),
        )

    def path(self) -> str:
        """Service directory (project path joined with the relative path)."""
        return os.path.join(self.project.path, self.relative_path)

    def add_handler(self, event: ServiceEvent, handler: EventHandler) -> None:
        """Subscribe to a lifecycle event.

        Handlers receive the service config plus event keyword arguments and
        may be sync or async.
        """
        self._handlers.setdefault(ServiceEvent(event), []).append(handler)

    def remove_handler(self, event: ServiceEvent, handler: EventHandler) -> None:
        try:
            self._handlers.get(ServiceEvent(event), []).remove(handler)
        except ValueError:
            pass  # Handler not registered

    async def raise_event(self, event: ServiceEvent, **kwargs: Any) -> None:
        """Invoke handlers in registration order. Handler errors propagate."""
        for handler in list(self._handlers.get(ServiceEvent(event), [])):
            logger.debug(f"Service '{self.name}': {event.value} handler {handler!r}")
            result = handler(self, **kwargs)
            if inspect.isawaitable(result):
                await result

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "project": self.relative_path,
            "host": self.host.value,
            "language": self.language,
        }
        docker = self.docker.to_dict()
        if docker:
            result["docker"] = docker
        if self.output_path:
            result["dist"] = self.output_path
        return result

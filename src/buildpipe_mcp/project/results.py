"""Stage results and backend-specific result details.

Result details form a closed union (ResultDetails). Consumers handle each
variant explicitly and reject anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class ServiceProgress:
    """Human-readable status emitted during a stage."""

    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True)
class DockerPackageResult:
    """Container image tagged for a registry."""

    image_tag: str
    login_server: str


@dataclass(frozen=True)
class DirectoryPackageResult:
    """Deployment files staged in a directory."""

    directory: str
    language: str


ResultDetails = DockerPackageResult | DirectoryPackageResult


def details_to_dict(details: ResultDetails | None) -> dict[str, Any] | None:
    """Serialize result details.

    Raises:
        TypeError: For a details type outside ResultDetails
    """
    if details is None:
        return None
    if isinstance(details, DockerPackageResult):
        return {
            "kind": "docker",
            "imageTag": details.image_tag,
            "loginServer": details.login_server,
        }
    if isinstance(details, DirectoryPackageResult):
        return {
            "kind": "directory",
            "directory": details.directory,
            "language": details.language,
        }
    raise TypeError(f"Unknown result details type: {type(details).__name__}")


@dataclass(frozen=True)
class ServiceRestoreResult:
    details: ResultDetails | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"details": details_to_dict(self.details)}


@dataclass(frozen=True)
class ServiceBuildResult:
    """Build output. For container builds the path is the image id."""

    build_output_path: str
    restore: ServiceRestoreResult | None = None
    details: ResultDetails | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "buildOutputPath": self.build_output_path,
            "details": details_to_dict(self.details),
        }


@dataclass(frozen=True)
class ServicePackageResult:
    """Package output. For container packages the path is the full image tag."""

    package_path: str
    build: ServiceBuildResult | None = None
    details: ResultDetails | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "packagePath": self.package_path,
            "details": details_to_dict(self.details),
        }

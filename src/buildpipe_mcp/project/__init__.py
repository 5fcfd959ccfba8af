"""Service configuration and framework backends.

Provides:
- Framework service contract (restore, build, package)
- Composite docker framework over language backends
- npm, Python, .NET and no-op backends
- Expandable template values for image tags
"""

from .config import (
    DockerProjectOptions,
    ProjectConfig,
    ServiceConfig,
    ServiceEvent,
    ServiceLanguageKind,
    ServiceTargetKind,
    parse_service_language,
)
from .docker import DockerProject
from .dotnet import DotNetProject
from .expandable import ExpandableString
from .factory import create_framework_service, language_framework
from .framework import CompositeFrameworkService, FrameworkService, forward_progress
from .noop import NoOpProject
from .npm import NpmProject
from .python import PythonProject
from .results import (
    DirectoryPackageResult,
    DockerPackageResult,
    ResultDetails,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
    details_to_dict,
)

__all__ = [
    "ServiceConfig",
    "ProjectConfig",
    "DockerProjectOptions",
    "ServiceEvent",
    "ServiceLanguageKind",
    "ServiceTargetKind",
    "parse_service_language",
    "ExpandableString",
    "FrameworkService",
    "CompositeFrameworkService",
    "forward_progress",
    "DockerProject",
    "DotNetProject",
    "NpmProject",
    "PythonProject",
    "NoOpProject",
    "create_framework_service",
    "language_framework",
    "ServiceProgress",
    "ServiceRestoreResult",
    "ServiceBuildResult",
    "ServicePackageResult",
    "DockerPackageResult",
    "DirectoryPackageResult",
    "ResultDetails",
    "details_to_dict",
]

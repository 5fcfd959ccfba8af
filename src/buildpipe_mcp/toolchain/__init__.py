"""External tool invocation."""

from .base import ExternalTool, ensure_tools_installed, unique_tools
from .docker import DockerCli, host_platform
from .dotnet import DotNetCli
from .npm import NpmCli
from .python import PythonCli
from .runner import CommandRunner, RunArgs, RunResult

__all__ = [
    "CommandRunner",
    "RunArgs",
    "RunResult",
    "ExternalTool",
    "ensure_tools_installed",
    "unique_tools",
    "DockerCli",
    "host_platform",
    "DotNetCli",
    "NpmCli",
    "PythonCli",
]

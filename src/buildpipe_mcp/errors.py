"""Pipeline error types.

Taxonomy:
- ConfigurationError: user-facing, non-retryable (unsupported language,
  unbound composite source, missing environment value, bad tag template)
- ToolInvocationError: external tool exited non-zero or could not start
- MissingToolsError: required tools are not installed
- TaskCancelledError: user-requested abort
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base exception for build pipeline errors."""

    pass


class ConfigurationError(PipelineError):
    """Raised when service or environment configuration is invalid."""

    pass


class UnsupportedLanguageError(ConfigurationError):
    """Raised when a service declares a language with no framework backend."""

    def __init__(self, language: str):
        super().__init__(f"unsupported language '{language}'")
        self.language = language


class UnboundSourceError(ConfigurationError):
    """Raised when a composite framework is used before set_source()."""

    pass


class MissingRegistryEndpointError(ConfigurationError):
    """Raised when no container registry endpoint is available for tagging."""

    def __init__(self, env_var_name: str):
        super().__init__(
            "could not determine container registry endpoint, "
            f"ensure '{env_var_name}' has been set in the environment"
        )
        self.env_var_name = env_var_name


class TemplateResolutionError(ConfigurationError):
    """Raised when a template placeholder cannot be resolved."""

    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class ToolInvocationError(PipelineError):
    """External tool invocation failed."""

    def __init__(
        self,
        message: str,
        command: str,
        args: list[str] | None = None,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command
        self.args_list = list(args or [])
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "command": self.command,
            "args": self.args_list,
        }
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        if self.stderr:
            result["stderr"] = self.stderr
        return result


class ToolStartError(ToolInvocationError):
    """External tool process could not be started."""

    pass


class MissingToolsError(PipelineError):
    """One or more required external tools are not installed."""

    def __init__(self, missing: list[tuple[str, str]]):
        details = ", ".join(f"{name} ({url})" for name, url in missing)
        super().__init__(f"missing required tools: {details}")
        self.missing = missing


class TaskCancelledError(PipelineError):
    """Task was cancelled before reaching a result."""

    pass

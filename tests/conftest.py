"""Pytest fixtures for buildpipe-mcp tests."""

import os
import sys
from collections.abc import Callable

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from buildpipe_mcp.clock import MockClock  # noqa: E402
from buildpipe_mcp.environment import Environment  # noqa: E402
from buildpipe_mcp.project.config import ProjectConfig, ServiceConfig  # noqa: E402
from buildpipe_mcp.toolchain.runner import CommandRunner, RunArgs, RunResult  # noqa: E402

Responder = Callable[[RunArgs], "RunResult | None"]


class RecordingRunner(CommandRunner):
    """CommandRunner that records invocations instead of starting processes.

    Responders are tried in registration order; the first non-None result
    wins. Unmatched invocations succeed with empty output.
    """

    def __init__(self):
        self.calls: list[RunArgs] = []
        self._responders: list[Responder] = []

    def respond(self, responder: Responder) -> None:
        self._responders.append(responder)

    def when(self, *args_prefix: str, result: RunResult) -> None:
        """Return ``result`` for invocations whose args start with ``args_prefix``."""
        prefix = list(args_prefix)
        self.respond(lambda a: result if a.args[: len(prefix)] == prefix else None)

    def calls_for(self, subcommand: str) -> list[RunArgs]:
        return [c for c in self.calls if c.args[:1] == [subcommand]]

    async def run(self, run_args: RunArgs) -> RunResult:
        self.calls.append(run_args)
        for responder in self._responders:
            result = responder(run_args)
            if result is not None:
                return result
        return RunResult(0)


@pytest.fixture
def runner():
    """Recording command runner."""
    return RecordingRunner()


@pytest.fixture
def clock():
    """Clock fixed at the unix epoch."""
    return MockClock()


@pytest.fixture
def env():
    """Environment named 'test' with a registry endpoint."""
    return Environment("test", {"AZURE_CONTAINER_REGISTRY_ENDPOINT": "ACR_ENDPOINT"})


@pytest.fixture
def project(tmp_path):
    """Project 'test-app' rooted at tmp_path."""
    return ProjectConfig(name="test-app", path=str(tmp_path))


@pytest.fixture
def make_service(project, tmp_path):
    """Factory for service configs with an existing service directory."""

    def make(name="api", data=None):
        data = dict(data or {})
        data.setdefault("project", os.path.join("src", name))
        os.makedirs(tmp_path / data["project"], exist_ok=True)
        return ServiceConfig.from_dict(name, data, project)

    return make

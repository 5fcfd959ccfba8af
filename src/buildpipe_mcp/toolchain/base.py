"""External tool base class and installation checks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from ..errors import MissingToolsError, ToolInvocationError, ToolStartError
from .runner import CommandRunner, RunArgs, RunResult

logger = logging.getLogger(__name__)


class ExternalTool:
    """CLI tool invoked through a CommandRunner."""

    name: str = ""
    install_url: str = ""
    default_executable: str = ""

    def __init__(self, runner: CommandRunner, executable: str | None = None):
        self._runner = runner
        self.executable = executable or self.default_executable

    def __repr__(self) -> str:
        return f"{type(self).__name__}(executable={self.executable!r})"

    async def check_installed(self) -> bool:
        """Check the tool can be started and reports a version."""
        try:
            result = await self._runner.run(RunArgs(self.executable, ["--version"]))
        except ToolStartError:
            return False
        return result.success

    async def _run(
        self,
        cwd: str | None,
        *args: str,
        env: dict[str, str] | None = None,
    ) -> RunResult:
        """Run the tool, raising on non-zero exit.

        Raises:
            ToolInvocationError: If the tool exits non-zero
            ToolStartError: If the tool cannot be started
        """
        run_args = RunArgs(self.executable, list(args), cwd=cwd, env=env)
        result = await self._runner.run(run_args)
        if not result.success:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ToolInvocationError(
                f"'{run_args.command_line}' failed with exit code {result.exit_code}: {detail}",
                command=self.executable,
                args=list(args),
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result


def unique_tools(tools: Iterable[ExternalTool]) -> list[ExternalTool]:
    """De-duplicate tools by name, keeping first occurrence order."""
    seen: set[str] = set()
    unique: list[ExternalTool] = []
    for tool in tools:
        if tool.name in seen:
            continue
        seen.add(tool.name)
        unique.append(tool)
    return unique


async def ensure_tools_installed(tools: Iterable[ExternalTool]) -> None:
    """Verify all tools are installed.

    Raises:
        MissingToolsError: Listing every tool that is not available
    """
    candidates = unique_tools(tools)
    installed = await asyncio.gather(*(tool.check_installed() for tool in candidates))
    missing = [
        (tool.name, tool.install_url)
        for tool, ok in zip(candidates, installed)
        if not ok
    ]
    if missing:
        raise MissingToolsError(missing)
    logger.debug(f"All required tools installed: {[t.name for t in candidates]}")

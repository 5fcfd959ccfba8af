"""dotnet CLI wrapper."""

from __future__ import annotations

from .base import ExternalTool

DEFAULT_CONFIGURATION = "Release"


class DotNetCli(ExternalTool):
    name = ".NET CLI"
    install_url = "https://dotnet.microsoft.com/download"
    default_executable = "dotnet"

    async def restore(self, project_path: str) -> None:
        # --interactive false: never block on a NuGet credential prompt
        await self._run(None, "restore", project_path, "--interactive", "false")

    async def build(self, project_path: str, configuration: str = DEFAULT_CONFIGURATION) -> None:
        await self._run(None, "build", project_path, "-c", configuration)

    async def publish(
        self,
        project_path: str,
        output_dir: str,
        configuration: str = DEFAULT_CONFIGURATION,
    ) -> None:
        await self._run(None, "publish", project_path, "-c", configuration, "-o", output_dir)

"""npm CLI wrapper."""

from __future__ import annotations

from .base import ExternalTool


class NpmCli(ExternalTool):
    name = "npm CLI"
    install_url = "https://nodejs.org/"
    default_executable = "npm"

    async def install(self, cwd: str) -> None:
        await self._run(cwd, "install")

    async def run_script(
        self,
        cwd: str,
        script: str,
        env: dict[str, str] | None = None,
    ) -> None:
        """Run a package.json script if it exists."""
        await self._run(cwd, "run", script, "--if-present", env=env)

"""Python CLI wrapper - virtual environments and pip."""

from __future__ import annotations

import os

from .base import ExternalTool


def venv_python(venv_dir: str) -> str:
    """Path of the interpreter inside a virtual environment."""
    if os.name == "nt":
        return os.path.join(venv_dir, "Scripts", "python.exe")
    return os.path.join(venv_dir, "bin", "python")


class PythonCli(ExternalTool):
    name = "Python CLI"
    install_url = "https://wiki.python.org/moin/BeginnersGuide/Download"
    default_executable = "python3" if os.name != "nt" else "py"

    async def create_virtual_env(self, cwd: str, name: str) -> None:
        await self._run(cwd, "-m", "venv", name)

    async def install_requirements(self, cwd: str, venv_name: str, requirements: str) -> None:
        """pip install -r using the virtual environment's interpreter."""
        interpreter = PythonCli(self._runner, venv_python(os.path.join(cwd, venv_name)))
        await interpreter._run(cwd, "-m", "pip", "install", "-r", requirements)
